from .plan_scheduling import PlanScheduler, generate_schedule

__all__ = ["PlanScheduler", "generate_schedule"]
