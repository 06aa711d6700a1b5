from pydantic import BaseModel, ValidationError

class SettingsSchema(BaseModel):
    api_url: str = "http://localhost:8000"
    user_id: str | None = None
    plan_id: str | None = None
    api_token: str | None = None
    default_workout_days: list[str] = []
    cache_ttl: int = 300
    cache_days_before: int = 7
    cache_days_after: int = 5

def validate_settings(data: dict) -> SettingsSchema:
    try:
        return SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
