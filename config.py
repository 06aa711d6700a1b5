import os
import yaml
import keyring
from keyring.errors import PasswordDeleteError

APP_VERSION = "1.0.0"


class YamlConfig:
    """Load and save client settings to a YAML file with optional keyring storage."""

    SENSITIVE_KEYS = {
        "user_id",
        "api_token",
    }

    def __init__(self, path: str = "settings.yaml") -> None:
        self.path = path
        self.encrypt = os.environ.get("ENCRYPT_SETTINGS") == "1"
        self.service = "planbuilder"

    def load(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if self.encrypt:
            for key in list(data.keys()):
                if key in self.SENSITIVE_KEYS:
                    secret = keyring.get_password(self.service, key)
                    if secret is not None:
                        data[key] = secret
                    else:
                        data.pop(key, None)
        return data

    def save(self, data: dict) -> None:
        out = {k: v for k, v in data.items() if v is not None}
        if self.encrypt:
            for key in self.SENSITIVE_KEYS:
                if key in out:
                    keyring.set_password(self.service, key, str(out[key]))
                    out[key] = True
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(out, f)

    def update(self, **values) -> dict:
        """Merge ``values`` into the stored settings; ``None`` removes a key."""
        data = self.load()
        for key, value in values.items():
            if value is None:
                data.pop(key, None)
                if self.encrypt and key in self.SENSITIVE_KEYS:
                    try:
                        keyring.delete_password(self.service, key)
                    except PasswordDeleteError:
                        pass
            else:
                data[key] = value
        self.save(data)
        return data
