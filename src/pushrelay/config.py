import json
from pathlib import Path

from pydantic import AliasChoices, Field, computed_field, field_validator
from pydantic_settings import BaseSettings

DEFAULT_VAPID_SUBJECT = "mailto:admin@localhost"


def normalize_vapid_subject(value: str | None) -> str:
    """Blank means unset; anything else must be a mailto: or https: URI."""
    if value is None or not str(value).strip():
        return DEFAULT_VAPID_SUBJECT
    value = str(value).strip()
    if not value.startswith(("mailto:", "https:")):
        raise ValueError("vapid_subject must be a mailto: or https: URI")
    return value


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # API
    app_name: str = "pushrelay"
    app_version: str = "0.3.0"

    # Paths
    state_dir: str = Field(
        default=str(Path.home() / ".pushrelay"),
        validation_alias=AliasChoices("state_dir", "PUSHRELAY_STATE"),
        description="Directory for state files (config.json, push.db)",
    )

    # VAPID
    vapid_public_key: str = Field(
        default="",
        description="Uncompressed P-256 public point, base64url",
    )
    vapid_private_key: str = Field(
        default="",
        description="P-256 private scalar d, base64url",
    )
    vapid_subject: str = DEFAULT_VAPID_SUBJECT

    # Delivery
    push_ttl_s: int = 86_400
    push_timeout_s: float = 10.0

    @field_validator("vapid_subject", mode="before")
    @classmethod
    def _check_vapid_subject(cls, value: str | None) -> str:
        return normalize_vapid_subject(value)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def db_path(self) -> Path:
        """SQLite database path for push subscriptions."""
        return Path(self.state_dir) / "push.db"

    model_config = {
        "env_file": ".env",
        "extra": "ignore",
    }


_override: Settings | None = None


def get_settings() -> Settings:
    """Return the active settings instance."""
    if _override:
        return _override
    settings = Settings()
    return _load_config_file(settings)


def _load_config_file(settings: Settings) -> Settings:
    """Load and merge config.json if it exists."""
    config_path = Path(settings.state_dir) / "config.json"
    if not config_path.exists():
        return settings

    try:
        data = json.loads(config_path.read_text())
    except (json.JSONDecodeError, OSError):
        return settings
    if not isinstance(data, dict):
        return settings

    # Expand ~ in path fields
    if isinstance(data.get("state_dir"), str):
        data["state_dir"] = str(Path(data["state_dir"]).expanduser())
    if "vapid_subject" in data:
        data["vapid_subject"] = normalize_vapid_subject(data["vapid_subject"])

    known = set(Settings.model_fields)
    return settings.model_copy(update={k: v for k, v in data.items() if k in known})


def override_settings(s: Settings | None) -> None:
    """Swap in a custom Settings (use None to reset)."""
    global _override  # noqa: PLW0603
    _override = s
