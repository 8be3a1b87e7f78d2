from __future__ import annotations
from typing import Annotated, Any, Mapping

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .errors import ConfigurationError

# ===== workbook config =====
DEFAULT_SHEET_URL = ""
USERS_SHEET = "users"
USERS_READ_RANGE = "A1:Z"   # header row + every user row
USER_ID_FIELD = "userId"
USER_EMAIL_FIELD = "adminEmail"
USER_HEADERS = ["userId", "adminEmail", "isActive", "configJson", "createdAt", "lastModified"]

# ===== cache layers =====
# name -> (ttl seconds, key prefix)
CACHE_LAYERS = {
    "fast":     {"ttl": 60,  "prefix": "user_fast_"},
    "standard": {"ttl": 180, "prefix": "user_std_"},
    "extended": {"ttl": 300, "prefix": "user_ext_"},
    "secure":   {"ttl": 120, "prefix": "user_sec_"},
}
DEFAULT_CACHE_LAYER = "standard"
USER_LIST_CACHE_LAYER = "extended"
USER_LIST_CACHE_KEY = "__all_users__"
HEALTH_PROBE_KEY = "__health_probe__"

# ===== quotas =====
QUOTA_RETRIES = 3        # keep short: the host kills slow requests
QUOTA_BACKOFF_SEC = 0.5

# ===== board defaults (merged into configJson on registration) =====
DEFAULT_BOARD_CONFIG = {
    "setupStatus": "pending",
    "isPublished": False,
    "displaySettings": {
        "showNames": False,
        "showReactions": False,
        "theme": "default",
        "pageSize": 20,
    },
}

SECURITY_ERROR_MESSAGE = "SECURITY_ERROR: access denied - tenant boundary violation"


class Settings(BaseSettings):
    """Runtime settings.

    Values handed in at construction (Streamlit secrets, see ``load_settings``)
    win; anything left out is read from the environment or ``.env``.
    """

    sheet_url: str = DEFAULT_SHEET_URL
    admin_emails: Annotated[list[str], NoDecode] = []   # comma-separated in env
    redis_url: str | None = None
    debug: bool = False
    allow_published_read: bool = False
    service_account: dict = {}

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @field_validator("admin_emails", mode="before")
    @classmethod
    def split_admin_emails(cls, value: Any) -> list[str]:
        if not value:
            return []
        items = value.split(",") if isinstance(value, str) else list(value)
        return [str(i).strip().lower() for i in items if str(i).strip()]

    @field_validator("redis_url", mode="before")
    @classmethod
    def blank_redis_url_is_none(cls, value: Any) -> Any:
        return value or None


# secrets key -> Settings field
_SECRET_FIELDS = {
    "SHEET_URL": "sheet_url",
    "ADMIN_EMAILS": "admin_emails",
    "REDIS_URL": "redis_url",
    "DEBUG": "debug",
    "ALLOW_PUBLISHED_READ": "allow_published_read",
    "gcp_service_account": "service_account",
}


def load_settings(secrets: Mapping[str, Any] | None = None) -> Settings:
    """Build Settings from Streamlit secrets (or any mapping) over env vars."""
    secrets = secrets or {}
    values = {f: secrets[k] for k, f in _SECRET_FIELDS.items() if secrets.get(k) not in (None, "")}
    if "service_account" in values:
        values["service_account"] = dict(values["service_account"])
    try:
        settings = Settings(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings: {e}") from e
    if not settings.sheet_url:
        raise ConfigurationError("Missing SHEET_URL in secrets and environment.")
    return settings
