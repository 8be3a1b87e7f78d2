from __future__ import annotations
import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from dateutil import parser as dateparser

from .config import DEFAULT_CACHE_LAYER

UserRecord = Dict[str, Any]


@dataclass(frozen=True)
class LookupOptions:
    cache_layer: str = DEFAULT_CACHE_LAYER
    force_fresh: bool = False
    security_check: bool = False
    requesting_user: Optional[str] = None

    @classmethod
    def coerce(cls, value: Union["LookupOptions", Dict[str, Any], None]) -> "LookupOptions":
        """Accept an options object, None, or a dict in snake_case or camelCase."""
        if value is None:
            return cls()
        if isinstance(value, cls):
            return value
        aliases = {"cacheLayer": "cache_layer", "forceFresh": "force_fresh",
                   "securityCheck": "security_check", "requestingUser": "requesting_user"}
        kwargs = {aliases.get(k, k): v for k, v in dict(value).items()}
        return cls(**kwargs)


# ---- tagged lookup result ----
@dataclass(frozen=True)
class Found:
    record: UserRecord


@dataclass(frozen=True)
class NotFound:
    pass


@dataclass(frozen=True)
class Forbidden:
    pass


LookupResult = Union[Found, NotFound, Forbidden]


@dataclass
class UpdateResult:
    success: bool
    message: str = ""


def _cell_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() == "true"


def record_from_row(headers: List[str], row: List[str]) -> UserRecord:
    """Zip a sheet row onto its header row. Short rows are padded with ''."""
    record: UserRecord = {}
    for idx, name in enumerate(headers):
        name = (name or "").strip()
        if not name:
            continue
        record[name] = row[idx] if idx < len(row) else ""
    if "isActive" in record:
        record["isActive"] = _cell_bool(record["isActive"])
    return record


def record_to_row(headers: List[str], record: UserRecord) -> List[str]:
    out = []
    for name in headers:
        v = record.get((name or "").strip(), "")
        if isinstance(v, bool):
            v = "TRUE" if v else "FALSE"
        elif isinstance(v, (dict, list)):
            v = json.dumps(v, ensure_ascii=False)
        out.append("" if v is None else str(v))
    return out


def parse_config(record: Optional[UserRecord]) -> dict:
    """Decode the configJson blob; anything unparsable reads as {}."""
    if not record:
        return {}
    raw = record.get("configJson")
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        cfg = json.loads(raw)
    except (TypeError, ValueError):
        return {}
    return cfg if isinstance(cfg, dict) else {}


def is_published(record: Optional[UserRecord]) -> bool:
    return bool(parse_config(record).get("isPublished"))


def last_modified_at(record: Optional[UserRecord]) -> datetime | None:
    s = (record or {}).get("lastModified")
    if not s:
        return None
    try:
        return dateparser.parse(str(s))
    except (ValueError, OverflowError):
        return None


def mask_email(email: Optional[str]) -> str:
    if not email:
        return "N/A"
    return f"{str(email).split('@')[0]}@***"
