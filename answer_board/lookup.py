"""User lookup core.

Every user read in the app goes through ``UserLookup.lookup``: tiered cache
first, then the ``users`` sheet, populating the requested cache layer on the
way back. Writes go straight to the sheet and then fan an invalidation out
across every layer.

Failure policy: a refused tenant boundary check is the only thing that raises
(``SecurityViolationError`` from ``get_record``). Store and cache trouble is
logged and reads as "no record", so callers must treat None as
"not found or not available right now".
"""

from __future__ import annotations
import copy
import json
import logging
import re
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from .cache import TieredCache
from .config import (
    DEFAULT_BOARD_CONFIG, SECURITY_ERROR_MESSAGE,
    USERS_SHEET, USERS_READ_RANGE, USER_HEADERS,
    USER_ID_FIELD, USER_EMAIL_FIELD,
    USER_LIST_CACHE_LAYER, USER_LIST_CACHE_KEY,
)
from .errors import SecurityViolationError
from .guard import TenantGuard
from .models import (
    Found, Forbidden, LookupOptions, LookupResult, NotFound, UpdateResult, UserRecord,
    is_published, mask_email, parse_config, record_from_row, record_to_row,
)
from .store import Rows, TabularStore, header_index, row_range

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and bool(_EMAIL_RE.match(email.strip()))


def logical_key(search_field: str, search_value: Any) -> str:
    """Cache key for one lookup before the layer prefix is applied.

    Ids and emails are used as-is (ids never contain '@', so the two cannot
    collide); any other column is namespaced by its header name.
    """
    value = str(search_value).strip()
    if search_field in (USER_ID_FIELD, USER_EMAIL_FIELD):
        return value
    return f"{search_field}:{value}"


def _deep_merge(base: dict, updates: dict) -> dict:
    out = dict(base)
    for k, v in updates.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)
        else:
            out[k] = v
    return out


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UserLookup:
    def __init__(
        self,
        store: TabularStore,
        cache: TieredCache,
        guard: TenantGuard,
        identity: Callable[[], Optional[str]] = lambda: None,
        sheet: str = USERS_SHEET,
        now: Callable[[], datetime] = _utc_now,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self.store = store
        self.cache = cache
        self.guard = guard
        self.identity = identity
        self.sheet = sheet
        self._now = now
        self._new_id = id_factory

    # ---------- identity ----------
    def current_user_email(self) -> Optional[str]:
        email = (self.identity() or "").strip()
        return email or None

    # ---------- reads ----------
    def lookup(self, search_field: str, search_value: Any, options: LookupOptions | dict | None = None) -> LookupResult:
        options = LookupOptions.coerce(options)
        layer = options.cache_layer
        self.cache.ttl(layer)  # unknown layer names fail here, before any I/O
        if search_value is None or not str(search_value).strip():
            return NotFound()
        key = logical_key(search_field, search_value)

        if options.force_fresh:
            self.cache.invalidate(key)
            record = None
        else:
            record = self.cache.get(layer, key)
            if record is not None and not isinstance(record, dict):
                logger.warning("Ignoring non-record cache value for %s in %s layer", key, layer)
                record = None

        if record is None:
            record = self._fetch(search_field, search_value)
            if record is None:
                return NotFound()
            if options.force_fresh:
                # same record cached under its other keys
                self.cache.invalidate_keys(
                    k for k in (record.get(USER_ID_FIELD), record.get(USER_EMAIL_FIELD)) if k and k != key
                )
            self.cache.set(layer, key, record)

        if options.security_check:
            caller = options.requesting_user or self.current_user_email()
            if not self.guard.validate_tenant_boundary(caller, record):
                return Forbidden()
        return Found(record)

    def get_record(self, search_field: str, search_value: Any, options: LookupOptions | dict | None = None) -> Optional[UserRecord]:
        result = self.lookup(search_field, search_value, options)
        if isinstance(result, Forbidden):
            raise SecurityViolationError(SECURITY_ERROR_MESSAGE)
        if isinstance(result, Found):
            return result.record
        return None

    def _read_rows(self) -> Rows:
        return self.store.read_range(self.sheet, USERS_READ_RANGE)

    def _fetch(self, search_field: str, search_value: Any) -> Optional[UserRecord]:
        try:
            rows = self._read_rows()
        except Exception:
            logger.error("User sheet read failed for %s lookup", search_field, exc_info=True)
            return None
        return self._match(rows, search_field, search_value)

    def _match(self, rows: Rows, search_field: str, search_value: Any) -> Optional[UserRecord]:
        if not rows:
            return None
        headers = rows[0]
        col = header_index(headers, search_field)
        if col is None:
            logger.warning("Column %r not found in %r sheet", search_field, self.sheet)
            return None
        wanted = str(search_value).strip()
        for row in rows[1:]:
            cell = row[col] if col < len(row) else ""
            if str(cell).strip() == wanted:
                # first match wins; duplicates would break the unique-key invariant
                return record_from_row(headers, row)
        return None

    def list_users(self, active_only: bool = False, published_only: bool = False,
                   force_fresh: bool = False) -> List[UserRecord]:
        users = None if force_fresh else self.cache.get(USER_LIST_CACHE_LAYER, USER_LIST_CACHE_KEY)
        if not isinstance(users, list):
            try:
                rows = self._read_rows()
            except Exception:
                logger.error("User sheet read failed while listing users", exc_info=True)
                return []
            if len(rows) <= 1:
                return []
            headers = rows[0]
            users = [record_from_row(headers, r) for r in rows[1:] if any(str(c).strip() for c in r)]
            self.cache.set(USER_LIST_CACHE_LAYER, USER_LIST_CACHE_KEY, users)

        out = []
        for u in users:
            if active_only and not u.get("isActive"):
                continue
            if published_only and not is_published(u):
                continue
            out.append(u)
        return out

    # ---------- writes ----------
    def _forget(self, user_id: Optional[str], *emails: Optional[str]) -> None:
        self.cache.invalidate(user_id, emails[0] if emails else None)
        self.cache.invalidate_keys(e for e in emails[1:] if e != emails[0])
        self.cache.delete(USER_LIST_CACHE_LAYER, USER_LIST_CACHE_KEY)

    def _timestamp(self) -> str:
        return self._now().isoformat(timespec="seconds")

    def create_user(self, email: str, initial_config: Optional[Dict[str, Any]] = None) -> Optional[UserRecord]:
        """Register a board owner. Returns the existing record if the email is already known."""
        email = (email or "").strip()
        if not is_valid_email(email):
            logger.warning("create_user: invalid email %s", mask_email(email))
            return None

        # the duplicate check must see the sheet; an unreadable sheet is not "absent"
        self.cache.invalidate(email)
        try:
            rows = self._read_rows()
        except Exception:
            logger.error("create_user: sheet read failed for %s; not writing", mask_email(email), exc_info=True)
            return None
        existing = self._match(rows, USER_EMAIL_FIELD, email)
        if existing:
            return existing

        try:
            headers = rows[0] if rows and any(str(h).strip() for h in rows[0]) else []
            if not headers:
                headers = list(USER_HEADERS)
                self.store.update_range(self.sheet, row_range(1, 1, len(headers)), [headers])

            now = self._timestamp()
            config = _deep_merge(copy.deepcopy(DEFAULT_BOARD_CONFIG), initial_config or {})
            user_id = self._new_id()
            draft = {
                USER_ID_FIELD: user_id,
                USER_EMAIL_FIELD: email,
                "isActive": True,
                "configJson": json.dumps(config, ensure_ascii=False),
                "createdAt": now,
                "lastModified": now,
            }
            row = record_to_row(headers, draft)
            self.store.append_row(self.sheet, row)
        except Exception:
            logger.error("create_user: sheet write failed for %s", mask_email(email), exc_info=True)
            return None

        self._forget(user_id, email)
        logger.info("Registered user %s", user_id)
        return record_from_row(headers, row)

    def update_user(self, user_id: str, updates: Dict[str, Any], requesting_user: Optional[str] = None) -> UpdateResult:
        """Partial update. ``updates["config"]`` is deep-merged into configJson.

        Only the record's owner or an administrator may write; anyone else gets
        a failed result carrying the security error message and nothing is written.
        """
        if not user_id:
            return UpdateResult(False, "User id is required")
        try:
            rows = self._read_rows()
        except Exception:
            logger.error("update_user: sheet read failed for %s", user_id, exc_info=True)
            return UpdateResult(False, "Database access failed")
        if not rows:
            return UpdateResult(False, "User not found")

        headers = rows[0]
        id_col = header_index(headers, USER_ID_FIELD)
        if id_col is None:
            return UpdateResult(False, "userId column not found")

        for offset, row in enumerate(rows[1:], start=2):
            if (row[id_col] if id_col < len(row) else "").strip() != user_id:
                continue
            current = record_from_row(headers, row)
            caller = requesting_user or self.current_user_email()
            if not self.guard.validate_tenant_boundary(caller, current, write=True):
                logger.warning("update_user: %s may not write user %s", mask_email(caller), user_id)
                return UpdateResult(False, SECURITY_ERROR_MESSAGE)
            new = dict(current)
            for name, value in (updates or {}).items():
                if name == "config":
                    continue
                if name == USER_ID_FIELD:
                    logger.warning("update_user: ignoring attempt to change userId of %s", user_id)
                    continue
                if header_index(headers, name) is not None:
                    new[name] = value
            if isinstance((updates or {}).get("config"), dict):
                merged = _deep_merge(parse_config(current), updates["config"])
                new["configJson"] = json.dumps(merged, ensure_ascii=False)
            if header_index(headers, "lastModified") is not None:
                new["lastModified"] = self._timestamp()

            new_cells = record_to_row(headers, new)
            changed = [i for i, name in enumerate(headers) if name.strip() and new.get(name.strip()) != current.get(name.strip())]
            if changed:
                lo, hi = min(changed), max(changed)
                try:
                    self.store.update_range(self.sheet, row_range(offset, lo + 1, hi + 1), [new_cells[lo:hi + 1]])
                except Exception:
                    logger.error("update_user: sheet write failed for %s", user_id, exc_info=True)
                    return UpdateResult(False, "Database write failed")
            self._forget(user_id, current.get(USER_EMAIL_FIELD), new.get(USER_EMAIL_FIELD))
            return UpdateResult(True)

        logger.warning("update_user: user %s not found", user_id)
        return UpdateResult(False, "User not found")

    def deactivate_user(self, user_id: str, requesting_user: Optional[str] = None) -> UpdateResult:
        return self.update_user(user_id, {"isActive": False}, requesting_user)

    # ---------- diagnostics ----------
    def health(self) -> Dict[str, Any]:
        layers = self.cache.health_check()
        return {
            "databaseAccessible": self.store.ping(),
            "cacheLayers": layers,
            "cacheLayersHealthy": all(layers.values()),
        }
