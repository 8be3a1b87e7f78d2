"""Named user lookups kept for existing call sites.

Each name is one row in ``LOOKUP_REGISTRY``: a search field plus fixed lookup
options. ``UserDirectory`` turns every row into a method that calls
``UserLookup.get_record`` and nothing else, so adding a lookup means adding a
row here, never a new fetch path.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .config import USER_ID_FIELD, USER_EMAIL_FIELD
from .lookup import UserLookup
from .models import LookupOptions, UserRecord


@dataclass(frozen=True)
class LookupSpec:
    search_field: str
    cache_layer: str = "standard"
    force_fresh: bool = False
    security_check: bool = False

    def options(self) -> LookupOptions:
        return LookupOptions(
            cache_layer=self.cache_layer,
            force_fresh=self.force_fresh,
            security_check=self.security_check,
        )


LOOKUP_REGISTRY: Dict[str, LookupSpec] = {
    "find_user_by_id":            LookupSpec(USER_ID_FIELD, "standard"),
    "find_user_by_id_for_viewer": LookupSpec(USER_ID_FIELD, "extended"),
    "find_user_by_id_fresh":      LookupSpec(USER_ID_FIELD, "standard", force_fresh=True),
    "find_user_by_email":         LookupSpec(USER_EMAIL_FIELD, "standard"),
    "find_user_by_email_fast":    LookupSpec(USER_EMAIL_FIELD, "fast"),
    "get_secure_user_info":       LookupSpec(USER_ID_FIELD, "secure", security_check=True),
}


def _bind(core: UserLookup, name: str, spec: LookupSpec) -> Callable[..., Optional[UserRecord]]:
    # callers are always the session user; per-call identity stays on UserLookup.lookup
    def wrapper(value: Any) -> Optional[UserRecord]:
        return core.get_record(spec.search_field, value, spec.options())

    wrapper.__name__ = name
    wrapper.__qualname__ = f"UserDirectory.{name}"
    wrapper.__doc__ = (f"Look up a user by {spec.search_field} "
                       f"({spec.cache_layer} layer, fresh={spec.force_fresh}, secure={spec.security_check}).")
    return wrapper


class UserDirectory:
    """The application's user lookup surface, generated from LOOKUP_REGISTRY."""

    def __init__(self, core: UserLookup, registry: Optional[Dict[str, LookupSpec]] = None):
        self.core = core
        self.registry = dict(LOOKUP_REGISTRY if registry is None else registry)
        for name, spec in self.registry.items():
            setattr(self, name, _bind(core, name, spec))

    def call(self, name: str, value: Any) -> Optional[UserRecord]:
        if name not in self.registry:
            raise KeyError(f"Unknown lookup: {name}")
        return getattr(self, name)(value)

    # derived lookups: still one registry call each
    def get_user_id_from_email(self, email: str) -> Optional[str]:
        user = self.call("find_user_by_email", email)
        return user.get(USER_ID_FIELD) if user else None

    def get_email_from_user_id(self, user_id: str) -> Optional[str]:
        user = self.call("find_user_by_id", user_id)
        return user.get(USER_EMAIL_FIELD) if user else None

    def get_or_fetch_user_info(self, identifier: str) -> Optional[UserRecord]:
        if identifier and "@" in identifier:
            return self.call("find_user_by_email", identifier)
        return self.call("find_user_by_id", identifier)
