from __future__ import annotations
import logging
from typing import Iterable, Optional

from .config import USER_EMAIL_FIELD
from .models import UserRecord, is_published, mask_email

logger = logging.getLogger(__name__)


def _norm(email: Optional[str]) -> str:
    return (email or "").strip().lower()


class TenantGuard:
    """Decides whether a caller may read one tenant's user record.

    Administrators read everything; everybody else reads only the record they
    own, plus published boards when ``allow_published_read`` is on. The check
    is a plain boolean and never raises: turning a refusal into an error is the
    lookup core's job.
    """

    def __init__(self, admin_emails: Iterable[str] = (), allow_published_read: bool = False):
        self.admin_emails = {_norm(e) for e in admin_emails if _norm(e)}
        self.allow_published_read = allow_published_read

    def is_admin(self, caller: Optional[str]) -> bool:
        return bool(caller) and _norm(caller) in self.admin_emails

    def validate_tenant_boundary(self, caller: Optional[str], record: Optional[UserRecord],
                                 write: bool = False) -> bool:
        """``write=True`` drops the published-board allowance: only owners and admins write."""
        if not caller or not _norm(caller) or not record:
            return False
        if self.is_admin(caller):
            return True
        owner = record.get(USER_EMAIL_FIELD) if isinstance(record, dict) else None
        if owner and _norm(owner) == _norm(caller):
            return True
        if not write and self.allow_published_read and is_published(record):
            return True
        logger.warning("Tenant boundary check refused: requester=%s target=%s write=%s",
                       mask_email(caller), mask_email(owner), write)
        return False
