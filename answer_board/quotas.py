import time as _pytime

from gspread.exceptions import APIError

from .config import QUOTA_RETRIES, QUOTA_BACKOFF_SEC


def _is_quota_error(e: Exception) -> bool:
    sc = getattr(getattr(e, "response", None), "status_code", None)
    if isinstance(e, APIError) and sc == 429:
        return True
    s = str(e).lower()
    return "429" in s or "quota exceeded" in s


def retry_429(fn, *args, retries: int = QUOTA_RETRIES, backoff: float = QUOTA_BACKOFF_SEC, **kwargs):
    """Call fn, backing off on 429 bursts. Bounded: the last attempt's error propagates."""
    for i in range(retries):
        try:
            return fn(*args, **kwargs)
        except Exception as e:
            if _is_quota_error(e) and i < retries - 1:
                _pytime.sleep(backoff * (2 ** i))
                continue
            raise
    return fn(*args, **kwargs)


def safe_batch_get(ws, ranges: list[str]) -> list[list[list[str]]]:
    blocks = retry_429(ws.batch_get, ranges, major_dimension="ROWS")
    return [[list(r) for r in (block or [])] for block in blocks]
