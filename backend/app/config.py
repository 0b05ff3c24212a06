import os
from datetime import time


def _canon_prefix(val):
    """
    Normalize API prefix to always be exactly like '/api':
      - defaults to '/api' when unset/empty
      - ensures a single leading slash
      - removes any trailing slash (except for root)
    """
    val = (val or "/api").strip()
    if not val.startswith("/"):
        val = "/" + val
    if len(val) > 1 and val.endswith("/"):
        val = val[:-1]
    return val


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def parse_schedule_time(val: str | None, default: time = time(2, 0)) -> time:
    """Parse an ``HH:MM`` string into a :class:`datetime.time`.

    Invalid or empty values fall back to ``default`` (02:00).
    """
    if not val or not val.strip():
        return default
    try:
        hours, minutes = val.strip().split(":", 1)
        return time(int(hours), int(minutes))
    except ValueError:
        return default


API_PREFIX = _canon_prefix(os.getenv("API_PREFIX"))

ADMIN_TOKEN = os.getenv("ADMIN_TOKEN")

RANKING_SCHEDULER_ENABLED = _env_flag("RANKING_SCHEDULER_ENABLED", default=False)
RANKING_SCHEDULE_TIME = parse_schedule_time(os.getenv("RANKING_SCHEDULE_TIME"))
RANKING_RUN_TIMEOUT_SECONDS = _env_float("RANKING_RUN_TIMEOUT_SECONDS", 300.0)
RANKING_MAX_PARALLEL_PARTITIONS = _env_int("RANKING_MAX_PARALLEL_PARTITIONS", 4)
RANKINGS_CACHE_TTL_SECONDS = _env_float("RANKINGS_CACHE_TTL_SECONDS", 60.0)
