"""Clock used for workflow timestamps.

Services never call ``datetime.now`` themselves; they receive a clock
callable so tests and batch jobs can pin time.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
