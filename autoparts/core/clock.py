from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def utc_now_iso() -> str:
    """Second-resolution UTC timestamp in the ``...Z`` form every table stores."""

    return utc_now().replace(tzinfo=None).isoformat(timespec="seconds") + "Z"
