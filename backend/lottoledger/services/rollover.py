# Overview: Calendar-day rollover policy shared by boxes and ticket packs.

from __future__ import annotations

from datetime import datetime, tzinfo

from ..time_utils import local_date


def is_new_day(last: datetime | None, now: datetime, tz: tzinfo) -> bool:
    """
    True when `last` is unset or falls on a different calendar day than
    `now` in the store's timezone.
    """
    if last is None:
        return True
    return local_date(last, tz) != local_date(now, tz)


def already_reset_today(last_reset: datetime | None, now: datetime, tz: tzinfo) -> bool:
    """
    True when a reset was stamped on `now`'s calendar day or later.

    Later covers clock skew between app servers: a reset day must never
    move backwards.
    """
    if last_reset is None:
        return False
    return local_date(last_reset, tz) >= local_date(now, tz)


def untouched_since_reset(last_reset: datetime | None, last_updated: datetime | None) -> bool:
    """
    True when nothing was recorded after the last reset.

    A reset then already carried the closing number into the opening
    number; resetting again would overwrite that baseline with zero.
    """
    if last_reset is None or last_updated is None:
        return False
    return last_reset >= last_updated
