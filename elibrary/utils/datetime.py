# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""DateTime utilities for eLibrary.

All Python datetimes handled by the provisioning code are timezone-aware
UTC values. Enrollment identifiers and manifest file names are derived
from millisecond epoch timestamps.

Usage:
------
    from elibrary.utils.datetime import utc_now, epoch_millis

    now = utc_now()
    suffix = str(epoch_millis(now))[-8:]
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Timezone-aware datetime representing current UTC time.
    """
    return datetime.now(timezone.utc)


def epoch_millis(dt: datetime | None = None) -> int:
    """Convert a datetime to milliseconds since the Unix epoch.

    Naive datetimes are assumed to be UTC.

    Args:
        dt: Datetime to convert. Defaults to the current UTC time.

    Returns:
        Integer milliseconds since 1970-01-01T00:00:00Z.

    Example:
        >>> epoch_millis(datetime(2025, 1, 1, tzinfo=timezone.utc))
        1735689600000
    """
    if dt is None:
        dt = utc_now()
    elif dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)
