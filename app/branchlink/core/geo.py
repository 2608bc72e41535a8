"""Straight-line distance and countdown helpers.

Everything here is pure: no store access and no wall-clock reads, so the
results depend only on the arguments.
"""

from __future__ import annotations

import math
from datetime import datetime

from app.branchlink.core.config import settings

EARTH_RADIUS_KM = 6371.0

URGENCY_GREEN = "GREEN"
URGENCY_YELLOW = "YELLOW"
URGENCY_RED = "RED"


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    # clamp guards sqrt(1 - a) against float drift above 1.0
    a = min(1.0, max(0.0, a))
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def estimated_travel_minutes(
    distance_km: float,
    *,
    speed_kmh: float | None = None,
    buffer_minutes: int | None = None,
) -> int:
    """Advisory delivery estimate; never used to gate a transition."""
    speed = speed_kmh if speed_kmh is not None else settings.TRAVEL_SPEED_KMH
    buffer = buffer_minutes if buffer_minutes is not None else settings.TRAVEL_BUFFER_MINUTES
    # halves round up, not to even
    return math.floor(distance_km / speed * 60 + 0.5) + buffer


def time_remaining(now: datetime, expires_at: datetime) -> float:
    """Seconds left before ``expires_at``, floored at zero."""
    return max(0.0, (expires_at - now).total_seconds())


def urgency_for(seconds_left: float) -> str:
    minutes_left = seconds_left / 60
    if minutes_left >= 20:
        return URGENCY_GREEN
    if minutes_left >= 10:
        return URGENCY_YELLOW
    return URGENCY_RED
