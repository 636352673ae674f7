"""
Distance aggregation for trips.

Pure functions: given a trip's points (in any order) and its start/end
times, derive total distance, per-mode breakdown, duration and average
speed. Nothing here touches storage; results are recomputed on every read
so late or out-of-order points are always reflected.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from backend.app.core.clock import as_utc
from backend.app.models.enums import UNKNOWN_MODE

# Mean Earth radius in meters
EARTH_RADIUS_METERS = 6371000.0


@dataclass(frozen=True)
class PointSample:
    """Minimal point shape the aggregator needs."""
    timestamp: datetime
    lat: float
    lng: float
    mode: Optional[str] = None


@dataclass
class TripSummary:
    distance_meters: float = 0.0
    duration_seconds: Optional[int] = None
    average_speed_mps: Optional[float] = None
    distance_by_mode: Dict[str, float] = field(default_factory=dict)
    point_count: int = 0


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Calculate the great-circle distance between two points on Earth.

    Args:
        lat1, lon1: First point coordinates (degrees)
        lat2, lon2: Second point coordinates (degrees)

    Returns:
        Distance in meters
    """
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)

    dlat = lat2_rad - lat1_rad
    dlon = math.radians(lon2 - lon1)

    a = math.sin(dlat / 2)**2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2)**2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_METERS * c


def order_points(points: Iterable[Any]) -> List[Any]:
    """
    Sort by timestamp ascending.

    Samples sharing a timestamp are ordered by position and mode so any
    permutation of the same set yields the same sequence.
    """
    return sorted(points, key=lambda p: (as_utc(p.timestamp), p.lat, p.lng, p.mode or ""))


def compute_distance(points: Iterable[Any]) -> Dict[str, float]:
    """
    Total and per-mode distance of a point sequence.

    Each segment counts toward the mode of its later point (the point the
    segment arrives at); untagged segments go to ``unknown``.

    Returns:
        Mapping of mode -> meters. Values sum to the total distance.
    """
    ordered = order_points(points)
    by_mode: Dict[str, float] = {}
    for previous, current in zip(ordered, ordered[1:]):
        segment = haversine_meters(previous.lat, previous.lng, current.lat, current.lng)
        mode = current.mode or UNKNOWN_MODE
        by_mode[mode] = by_mode.get(mode, 0.0) + segment
    return by_mode


def total_distance(points: Iterable[Any]) -> float:
    return math.fsum(compute_distance(points).values())


def duration_seconds(started_at: Optional[datetime], ended_at: Optional[datetime]) -> Optional[int]:
    """Whole seconds between start and end; None while the trip is open."""
    if started_at is None or ended_at is None:
        return None
    elapsed = (as_utc(ended_at) - as_utc(started_at)).total_seconds()
    return max(0, math.floor(elapsed))


def summarize_points(
    points: Iterable[Any],
    started_at: Optional[datetime],
    ended_at: Optional[datetime],
) -> TripSummary:
    """
    Derive every read-time total for one trip.

    Args:
        points: Objects with ``timestamp``, ``lat``, ``lng`` and ``mode``
            (ORM rows or ``PointSample``), in any order
        started_at: Trip start
        ended_at: Trip end, or None if the trip is still open

    Returns:
        TripSummary; ``duration_seconds`` and ``average_speed_mps`` are None
        for open trips and zero-length trips respectively
    """
    materialized = list(points)
    by_mode = compute_distance(materialized)
    distance = math.fsum(by_mode.values())
    duration = duration_seconds(started_at, ended_at)
    average_speed = distance / duration if duration else None

    return TripSummary(
        distance_meters=distance,
        duration_seconds=duration,
        average_speed_mps=average_speed,
        distance_by_mode=by_mode,
        point_count=len(materialized),
    )
