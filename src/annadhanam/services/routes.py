from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from loguru import logger

from annadhanam.models import MatchedNGO, MatchResult

DEFAULT_MARKER_RADIUS = 200.0

LatLon = Tuple[float, float]


@dataclass
class RouteStop:
    number: int
    ngo_name: str
    address: Optional[str]
    distance_km: float
    allocated_kg: float
    contact: Optional[str] = None


@dataclass
class RouteSegment:
    number: int
    start: LatLon
    end: LatLon


@dataclass
class DropOffMarker:
    number: int
    center: LatLon
    radius: float


@dataclass
class RouteSummary:
    total_distance_km: float = 0.0
    estimated_time_minutes: float = 0.0
    stops: int = 0
    total_allocated_kg: float = 0.0


@dataclass
class RenderedRoute:
    origin: Optional[LatLon] = None
    stops: List[RouteStop] = field(default_factory=list)
    segments: List[RouteSegment] = field(default_factory=list)
    markers: List[DropOffMarker] = field(default_factory=list)
    summary: RouteSummary = field(default_factory=RouteSummary)

    @property
    def is_empty(self) -> bool:
        return not self.stops


def contact_line(ngo: MatchedNGO) -> Optional[str]:
    if not ngo.contact_person:
        return None
    line = f"Contact: {ngo.contact_person}"
    if ngo.phone:
        line += f" • {ngo.phone}"
    return line


def summarize(result: Optional[MatchResult]) -> RouteSummary:
    if result is None:
        return RouteSummary()
    info = result.route_info
    return RouteSummary(
        total_distance_km=(info.total_distance_km if info else 0.0) or 0.0,
        estimated_time_minutes=(info.estimated_time_minutes if info else 0.0) or 0.0,
        stops=len(result.matched_ngos),
        total_allocated_kg=result.total_allocated_kg or 0.0,
    )


def render_routes(
    result: Optional[MatchResult],
    origin: Optional[LatLon],
    *,
    marker_radius: float = DEFAULT_MARKER_RADIUS,
) -> RenderedRoute:
    """Star layout: one straight segment from the origin to every matched NGO.

    Stops are numbered in the order the service returned them; nothing is
    re-sorted or chained between NGOs.
    """
    rendered = RenderedRoute(origin=origin, summary=summarize(result))
    if result is None:
        return rendered

    for number, ngo in enumerate(result.matched_ngos, start=1):
        rendered.stops.append(
            RouteStop(
                number=number,
                ngo_name=ngo.ngo_name,
                address=ngo.address,
                distance_km=ngo.distance_km,
                allocated_kg=ngo.allocated_kg,
                contact=contact_line(ngo),
            )
        )
        end = ngo.coordinate
        if end is None or origin is None:
            logger.warning("stop {} ({}) has no coordinate to draw", number, ngo.ngo_name)
            continue
        rendered.segments.append(RouteSegment(number=number, start=origin, end=end))
        rendered.markers.append(DropOffMarker(number=number, center=end, radius=marker_radius))

    return rendered
