"""Render-side state: marker registry diffed per frame, and marker clustering."""

import logging
from dataclasses import dataclass, field

from timetravel.models import Frame, MarkerCluster, Person, ResolvedPlacement
from timetravel.spatial.projection import MapView

logger = logging.getLogger(__name__)


@dataclass
class RenderHandle:
    """One live callout marker and its connecting line back to the origin."""
    person_id: str
    label: str
    lat: float
    lng: float
    line: tuple[tuple[float, float], tuple[float, float]] | None = None


@dataclass
class LayerDiff:
    added: list[str] = field(default_factory=list)
    updated: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.added or self.updated or self.removed)


class MarkerRegistry:
    """person_id → RenderHandle, reconciled against each new frame."""

    def __init__(self) -> None:
        self.handles: dict[str, RenderHandle] = {}

    def __len__(self) -> int:
        return len(self.handles)

    def __contains__(self, person_id: str) -> bool:
        return person_id in self.handles

    def sync(self, frame: Frame, people: dict[str, Person]) -> LayerDiff:
        diff = LayerDiff()
        wanted = {p.person_id: p for p in frame.placements}

        for pid in list(self.handles):
            if pid not in wanted:
                del self.handles[pid]
                diff.removed.append(pid)

        for pid, placement in wanted.items():
            handle = self.handles.get(pid)
            line = _origin_line(placement)
            if handle is None:
                person = people.get(pid)
                self.handles[pid] = RenderHandle(
                    person_id=pid,
                    label=_callout_label(person) if person else pid,
                    lat=placement.lat,
                    lng=placement.lng,
                    line=line,
                )
                diff.added.append(pid)
            elif (handle.lat, handle.lng, handle.line) != (placement.lat, placement.lng, line):
                handle.lat, handle.lng, handle.line = placement.lat, placement.lng, line
                diff.updated.append(pid)

        return diff

    def clear(self) -> LayerDiff:
        diff = LayerDiff(removed=list(self.handles))
        self.handles.clear()
        return diff


def _origin_line(placement: ResolvedPlacement):
    if placement.origin_lat is None or placement.origin_lng is None:
        return None
    origin = (placement.origin_lat, placement.origin_lng)
    if origin == (placement.lat, placement.lng):
        return None
    return origin, (placement.lat, placement.lng)


def _callout_label(person: Person) -> str:
    return f"{person.display_name} ({person.year_from}-{person.year_to})"


def cluster_markers(
    points: list[tuple[str, float, float]],
    view: MapView,
    radius_px: float,
) -> list[MarkerCluster]:
    """Greedy screen-space clustering of (id, lat, lng) points.

    A point joins the first cluster whose seed lies within `radius_px` at the
    view's zoom, otherwise it seeds a new one. Cluster positions are the mean
    of their members.
    """
    seeds: list[tuple[float, float]] = []
    members: list[list[tuple[str, float, float]]] = []
    for pid, lat, lng in points:
        x, y = view.project(lat, lng)
        for i, (sx, sy) in enumerate(seeds):
            if (x - sx) ** 2 + (y - sy) ** 2 <= radius_px ** 2:
                members[i].append((pid, lat, lng))
                break
        else:
            seeds.append((x, y))
            members.append([(pid, lat, lng)])

    clusters: list[MarkerCluster] = []
    for group in members:
        clusters.append(MarkerCluster(
            lat=sum(m[1] for m in group) / len(group),
            lng=sum(m[2] for m in group) / len(group),
            person_ids=[m[0] for m in group],
        ))
    logger.debug("Clustered %d markers into %d clusters", len(points), len(clusters))
    return clusters
