"""Where is everyone in a given year, and where do we draw them.

One pass per frame:

1. activity filter: year_from <= year <= year_to
2. position at year: latest event not after the year, else the earliest event
3. grouping by coordinate rounded to 6 decimals
4. spread: golden-angle spiral per group, radius clamped to ~5 km
   cluster: raw positions, handed to the clustering layer
5. parent links between people placed in the same frame
6. bounds of everything placed, for autozoom
"""

import logging
import math
from collections import defaultdict

from timetravel.config import LayoutConfig
from timetravel.models import (
    Bounds,
    Dataset,
    Frame,
    GroupOrigin,
    ParentLink,
    Person,
    PositionAtYear,
    RenderMode,
    ResolvedPlacement,
)
from timetravel.spatial.layers import cluster_markers
from timetravel.spatial.projection import MapView

logger = logging.getLogger(__name__)


def position_at_year(person: Person, year: int) -> PositionAtYear | None:
    """Raw position of `person` in `year`, or None if not placeable this year."""
    located = [e for e in person.events if e.coordinate is not None]
    if not located:
        return None

    best = None
    for event in located:
        if event.year <= year:
            best = event
        else:
            break  # events are sorted by year

    if best is None:
        if year >= person.year_from:
            best = located[0]
        else:
            return None
    return PositionAtYear(lat=best.lat, lng=best.lng, source_event=best)


def group_key(lat: float, lng: float) -> str:
    return f"{lat:.6f},{lng:.6f}"


class YearPositionResolver:
    def __init__(self, layout: LayoutConfig | None = None) -> None:
        self.layout = layout or LayoutConfig()

    def active_positions(self, dataset: Dataset, year: int) -> list[tuple[Person, PositionAtYear]]:
        active: list[tuple[Person, PositionAtYear]] = []
        for person in dataset.individuals:
            if not person.is_active(year):
                continue
            pos = position_at_year(person, year)
            if pos is None:
                continue
            active.append((person, pos))
        return active

    def resolve(
        self,
        dataset: Dataset,
        year: int,
        mode: RenderMode,
        view: MapView,
        show_parents: bool = False,
    ) -> Frame:
        active = self.active_positions(dataset, year)

        groups: dict[str, list[tuple[Person, PositionAtYear]]] = defaultdict(list)
        for person, pos in active:
            groups[group_key(pos.lat, pos.lng)].append((person, pos))

        frame = Frame(year=year, mode=RenderMode(mode))
        if frame.mode == RenderMode.SPREAD:
            by_id = self._spread(groups, view, frame)
        else:
            by_id = {
                person.id: ResolvedPlacement(person_id=person.id, lat=pos.lat, lng=pos.lng)
                for person, pos in active
            }
            points = [(pid, p.lat, p.lng) for pid, p in by_id.items()]
            frame.clusters = cluster_markers(points, view, self.layout.cluster_radius_px)

        # Dataset order keeps output stable frame to frame
        frame.placements = [by_id[person.id] for person, _ in active]

        if show_parents:
            frame.parent_links = self._parent_links(active, by_id)

        frame.bounds = Bounds.from_points([(p.lat, p.lng) for p in frame.placements])
        logger.debug(
            "Year %d (%s): %d placed in %d groups",
            year, frame.mode.value, len(frame.placements), len(groups),
        )
        return frame

    def _spread(
        self,
        groups: dict[str, list[tuple[Person, PositionAtYear]]],
        view: MapView,
        frame: Frame,
    ) -> dict[str, ResolvedPlacement]:
        placed: dict[str, ResolvedPlacement] = {}
        for members in groups.values():
            origin_lat, origin_lng = members[0][1].lat, members[0][1].lng
            frame.origins.append(GroupOrigin(lat=origin_lat, lng=origin_lng, size=len(members)))

            if len(members) == 1:
                person = members[0][0]
                placed[person.id] = ResolvedPlacement(
                    person_id=person.id,
                    lat=origin_lat,
                    lng=origin_lng,
                    is_displaced=False,
                    angle=self.layout.single_bearing_deg,
                )
                continue

            ordered = sorted(members, key=lambda m: (m[0].year_from, m[0].id))
            for index, (person, _) in enumerate(ordered):
                lat, lng, angle = self.displace(origin_lat, origin_lng, index, view)
                placed[person.id] = ResolvedPlacement(
                    person_id=person.id,
                    lat=lat,
                    lng=lng,
                    is_displaced=True,
                    origin_lat=origin_lat,
                    origin_lng=origin_lng,
                    angle=angle,
                )
        return placed

    def displace(
        self,
        lat: float,
        lng: float,
        index: int,
        view: MapView,
    ) -> tuple[float, float, float]:
        """Spiral slot `index` around (lat, lng) → (lat, lng, angle_deg)."""
        angle = index * self.layout.golden_angle_deg
        radius = self.layout.base_radius_px + self.layout.radius_step_px * math.sqrt(index)
        radius = min(radius, self.max_radius_px(lat, view))

        cx, cy = view.project(lat, lng)
        rad = math.radians(angle)
        new_lat, new_lng = view.unproject(cx + radius * math.cos(rad), cy + radius * math.sin(rad))
        return new_lat, new_lng, angle

    def max_radius_px(self, lat: float, view: MapView) -> float:
        return view.pixels_per_degree_lat(lat, self.layout.max_radius_deg)

    def _parent_links(
        self,
        active: list[tuple[Person, PositionAtYear]],
        placed: dict[str, ResolvedPlacement],
    ) -> list[ParentLink]:
        links: list[ParentLink] = []
        for person, _ in active:
            start = placed.get(person.id)
            if start is None:
                continue
            for parent_id in person.parent_ids:
                end = placed.get(parent_id)
                if end is None:
                    continue
                links.append(ParentLink(
                    child_id=person.id,
                    parent_id=parent_id,
                    from_lat=start.lat,
                    from_lng=start.lng,
                    to_lat=end.lat,
                    to_lng=end.lng,
                ))
        return links
