"""Borrow a plausible year and place from relatives for people with no events.

UP (ancestors view) looks at children and keeps the earliest event, the one
closest to the ancestor's own era. DOWN (descendants view) looks at parents
and keeps the latest.
"""

import logging

from timetravel.models import Direction, Event, PersonRecord
from timetravel.resolvers.base import PersonRepository
from timetravel.resolvers.timeline_builder import EventTimelineBuilder

logger = logging.getLogger(__name__)

ESTIMATED_TYPE = "EST"
ESTIMATED_LABEL = "Estimated location"


class LocationInheritanceResolver:
    def __init__(self, repository: PersonRepository, builder: EventTimelineBuilder) -> None:
        self.repository = repository
        self.builder = builder

    def resolve(
        self,
        person: PersonRecord,
        direction: Direction,
        visited: frozenset[str] = frozenset(),
    ) -> Event | None:
        """Synthetic event for `person`, or None if no relative is located.

        `visited` holds the ids on the current recursion path. Each branch
        extends its own copy, so siblings never see each other's visits.
        """
        if person.id in visited:
            return None
        visited = visited | {person.id}

        if direction == Direction.UP:
            relative_ids = self.repository.children(person)
        else:
            relative_ids = self.repository.parents(person)

        candidates: list[Event] = []
        for rid in relative_ids:
            relative = self.repository.get_person(rid)
            if relative is None:
                continue
            candidate = self._candidate(relative, direction, visited)
            if candidate is not None:
                candidates.append(candidate)

        if not candidates:
            return None

        candidates.sort(key=lambda e: e.year)
        chosen = candidates[0] if direction == Direction.UP else candidates[-1]
        return Event(
            event_type=ESTIMATED_TYPE,
            label=ESTIMATED_LABEL,
            year=chosen.year,
            raw_date="",
            coordinate=chosen.coordinate,
            place=chosen.place,
        )

    def _candidate(
        self,
        relative: PersonRecord,
        direction: Direction,
        visited: frozenset[str],
    ) -> Event | None:
        events = self.builder.build(relative)
        if events:
            return events[0] if direction == Direction.UP else events[-1]
        return self.resolve(relative, direction, visited)
