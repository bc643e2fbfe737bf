"""Build one person's chronological, located event timeline from raw facts."""

import logging

from timetravel.config import TrackingConfig
from timetravel.models import Event, FactRecord, PersonRecord
from timetravel.resolvers.base import PersonRepository
from timetravel.resolvers.dates import parse_date

logger = logging.getLogger(__name__)

EVENT_LABELS = {
    "BIRT": "Birth",
    "CHR": "Christening",
    "BAPM": "Baptism",
    "DEAT": "Death",
    "BURI": "Burial",
    "CREM": "Cremation",
    "MARR": "Marriage",
    "DIV": "Divorce",
    "RESI": "Residence",
    "CENS": "Census",
    "OCCU": "Occupation",
    "EDUC": "Education",
    "EVEN": "Event",
}


def event_label(tag: str) -> str:
    """Display label for a fact tag ('INDI:BIRT' and 'BIRT' alike)."""
    return EVENT_LABELS.get(tag.split(":")[-1], tag)


class EventTimelineBuilder:
    """Turns an individual's facts (and their spouse families' facts) into events."""

    def __init__(
        self,
        repository: PersonRepository,
        tracking: TrackingConfig | None = None,
    ) -> None:
        self.repository = repository
        self.tracking = tracking or TrackingConfig()
        self._indi_tags = set(self.tracking.indi_tags)
        self._fam_tags = set(self.tracking.fam_tags)

    def build(self, person: PersonRecord) -> list[Event]:
        events: list[Event] = []

        for fact in person.facts:
            if fact.tag not in self._indi_tags:
                continue
            event = self.to_event(fact)
            if event is not None:
                events.append(event)

        for fid in person.spouse_family_ids:
            family = self.repository.get_family(fid)
            if family is None:
                continue
            for fact in family.facts:
                if fact.tag not in self._fam_tags:
                    continue
                event = self.to_event(fact)
                if event is not None:
                    events.append(event)

        # sorted() is stable: same-year events keep fact order
        events = sorted(events, key=lambda e: e.year)
        logger.debug("Timeline for %s: %d events", person.id, len(events))
        return events

    def to_event(self, fact: FactRecord) -> Event | None:
        """Resolve one fact, or None when it has no year or no coordinate."""
        bounds = parse_date(fact.date)
        if bounds is None:
            return None

        place = (fact.place or "").strip()
        if not place:
            return None

        if fact.latitude is not None and fact.longitude is not None:
            coordinate = (float(fact.latitude), float(fact.longitude))
        else:
            coordinate = self.repository.find_place(place)
        if coordinate is None:
            logger.debug("Dropping %s fact at %r: no coordinate", fact.tag, place)
            return None

        return Event(
            event_type=fact.tag,
            label=event_label(fact.tag),
            year=bounds.minimum,
            raw_date=fact.date or "",
            coordinate=coordinate,
            place=place,
        )
