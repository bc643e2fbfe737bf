"""Walk the ancestor/descendant graph and assemble the map dataset."""

import logging
from datetime import date

from timetravel.config import Config
from timetravel.models import (
    Dataset,
    DatasetMetadata,
    Direction,
    Person,
    PersonRecord,
    QueryError,
    WalkResult,
)
from timetravel.resolvers.base import PersonRepository
from timetravel.resolvers.dates import parse_date
from timetravel.resolvers.inheritance import LocationInheritanceResolver
from timetravel.resolvers.timeline_builder import EventTimelineBuilder

logger = logging.getLogger(__name__)

BIRTH_TAGS = ("BIRT", "CHR", "BAPM")
DEATH_TAGS = ("DEAT", "BURI", "CREM")


class PersonGraphWalker:
    """Produces the full Dataset for one (root, direction, generations) query."""

    def __init__(
        self,
        repository: PersonRepository,
        config: Config | None = None,
        current_year: int | None = None,
    ) -> None:
        self.repository = repository
        self.config = config or Config()
        self.current_year = current_year or date.today().year
        self.builder = EventTimelineBuilder(repository, self.config.tracking)
        self.inheritance = LocationInheritanceResolver(repository, self.builder)

    def normalize_generations(self, generations: int | None) -> int:
        q = self.config.query
        if generations is None or not q.min_generations <= generations <= q.max_generations:
            return q.default_generations
        return generations

    def walk(
        self,
        root_id: str,
        direction: Direction | str = Direction.UP,
        generations: int | None = None,
    ) -> WalkResult:
        direction = Direction(direction)
        generations = self.normalize_generations(generations)

        root = self.repository.get_person(root_id)
        if root is None:
            logger.warning("Root individual not found: %s", root_id)
            return WalkResult(
                error=QueryError.ROOT_NOT_FOUND,
                message=f"Individual not found: {root_id}",
            )

        if direction == Direction.UP:
            ids = self.repository.ancestors(root.id, generations)
        else:
            ids = self.repository.descendants(root.id, generations)

        individuals: list[Person] = []
        dropped = 0
        for pid in ids:
            record = root if pid == root.id else self.repository.get_person(pid)
            if record is None:
                continue
            person = self.process_individual(record, direction)
            if person is None:
                dropped += 1
                continue
            individuals.append(person)

        logger.info(
            "Walked %s %s %d generations: %d mapped, %d unlocatable",
            root.id, direction.value, generations, len(individuals), dropped,
        )

        if not individuals:
            return WalkResult(
                error=QueryError.EMPTY_DATASET,
                message="No data found for this person/criteria.",
            )

        min_year, max_year = _year_span(individuals)
        return WalkResult(dataset=Dataset(
            metadata=DatasetMetadata(
                min_year=min_year,
                max_year=max_year,
                root_id=root.id,
                direction=direction,
            ),
            individuals=individuals,
        ))

    def process_individual(self, record: PersonRecord, direction: Direction) -> Person | None:
        """Timeline + life window for one person, or None if unlocatable."""
        events = self.builder.build(record)
        if not events:
            inherited = self.inheritance.resolve(record, direction)
            if inherited is None:
                logger.debug("No located events or relatives for %s", record.id)
                return None
            events = [inherited]

        birth = _first_date(record, BIRTH_TAGS)
        death = _first_date(record, DEATH_TAGS)
        birth_year = birth.minimum if birth else None
        death_year = death.maximum if death else None

        event_years = [e.year for e in events]
        year_from = min([y for y in (birth_year, min(event_years)) if y is not None])

        if not record.is_dead:
            year_to = self.current_year
        elif death_year is not None:
            year_to = death_year
        else:
            year_to = max(event_years)
        year_to = max(year_to, year_from)

        father_id, mother_id = self._parents(record)

        return Person(
            id=record.id,
            display_name=record.name,
            url=record.url,
            thumbnail=record.thumbnail,
            father_id=father_id,
            mother_id=mother_id,
            year_from=year_from,
            year_to=year_to,
            death_year=death_year if record.is_dead else None,
            events=events,
        )

    def _parents(self, record: PersonRecord) -> tuple[str | None, str | None]:
        # Only the first birth family counts
        for fid in record.child_family_ids:
            family = self.repository.get_family(fid)
            if family is None:
                continue
            return family.husband_id, family.wife_id
        return None, None


def _first_date(record: PersonRecord, tags: tuple[str, ...]):
    for tag in tags:
        for fact in record.facts:
            if fact.tag != tag:
                continue
            bounds = parse_date(fact.date)
            if bounds is not None:
                return bounds
    return None


def _year_span(individuals: list[Person]) -> tuple[int, int]:
    years: list[int] = []
    for p in individuals:
        years.append(p.year_from)
        years.append(p.year_to)
        years.extend(e.year for e in p.events)
    return min(years), max(years)
