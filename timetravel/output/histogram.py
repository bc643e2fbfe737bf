"""Per-year population counts for the timeline overview bar."""

import logging
from dataclasses import dataclass, field
from datetime import date

from timetravel.models import Dataset

logger = logging.getLogger(__name__)

DEFAULT_ASSUMED_LIFESPAN = 100


@dataclass
class Histogram:
    min_year: int
    max_year: int
    counts: dict[int, int] = field(default_factory=dict)

    @property
    def max_count(self) -> int:
        return max(self.counts.values(), default=0)

    def count(self, year: int) -> int:
        return self.counts.get(year, 0)

    def series(self) -> list[tuple[int, int]]:
        return [(y, self.counts.get(y, 0)) for y in range(self.min_year, self.max_year + 1)]


def compute_histogram(
    dataset: Dataset,
    assumed_lifespan: int = DEFAULT_ASSUMED_LIFESPAN,
    current_year: int | None = None,
) -> Histogram:
    """Count people alive in each year of the dataset's span.

    Birth is `year_from`. A missing death year means an assumed lifespan of
    `assumed_lifespan` years, capped at the current calendar year.
    """
    current_year = current_year or date.today().year

    spans: list[tuple[int, int]] = []
    for person in dataset.individuals:
        birth = person.year_from
        end = person.death_year
        if end is None:
            end = min(current_year, birth + assumed_lifespan)
        spans.append((birth, end))

    hist = Histogram(min_year=dataset.min_year, max_year=dataset.max_year)
    for year in range(dataset.min_year, dataset.max_year + 1):
        hist.counts[year] = sum(1 for birth, end in spans if birth <= year <= end)

    logger.debug(
        "Histogram %d-%d: peak %d",
        hist.min_year, hist.max_year, hist.max_count,
    )
    return hist
