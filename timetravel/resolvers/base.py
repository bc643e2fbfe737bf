"""Person repository interface consumed by the resolvers."""

import abc
import logging

from timetravel.models import FamilyRecord, PersonRecord

logger = logging.getLogger(__name__)


class PersonRepository(abc.ABC):
    """Read-only view of the genealogical record store."""

    @abc.abstractmethod
    def get_person(self, person_id: str) -> PersonRecord | None:
        """Return one individual with facts and family links, or None."""
        ...

    @abc.abstractmethod
    def get_family(self, family_id: str) -> FamilyRecord | None:
        """Return one family with spouses, children and facts, or None."""
        ...

    @abc.abstractmethod
    def find_place(self, name: str) -> tuple[float, float] | None:
        """Gazetteer lookup: place name → (lat, lng)."""
        ...

    def parents(self, person: PersonRecord) -> list[str]:
        """Spouses of every birth family, in family order."""
        ids: list[str] = []
        for fid in person.child_family_ids:
            family = self.get_family(fid)
            if family:
                ids.extend(family.spouse_ids)
        return ids

    def children(self, person: PersonRecord) -> list[str]:
        """Children of every spouse family, in family order."""
        ids: list[str] = []
        for fid in person.spouse_family_ids:
            family = self.get_family(fid)
            if family:
                ids.extend(family.child_ids)
        return ids

    def ancestors(self, root_id: str, generations: int) -> list[str]:
        """Root plus ancestors up to `generations` (root is generation 1)."""
        return self._walk(root_id, generations, self.parents)

    def descendants(self, root_id: str, generations: int) -> list[str]:
        """Root plus descendants up to `generations` (root is generation 1)."""
        return self._walk(root_id, generations, self.children)

    def _walk(self, root_id: str, generations: int, relatives) -> list[str]:
        root = self.get_person(root_id)
        if root is None:
            return []

        ordered: list[str] = [root.id]
        seen: set[str] = {root.id}
        frontier = [root]
        for _ in range(generations - 1):
            next_frontier: list[PersonRecord] = []
            for person in frontier:
                for rid in relatives(person):
                    if rid in seen:
                        continue
                    relative = self.get_person(rid)
                    if relative is None:
                        continue
                    seen.add(rid)
                    ordered.append(rid)
                    next_frontier.append(relative)
            if not next_frontier:
                break
            frontier = next_frontier

        logger.debug("Walked %d individuals from %s", len(ordered), root_id)
        return ordered
