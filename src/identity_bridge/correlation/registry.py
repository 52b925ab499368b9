"""Bidirectional multimap between display names and identifiers."""

from __future__ import annotations

from dataclasses import dataclass, field

from identity_bridge.core.types import DisplayNameObservation, Identifier, normalize_name


@dataclass
class NameEvidence:
    """Identifiers observed under one normalized name, split by kind."""

    canonical: set[Identifier] = field(default_factory=set)
    pseudonymous: set[Identifier] = field(default_factory=set)

    def __bool__(self) -> bool:
        return bool(self.canonical or self.pseudonymous)


class NameRegistry:
    """Normalized name -> {canonical ids, pseudonymous ids}.

    Several identifiers sharing a name (family members, shared devices)
    is expected. Every identifier is also indexed back to all names it
    was seen under, plus the most recent one.
    """

    def __init__(self) -> None:
        self._canonical_by_name: dict[str, set[Identifier]] = {}
        self._pseudonymous_by_name: dict[str, set[Identifier]] = {}
        self._names_by_identifier: dict[Identifier, set[str]] = {}
        self._latest_name: dict[Identifier, str] = {}

    def record(self, observation: DisplayNameObservation) -> str:
        """Fold an observation in. Returns the normalized name."""
        return self.add(observation.identifier, observation.name)

    def add(self, identifier: Identifier, name: str) -> str:
        """Register *identifier* under *name*. Idempotent."""
        norm = normalize_name(name)
        if not norm:
            return norm
        bucket = self._canonical_by_name if identifier.is_canonical else self._pseudonymous_by_name
        bucket.setdefault(norm, set()).add(identifier)
        self._names_by_identifier.setdefault(identifier, set()).add(norm)
        self._latest_name[identifier] = norm
        return norm

    def identifiers_for_name(self, name: str) -> NameEvidence:
        """Copy of the evidence recorded under *name*."""
        norm = normalize_name(name)
        return NameEvidence(
            canonical=set(self._canonical_by_name.get(norm, set())),
            pseudonymous=set(self._pseudonymous_by_name.get(norm, set())),
        )

    def name_for_identifier(self, identifier: Identifier) -> str | None:
        """Most recent name *identifier* was seen under (last write wins)."""
        return self._latest_name.get(identifier)

    def names_for(self, identifier: Identifier) -> set[str]:
        """All names *identifier* was ever seen under."""
        return set(self._names_by_identifier.get(identifier, set()))

    def names(self) -> list[str]:
        """All known normalized names."""
        return sorted(set(self._canonical_by_name) | set(self._pseudonymous_by_name))

    def canonical_identifiers(self) -> list[Identifier]:
        return sorted(
            (i for i in self._names_by_identifier if i.is_canonical),
            key=lambda i: i.raw,
        )

    def has_canonical(self, name: str) -> bool:
        return bool(self._canonical_by_name.get(normalize_name(name)))

    def forget(self, identifier: Identifier) -> None:
        """Drop every trace of *identifier*, pruning emptied names."""
        bucket = self._canonical_by_name if identifier.is_canonical else self._pseudonymous_by_name
        for norm in self._names_by_identifier.pop(identifier, set()):
            ids = bucket.get(norm)
            if ids is None:
                continue
            ids.discard(identifier)
            if not ids:
                del bucket[norm]
        self._latest_name.pop(identifier, None)

    def set_latest_name(self, identifier: Identifier, name: str) -> None:
        """Restore the last-seen name for an identifier already registered."""
        norm = normalize_name(name)
        if norm in self._names_by_identifier.get(identifier, set()):
            self._latest_name[identifier] = norm

    def clear(self) -> None:
        self._canonical_by_name.clear()
        self._pseudonymous_by_name.clear()
        self._names_by_identifier.clear()
        self._latest_name.clear()

    def export(self) -> dict[str, dict[str, list[str]]]:
        """Plain-data view keyed by normalized name."""
        return {
            norm: {
                "canonical": sorted(i.raw for i in self._canonical_by_name.get(norm, set())),
                "pseudonymous": sorted(i.raw for i in self._pseudonymous_by_name.get(norm, set())),
            }
            for norm in self.names()
        }

    def export_latest(self) -> dict[str, str]:
        return {identifier.raw: norm for identifier, norm in sorted(
            self._latest_name.items(), key=lambda item: item[0].raw
        )}

    @property
    def size(self) -> int:
        """Number of distinct names."""
        return len(set(self._canonical_by_name) | set(self._pseudonymous_by_name))

    @property
    def identifier_count(self) -> int:
        return len(self._names_by_identifier)
