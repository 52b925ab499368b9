"""Core data types for the identity bridge."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from identity_bridge.core.exceptions import InvalidIdentifierError
from identity_bridge.temporal.clock import utc_now

# JID domains the transport uses for phone-number addresses.
CANONICAL_DOMAINS = frozenset({"s.whatsapp.net", "c.us"})

_DIGITS_RE = re.compile(r"[0-9]+")
_PHONE_RE = re.compile(r"\+?[0-9\s\-().]+")
_WHITESPACE_RE = re.compile(r"\s+")


class IdentifierKind(Enum):
    """Structural kind of a participant identifier."""

    CANONICAL = "canonical"  # Portable address (phone number digits)
    PSEUDONYMOUS = "pseudonymous"  # Opaque, transport-issued token


class ObservationSource(Enum):
    """Event shape a display-name observation came from."""

    MESSAGE = "message"
    CONTACT_EVENT = "contact_event"
    GROUP_SNAPSHOT = "group_snapshot"


class MappingSource(Enum):
    """How a pseudonymous -> canonical mapping was established."""

    EXACT_NAME = "exact_name"
    FUZZY_NAME = "fuzzy_name"
    GROUP_BACKFILL = "group_backfill"
    FORCED = "forced"


def normalize_name(name: str) -> str:
    """Case-fold, strip, collapse whitespace."""
    return _WHITESPACE_RE.sub(" ", name.strip()).casefold()


def _apply_country_code(digits: str, country_code: str | None) -> str:
    if country_code and digits.startswith("0"):
        return country_code + digits[1:]
    return digits


@dataclass(frozen=True)
class Identifier:
    """A participant identifier.

    ``raw`` is the normalized form: bare digits for canonical addresses,
    ``local@domain`` (or an opaque token) for pseudonymous ones. The kind
    is derived from ``raw`` and never stored.
    """

    raw: str

    @property
    def kind(self) -> IdentifierKind:
        if _DIGITS_RE.fullmatch(self.raw):
            return IdentifierKind.CANONICAL
        return IdentifierKind.PSEUDONYMOUS

    @property
    def is_canonical(self) -> bool:
        return self.kind is IdentifierKind.CANONICAL

    @property
    def is_pseudonymous(self) -> bool:
        return self.kind is IdentifierKind.PSEUDONYMOUS

    @property
    def local_part(self) -> str:
        """The identifier without any ``@domain`` suffix."""
        return self.raw.split("@", 1)[0]

    def __str__(self) -> str:
        return self.raw

    @classmethod
    def parse(cls, value: str | Identifier, country_code: str | None = None) -> Identifier:
        """Parse a transport address into an :class:`Identifier`.

        ``628123@s.whatsapp.net``, ``628123@c.us`` and phone-shaped strings
        such as ``+62 812-3`` become canonical digits. ``80444@lid`` and any
        other domain stay pseudonymous with their domain attached. Device
        suffixes (``628123:7@s.whatsapp.net``) are dropped.

        Raises:
            InvalidIdentifierError: If *value* is empty or has no usable part.
        """
        if isinstance(value, Identifier):
            return value
        if not isinstance(value, str):
            raise InvalidIdentifierError(value)
        text = value.strip()
        if not text:
            raise InvalidIdentifierError(value)

        local, sep, domain = text.partition("@")
        if sep:
            local = local.split(":", 1)[0].strip()
            domain = domain.strip().lower()
            if not local or not domain:
                raise InvalidIdentifierError(value)
            if domain in CANONICAL_DOMAINS:
                digits = re.sub(r"\D", "", local)
                if not digits:
                    raise InvalidIdentifierError(value, f"No digits in phone address: {value!r}")
                return cls(_apply_country_code(digits, country_code))
            return cls(f"{local}@{domain}")

        if _PHONE_RE.fullmatch(text) and any(ch.isdigit() for ch in text):
            return cls(_apply_country_code(re.sub(r"\D", "", text), country_code))
        return cls(text)


@dataclass(frozen=True)
class DisplayNameObservation:
    """One sighting of an identifier under a display name."""

    identifier: Identifier
    name: str
    source: ObservationSource
    observed_at: datetime = field(default_factory=utc_now)
    context_id: str | None = None

    @property
    def normalized_name(self) -> str:
        return normalize_name(self.name)


@dataclass
class Mapping:
    """A confirmed pseudonymous -> canonical correspondence."""

    pseudonymous: Identifier
    canonical: Identifier
    source: MappingSource
    created_at: datetime = field(default_factory=utc_now)

    @property
    def is_forced(self) -> bool:
        return self.source is MappingSource.FORCED


@dataclass
class PendingContact:
    """A canonical sighting waiting for a pseudonymous counterpart."""

    canonical: Identifier
    name: str
    first_observed_at: datetime
    source: ObservationSource
    context_id: str | None = None

    @property
    def normalized_name(self) -> str:
        return normalize_name(self.name)
