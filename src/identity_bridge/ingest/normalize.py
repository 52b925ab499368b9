"""Fold the three transport event shapes into display-name observations."""

from __future__ import annotations

import logging

from identity_bridge.core.exceptions import InvalidIdentifierError
from identity_bridge.core.types import DisplayNameObservation, Identifier, ObservationSource
from identity_bridge.ingest.types import (
    ContactUpdate,
    GroupSnapshot,
    MessageReceipt,
    ObservationEvent,
)
from identity_bridge.temporal.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


def _observation(
    raw_id: str,
    name: str | None,
    source: ObservationSource,
    clock: Clock,
    country_code: str | None,
    context_id: str | None = None,
) -> DisplayNameObservation | None:
    if not name or not name.strip():
        return None
    try:
        identifier = Identifier.parse(raw_id, country_code)
    except InvalidIdentifierError:
        logger.debug("Dropping observation with unparseable identifier %r", raw_id)
        return None
    return DisplayNameObservation(
        identifier=identifier,
        name=name.strip(),
        source=source,
        observed_at=clock.now(),
        context_id=context_id,
    )


def normalize_event(
    event: ObservationEvent,
    clock: Clock | None = None,
    country_code: str | None = None,
) -> list[DisplayNameObservation]:
    """Turn one transport event into zero or more observations.

    Self-originated messages and sightings without a display name carry
    no counterparty information and are dropped. A group snapshot yields
    one observation per named member.
    """
    clock = clock or SystemClock()

    if isinstance(event, MessageReceipt):
        if event.is_self:
            return []
        obs = _observation(
            event.sender_id, event.display_name, ObservationSource.MESSAGE,
            clock, country_code, context_id=event.context_id,
        )
        return [obs] if obs else []

    if isinstance(event, ContactUpdate):
        obs = _observation(
            event.identifier, event.display_name, ObservationSource.CONTACT_EVENT,
            clock, country_code,
        )
        return [obs] if obs else []

    if isinstance(event, GroupSnapshot):
        observations: list[DisplayNameObservation] = []
        for member in event.members:
            obs = _observation(
                member.identifier, member.display_name, ObservationSource.GROUP_SNAPSHOT,
                clock, country_code, context_id=event.context_id,
            )
            if obs:
                observations.append(obs)
        return observations

    raise TypeError(f"Unsupported observation event: {type(event).__name__}")
