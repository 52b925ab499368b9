"""Observation ingest REST endpoints, for transports running out of process."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from identity_bridge.correlation.engine import CorrelationEngine
from identity_bridge.ingest.types import ContactUpdate, GroupMember, GroupSnapshot, MessageReceipt
from identity_bridge.server.dependencies import get_engine
from identity_bridge.server.rest.routers.resolver import mapping_response
from identity_bridge.server.schemas import (
    BackfillRequest,
    BackfillResponse,
    ContactsObservationRequest,
    GroupObservationRequest,
    MessageObservationRequest,
    ObservationResponse,
)

router = APIRouter()


@router.post("/observations/message")
async def observe_message(
    body: MessageObservationRequest,
    engine: CorrelationEngine = Depends(get_engine),
) -> ObservationResponse:
    created = engine.observe(MessageReceipt(
        context_id=body.context_id,
        sender_id=body.sender_id,
        is_self=body.is_self,
        display_name=body.display_name,
    ))
    return ObservationResponse(mappings_created=[mapping_response(m) for m in created])


@router.post("/observations/contacts")
async def observe_contacts(
    body: ContactsObservationRequest,
    engine: CorrelationEngine = Depends(get_engine),
) -> ObservationResponse:
    created = []
    for contact in body.contacts:
        created.extend(engine.observe(
            ContactUpdate(identifier=contact.identifier, display_name=contact.display_name)
        ))
    return ObservationResponse(mappings_created=[mapping_response(m) for m in created])


@router.post("/observations/group")
async def observe_group(
    body: GroupObservationRequest,
    engine: CorrelationEngine = Depends(get_engine),
) -> ObservationResponse:
    created = engine.observe(GroupSnapshot(
        context_id=body.context_id,
        members=tuple(
            GroupMember(identifier=m.identifier, display_name=m.display_name)
            for m in body.members
        ),
        subject=body.subject,
    ))
    return ObservationResponse(mappings_created=[mapping_response(m) for m in created])


@router.post("/observations/backfill")
async def backfill(
    body: BackfillRequest,
    engine: CorrelationEngine = Depends(get_engine),
) -> BackfillResponse:
    """Fetch membership of each context from the transport, one at a time."""
    report = await engine.backfill(body.context_ids, timeout=body.timeout)
    return BackfillResponse(
        contexts_requested=report.contexts_requested,
        contexts_processed=report.contexts_processed,
        contexts_failed=report.contexts_failed,
        members_processed=report.members_processed,
        mappings_created=report.mappings_created,
        pending_contacts=report.pending_contacts,
    )
