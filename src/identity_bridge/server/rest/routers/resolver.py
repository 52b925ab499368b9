"""Identifier resolution REST endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from identity_bridge.core.types import Mapping, normalize_name
from identity_bridge.correlation.engine import CorrelationEngine
from identity_bridge.server.dependencies import get_engine
from identity_bridge.server.schemas import (
    ForceMappingRequest,
    MappingResponse,
    NameMappingsResponse,
    NamesResponse,
    ResolveResponse,
    ReverseLookupResponse,
    StatsResponse,
)

router = APIRouter()


def mapping_response(mapping: Mapping) -> MappingResponse:
    return MappingResponse(
        pseudonymous=mapping.pseudonymous.raw,
        canonical=mapping.canonical.raw,
        source=mapping.source.value,
        created_at=mapping.created_at.isoformat(),
    )


@router.get("/resolver/resolve/{identifier}")
async def resolve(
    identifier: str,
    engine: CorrelationEngine = Depends(get_engine),
) -> ResolveResponse:
    """Resolve a participant id to its canonical address."""
    canonical = engine.resolve(identifier)
    return ResolveResponse(identifier=identifier, canonical=canonical, resolved=canonical is not None)


@router.get("/resolver/reverse/{canonical}")
async def reverse_lookup(
    canonical: str,
    engine: CorrelationEngine = Depends(get_engine),
) -> ReverseLookupResponse:
    """Pseudonymous id mapped to a canonical address."""
    return ReverseLookupResponse(canonical=canonical, pseudonymous=engine.reverse_lookup(canonical))


@router.get("/resolver/names/{identifier}")
async def names_for(
    identifier: str,
    engine: CorrelationEngine = Depends(get_engine),
) -> NamesResponse:
    """Display names an identifier was observed under."""
    return NamesResponse(
        identifier=identifier,
        names=sorted(engine.names_for(identifier)),
        latest=engine.name_for_identifier(identifier),
    )


@router.get("/resolver/mappings")
async def identifiers_for_name(
    name: str = Query(min_length=1),
    engine: CorrelationEngine = Depends(get_engine),
) -> NameMappingsResponse:
    """Identifiers of either kind observed under a display name."""
    evidence = engine.identifiers_for_name(name)
    return NameMappingsResponse(
        name=normalize_name(name),
        canonical=sorted(i.raw for i in evidence.canonical),
        pseudonymous=sorted(i.raw for i in evidence.pseudonymous),
    )


@router.post("/resolver/force-mapping")
async def force_mapping(
    body: ForceMappingRequest,
    engine: CorrelationEngine = Depends(get_engine),
) -> MappingResponse:
    """Administrative override of a pseudonymous -> canonical mapping."""
    mapping = engine.force_map(body.pseudonymous, body.canonical, body.name)
    return mapping_response(mapping)


@router.get("/resolver/stats")
async def stats(
    detailed: bool = False,
    engine: CorrelationEngine = Depends(get_engine),
) -> StatsResponse:
    """Mapping, pending and registry counts."""
    return StatsResponse(**engine.stats(detailed=detailed))
