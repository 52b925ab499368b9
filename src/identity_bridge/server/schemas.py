"""Pydantic request/response models for the REST API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


# ========== Common ==========

class HealthResponse(BaseModel):
    status: str
    version: str
    uptime_seconds: float
    mappings: int


# ========== Resolver ==========

class ResolveResponse(BaseModel):
    identifier: str
    canonical: str | None
    resolved: bool


class ReverseLookupResponse(BaseModel):
    canonical: str
    pseudonymous: str | None


class NamesResponse(BaseModel):
    identifier: str
    names: list[str]
    latest: str | None = None


class NameMappingsResponse(BaseModel):
    name: str
    canonical: list[str]
    pseudonymous: list[str]


class ForceMappingRequest(BaseModel):
    pseudonymous: str = Field(description="Pseudonymous id, e.g. 80444922015783@lid")
    canonical: str = Field(description="Canonical address, e.g. 6281130569787@s.whatsapp.net")
    name: str | None = None


class MappingResponse(BaseModel):
    pseudonymous: str
    canonical: str
    source: str
    created_at: str


class StatsResponse(BaseModel):
    mappings: int
    pending_contacts: int
    names: int
    identifiers: int
    unresolved: int
    dirty: bool
    last_flush: str | None = None
    caches: dict[str, dict[str, Any]] = Field(default_factory=dict)
    mapping_list: list[dict[str, Any]] | None = None
    pending_list: list[dict[str, Any]] | None = None
    unresolved_names: dict[str, str] | None = None


# ========== Observations ==========

class MessageObservationRequest(BaseModel):
    context_id: str
    sender_id: str
    is_self: bool = False
    display_name: str | None = None


class ContactObservation(BaseModel):
    identifier: str
    display_name: str | None = None


class ContactsObservationRequest(BaseModel):
    contacts: list[ContactObservation]


class GroupMemberItem(BaseModel):
    identifier: str
    display_name: str | None = None


class GroupObservationRequest(BaseModel):
    context_id: str
    members: list[GroupMemberItem] = Field(default_factory=list)
    subject: str | None = None


class ObservationResponse(BaseModel):
    observations_accepted: bool = True
    mappings_created: list[MappingResponse] = Field(default_factory=list)


class BackfillRequest(BaseModel):
    context_ids: list[str]
    timeout: float | None = None


class BackfillResponse(BaseModel):
    contexts_requested: int
    contexts_processed: int
    contexts_failed: list[str]
    members_processed: int
    mappings_created: int
    pending_contacts: int
