"""Adapters from raw transport payloads (Baileys-style dicts) to events."""

from __future__ import annotations

from typing import Any, Iterable

from identity_bridge.ingest.types import ContactUpdate, GroupMember, GroupSnapshot, MessageReceipt

# Fields the transport may carry a sender's display name in, by priority.
_NAME_FIELDS = ("pushName", "verifiedBizName", "notify")


def _first_name(payload: dict[str, Any], fields: Iterable[str] = _NAME_FIELDS) -> str | None:
    for key in fields:
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def message_from_transport(raw: dict[str, Any]) -> MessageReceipt | None:
    """Build a :class:`MessageReceipt` from a raw message.

    Returns None when the payload has no ``key`` or no addressable sender.
    In groups the sender is ``key.participant``; in direct chats it is the
    chat itself.
    """
    key = raw.get("key") if isinstance(raw, dict) else None
    if not isinstance(key, dict):
        return None
    context_id = key.get("remoteJid")
    sender_id = key.get("participant") or context_id
    if not context_id or not sender_id:
        return None
    return MessageReceipt(
        context_id=context_id,
        sender_id=sender_id,
        is_self=bool(key.get("fromMe")),
        display_name=_first_name(raw),
    )


def contacts_from_transport(raw: Any) -> list[ContactUpdate]:
    """Build contact updates from a ``contacts.update`` payload."""
    if not isinstance(raw, list):
        return []
    updates: list[ContactUpdate] = []
    for contact in raw:
        if not isinstance(contact, dict) or not contact.get("id"):
            continue
        name = _first_name(contact, ("name", "notify", "verifiedName"))
        if name:
            updates.append(ContactUpdate(identifier=contact["id"], display_name=name))
    return updates


def group_from_transport(context_id: str, metadata: dict[str, Any]) -> GroupSnapshot:
    """Build a :class:`GroupSnapshot` from raw group metadata."""
    members = tuple(
        GroupMember(identifier=p["id"], display_name=_first_name(p))
        for p in metadata.get("participants") or []
        if isinstance(p, dict) and p.get("id")
    )
    return GroupSnapshot(
        context_id=metadata.get("id") or context_id,
        members=members,
        subject=metadata.get("subject"),
    )
