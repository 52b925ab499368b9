"""SnapshotStore: persist the mapping store and name registry as one JSON document."""

from __future__ import annotations

import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from identity_bridge.core.exceptions import SnapshotError

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


class NameEntryDocument(BaseModel):
    canonical: list[str] = Field(default_factory=list)
    pseudonymous: list[str] = Field(default_factory=list)


class MappingDetailDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    canonical: str
    source: str
    created_at: datetime = Field(alias="createdAt")


class SnapshotDocument(BaseModel):
    """On-disk layout.

    ``mappings``, ``reverse``, ``nameRegistry`` and ``lastUpdated`` are the
    long-standing keys; ``version``, ``identifierNames`` and
    ``mappingDetails`` are optional so older files still load.
    """

    model_config = ConfigDict(populate_by_name=True)

    version: int = SNAPSHOT_VERSION
    mappings: dict[str, str] = Field(default_factory=dict)
    reverse: dict[str, str] = Field(default_factory=dict)
    name_registry: dict[str, NameEntryDocument] = Field(
        default_factory=dict, alias="nameRegistry"
    )
    identifier_names: dict[str, str] = Field(default_factory=dict, alias="identifierNames")
    mapping_details: dict[str, MappingDetailDocument] = Field(
        default_factory=dict, alias="mappingDetails"
    )
    last_updated: datetime | None = Field(default=None, alias="lastUpdated")


class SnapshotStore:
    """Reads and atomically writes the snapshot file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> SnapshotDocument | None:
        """Read the snapshot. Returns None when no file exists yet.

        Raises:
            SnapshotError: If the file is unreadable or malformed.
        """
        if not self.path.exists():
            logger.info("No existing snapshot found at %s", self.path)
            return None
        try:
            text = self.path.read_text(encoding="utf-8")
            return SnapshotDocument.model_validate_json(text)
        except (OSError, UnicodeDecodeError, ValidationError) as e:
            raise SnapshotError(str(self.path), f"Unreadable snapshot {self.path}: {e}") from e

    def save(self, document: SnapshotDocument) -> None:
        """Write the snapshot via a temp file + rename.

        Raises:
            SnapshotError: On any I/O failure.
        """
        payload = document.model_dump_json(by_alias=True, indent=2)
        tmp_name: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                try:
                    os.unlink(tmp_name)
                except OSError:
                    logger.debug("Could not remove temp snapshot %s", tmp_name)
            raise SnapshotError(str(self.path), f"Could not write snapshot {self.path}: {e}") from e

    def delete(self) -> bool:
        """Remove the snapshot file. Returns True if a file was removed."""
        try:
            self.path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError:
            logger.warning("Could not delete snapshot %s", self.path, exc_info=True)
            return False
