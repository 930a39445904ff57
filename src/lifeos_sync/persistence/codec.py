"""JSON encoding of snapshots and backup rings."""

import json
from typing import Any, Union

from pydantic import ValidationError

from lifeos_sync.models.backup import BackupRecord
from lifeos_sync.models.snapshot import Snapshot
from lifeos_sync.persistence.errors import SerializationError


def encode_snapshot(snapshot: Snapshot) -> str:
    """Serializes a snapshot to its persisted JSON text.

    Raises:
        SerializationError: If the document holds non-JSON values.
    """
    try:
        return json.dumps(snapshot.to_document())
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Cannot encode snapshot: {e}") from e


def decode_snapshot(raw: Union[str, bytes, dict[str, Any]]) -> Snapshot:
    """Parses JSON text or an already-decoded document into a Snapshot.

    Raises:
        SerializationError: If the input is not valid JSON or does not
            match the snapshot schema.
    """
    try:
        document = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
        if not isinstance(document, dict):
            raise SerializationError(
                f"Snapshot document must be an object, got {type(document).__name__}"
            )
        return Snapshot.model_validate(document)
    except json.JSONDecodeError as e:
        raise SerializationError(f"Corrupt snapshot JSON: {e}") from e
    except ValidationError as e:
        raise SerializationError(f"Snapshot failed validation: {e}") from e


def encode_backups(records: list[BackupRecord]) -> str:
    try:
        return json.dumps(
            [r.model_dump(mode="json", by_alias=True) for r in records]
        )
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Cannot encode backups: {e}") from e


def decode_backups(raw: str) -> list[BackupRecord]:
    try:
        items = json.loads(raw)
        if not isinstance(items, list):
            raise SerializationError("Backup ring must be a JSON array")
        return [BackupRecord.model_validate(item) for item in items]
    except json.JSONDecodeError as e:
        raise SerializationError(f"Corrupt backup JSON: {e}") from e
    except ValidationError as e:
        raise SerializationError(f"Backup record failed validation: {e}") from e
