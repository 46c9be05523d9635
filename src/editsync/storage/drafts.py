"""Offline draft persistence.

Drafts live in a key-value store under ``draft:{entity_id}:{field_id}``.
Each entity also has an index entry (``draft-index:{entity_id}``) listing
its drafted field ids, so ``load_all`` works against a store that offers
nothing beyond get/set/delete.

The draft store never raises to its caller:

- corrupted or unreadable entries read as absent (and are logged);
- failed writes are logged as warnings and reported through the return
  value, and the in-memory session carries on retrying.
"""

from __future__ import annotations

import json
import logging

from pydantic import ValidationError as PydanticValidationError

from editsync.core.errors import StorageError
from editsync.core.ids import DRAFT_INDEX_PREFIX, draft_index_key, draft_key, entity_from_index_key
from editsync.core.models import DraftRecord
from editsync.storage.kv import KeyValueStore

logger = logging.getLogger(__name__)


def _key(entity_id: str, field_id: str) -> str:
    try:
        return draft_key(entity_id, field_id)
    except ValueError as exc:
        raise StorageError(str(exc)) from exc


def _index_key(entity_id: str) -> str:
    try:
        return draft_index_key(entity_id)
    except ValueError as exc:
        raise StorageError(str(exc)) from exc


class OfflineDraftStore:
    """Load, persist, and remove DraftRecords."""

    def __init__(self, kv: KeyValueStore) -> None:
        self.kv = kv
        self.last_error: StorageError | None = None

    def save(self, draft: DraftRecord) -> bool:
        """Persist *draft*.  Returns ``False`` (and logs a warning) on storage failure."""
        try:
            self.kv.set(
                _key(draft.entity_id, draft.field_id),
                json.dumps(draft.to_dict(), sort_keys=True, default=str),
            )
            self._index_add(draft.entity_id, draft.field_id)
        except StorageError as exc:
            self._report(f"could not persist draft {draft.entity_id}/{draft.field_id}", exc)
            return False
        self.last_error = None
        return True

    def load(self, entity_id: str, field_id: str) -> DraftRecord | None:
        """Return the draft for a field, or ``None`` if absent or unreadable."""
        try:
            raw = self.kv.get(_key(entity_id, field_id))
        except StorageError as exc:
            self._report(f"could not read draft {entity_id}/{field_id}", exc)
            return None
        if raw is None:
            return None
        return self._decode(raw, entity_id, field_id)

    def delete(self, entity_id: str, field_id: str) -> bool:
        """Remove a draft.  Returns ``False`` on storage failure."""
        try:
            self.kv.delete(_key(entity_id, field_id))
            self._index_remove(entity_id, field_id)
        except StorageError as exc:
            self._report(f"could not delete draft {entity_id}/{field_id}", exc)
            return False
        return True

    def load_all(self, entity_id: str) -> list[DraftRecord]:
        """Return every readable draft of an entity, ordered by field id."""
        drafts: list[DraftRecord] = []
        for field_id in self._index_read(entity_id):
            draft = self.load(entity_id, field_id)
            if draft is not None:
                drafts.append(draft)
        return drafts

    def entity_ids(self) -> list[str]:
        """Return entity ids with at least one indexed draft.

        Needs a store that can list keys; returns ``[]`` otherwise.
        """
        keys_fn = getattr(self.kv, "keys", None)
        if keys_fn is None:
            return []
        try:
            keys = keys_fn(f"{DRAFT_INDEX_PREFIX}:")
        except StorageError as exc:
            self._report("could not list drafts", exc)
            return []
        ids = [entity_from_index_key(key) for key in keys]
        return [entity_id for entity_id in ids if self._index_read(entity_id)]

    # -----------------------------------------------------------------------
    # Internal helpers
    # -----------------------------------------------------------------------

    def _decode(self, raw: str, entity_id: str, field_id: str) -> DraftRecord | None:
        try:
            draft = DraftRecord.from_dict(json.loads(raw))
        except (json.JSONDecodeError, PydanticValidationError, TypeError) as exc:
            logger.warning("ignoring corrupted draft %s/%s: %s", entity_id, field_id, exc)
            return None
        if (draft.entity_id, draft.field_id) != (entity_id, field_id):
            logger.warning("ignoring misfiled draft under %s/%s", entity_id, field_id)
            return None
        return draft

    def _index_read(self, entity_id: str) -> list[str]:
        try:
            raw = self.kv.get(_index_key(entity_id))
        except StorageError as exc:
            self._report(f"could not read draft index for {entity_id}", exc)
            return []
        if raw is None:
            return []
        try:
            field_ids = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("ignoring corrupted draft index for %s", entity_id)
            return []
        if not isinstance(field_ids, list):
            return []
        return sorted({f for f in field_ids if isinstance(f, str)})

    def _index_add(self, entity_id: str, field_id: str) -> None:
        field_ids = self._index_read(entity_id)
        if field_id not in field_ids:
            field_ids.append(field_id)
            self.kv.set(_index_key(entity_id), json.dumps(sorted(field_ids)))

    def _index_remove(self, entity_id: str, field_id: str) -> None:
        field_ids = self._index_read(entity_id)
        if field_id not in field_ids:
            return
        field_ids.remove(field_id)
        if field_ids:
            self.kv.set(_index_key(entity_id), json.dumps(field_ids))
        else:
            self.kv.delete(_index_key(entity_id))

    def _report(self, message: str, exc: StorageError) -> None:
        self.last_error = exc
        logger.warning("%s: %s (continuing in memory)", message, exc)
