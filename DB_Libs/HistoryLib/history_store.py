"""
History ring of past creations.

The store keeps at most HISTORY_CAPACITY creation records, oldest first,
plus a ``selected_index`` that is always either None or a valid index.
Every mutation writes the whole ring and the selection through to durable
key-value storage; emptying the ring removes the storage keys entirely.

Asynchronous completions (recolor commits, regenerated outlines, finished
stories) must write through a RecordRef captured when their request was
issued. Because entries shift on eviction and removal, a bare index can
end up pointing at a different record; the ref's record id detects that
and the write is dropped.

Classes:
    CreationRecord: One sketch -> outline -> story creation
    RecordRef: Stable (index, record id) handle for in-flight writes
    HistoryStore: Fixed-capacity ring with a selection pointer
"""

import json
import logging
import uuid
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple

from DB_Libs.HistoryLib.key_value_storage import KeyValueStorage
from DB_Libs.constants import (
    FIELD_GENERATED,
    FIELD_PROMPT,
    FIELD_RECOGNIZED,
    FIELD_RECORD_ID,
    FIELD_SKETCH,
    FIELD_STORY,
    FIELD_STORY_IMAGE,
    HISTORY_CAPACITY,
    STORAGE_KEY_HISTORY,
    STORAGE_KEY_SELECTED_INDEX,
)

logger = logging.getLogger(__name__)


def _new_record_id() -> str:
    return uuid.uuid4().hex


@dataclass
class CreationRecord:
    """A single creation kept in the history ring.

    Attributes:
        sketch: Base64 PNG of the user's sketch (or captured photo)
        generated: Base64 PNG of the outline, including any coloring so far
        recognized_description: Text the description service recognized
        prompt: The idea prompt shown when the sketch was made
        story: Generated story text (empty until a story is requested)
        story_image: Optional base64 image illustrating the story
        record_id: Stable identifier, survives index shifts
    """
    sketch: str
    generated: str
    recognized_description: str = ""
    prompt: str = ""
    story: str = ""
    story_image: Optional[str] = None
    record_id: str = field(default_factory=_new_record_id)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted dictionary format."""
        data: Dict[str, Any] = {
            FIELD_RECORD_ID: self.record_id,
            FIELD_SKETCH: self.sketch,
            FIELD_GENERATED: self.generated,
            FIELD_RECOGNIZED: self.recognized_description,
            FIELD_PROMPT: self.prompt,
            FIELD_STORY: self.story,
        }
        if self.story_image:
            data[FIELD_STORY_IMAGE] = self.story_image
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CreationRecord":
        """
        Create from the persisted dictionary format.

        Raises:
            ValueError: If the sketch or generated image is missing
        """
        sketch = data.get(FIELD_SKETCH)
        generated = data.get(FIELD_GENERATED)
        if not isinstance(sketch, str) or not isinstance(generated, str):
            raise ValueError("History entry needs string 'sketch' and 'generated' fields")

        story_image = data.get(FIELD_STORY_IMAGE)
        return cls(
            sketch=sketch,
            generated=generated,
            recognized_description=str(data.get(FIELD_RECOGNIZED) or ""),
            prompt=str(data.get(FIELD_PROMPT) or ""),
            story=str(data.get(FIELD_STORY) or ""),
            story_image=str(story_image) if story_image else None,
            record_id=str(data.get(FIELD_RECORD_ID) or _new_record_id()),
        )


@dataclass(frozen=True)
class RecordRef:
    """Handle to a record captured when an asynchronous request starts."""
    index: int
    record_id: str


_PATCHABLE_FIELDS = {f.name for f in fields(CreationRecord)} - {"record_id"}


class HistoryStore:
    """
    Fixed-capacity, oldest-evicted-first history with a selection pointer.

    The store is created by rehydrating from ``storage`` (or empty when
    nothing valid is stored) and persists after every mutation.

    Example:
        >>> store = HistoryStore(MemoryStorage())
        >>> index = store.append(CreationRecord(sketch="...", generated="..."))
        >>> store.select(index)
        True
        >>> store.selected().sketch
        '...'
    """

    def __init__(self, storage: KeyValueStorage, capacity: int = HISTORY_CAPACITY):
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        self._storage = storage
        self._capacity = capacity
        self._records: List[CreationRecord] = []
        self._selected_index: Optional[int] = None
        self._rehydrate()

    # ========================================================================
    # Persistence
    # ========================================================================

    def _rehydrate(self) -> None:
        raw_history = self._storage.get(STORAGE_KEY_HISTORY)
        if not raw_history:
            return

        try:
            payload = json.loads(raw_history)
        except json.JSONDecodeError as exc:
            logger.error(f"Failed to parse saved history: {exc}")
            return

        if not isinstance(payload, list):
            logger.error("Saved history is not a list, starting empty")
            return

        records: List[CreationRecord] = []
        # Saved position -> position among the records that parsed
        kept: Dict[int, int] = {}
        for position, entry in enumerate(payload):
            if not isinstance(entry, dict):
                logger.warning(f"Skipping malformed history entry at {position}")
                continue
            try:
                record = CreationRecord.from_dict(entry)
            except ValueError as exc:
                logger.warning(f"Skipping malformed history entry at {position}: {exc}")
                continue
            kept[position] = len(records)
            records.append(record)

        selected = self._parse_index(self._storage.get(STORAGE_KEY_SELECTED_INDEX), len(payload))
        if selected is not None:
            selected = kept.get(selected)
        overflow = max(0, len(records) - self._capacity)
        if overflow:
            records = records[overflow:]
            selected = None if selected is None or selected < overflow else selected - overflow

        self._records = records
        self._selected_index = selected if selected is not None and selected < len(records) else None
        logger.info(f"Restored {len(records)} history record(s), selected={self._selected_index}")

    @staticmethod
    def _parse_index(raw: Optional[str], length: int) -> Optional[int]:
        if raw is None:
            return None
        try:
            index = int(raw)
        except (TypeError, ValueError):
            return None
        if 0 <= index < length:
            return index
        return None

    def _persist(self) -> None:
        if not self._records:
            self._storage.remove(STORAGE_KEY_HISTORY)
            self._storage.remove(STORAGE_KEY_SELECTED_INDEX)
            return

        self._storage.set(STORAGE_KEY_HISTORY, json.dumps([record.to_dict() for record in self._records]))
        if self._selected_index is not None:
            self._storage.set(STORAGE_KEY_SELECTED_INDEX, str(self._selected_index))
        else:
            self._storage.remove(STORAGE_KEY_SELECTED_INDEX)

    # ========================================================================
    # Queries
    # ========================================================================

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def selected_index(self) -> Optional[int]:
        return self._selected_index

    @property
    def records(self) -> Tuple[CreationRecord, ...]:
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __getitem__(self, index: int) -> CreationRecord:
        if not 0 <= index < len(self._records):
            raise IndexError(f"History index {index} out of range (size {len(self._records)})")
        return self._records[index]

    def selected(self) -> Optional[CreationRecord]:
        """The selected record, or None when nothing is selected."""
        if self._selected_index is None:
            return None
        return self._records[self._selected_index]

    def ref_for(self, index: Optional[int]) -> Optional[RecordRef]:
        """Capture a RecordRef for ``index`` (None when out of range)."""
        if index is None or not 0 <= index < len(self._records):
            return None
        return RecordRef(index, self._records[index].record_id)

    def selected_ref(self) -> Optional[RecordRef]:
        return self.ref_for(self._selected_index)

    def index_of(self, record_id: str) -> Optional[int]:
        for index, record in enumerate(self._records):
            if record.record_id == record_id:
                return index
        return None

    # ========================================================================
    # Mutations
    # ========================================================================

    def append(self, record: CreationRecord) -> int:
        """
        Add a record, evicting the oldest one if the ring is full.

        The selection keeps pointing at the same record: it shifts down one
        slot on eviction, or becomes None if the evicted record was selected.

        Returns:
            Index of the new record
        """
        if len(self._records) >= self._capacity:
            evicted = self._records.pop(0)
            logger.debug(f"History full, evicted record {evicted.record_id}")
            if self._selected_index is not None:
                self._selected_index = self._selected_index - 1 if self._selected_index > 0 else None

        self._records.append(record)
        self._persist()
        return min(len(self._records) - 1, self._capacity - 1)

    def update_at(self, index: int, patch: Mapping[str, Any], expected_id: Optional[str] = None) -> bool:
        """
        Merge ``patch`` into the record at ``index``.

        Out-of-range indices, and indices now holding a record other than
        ``expected_id``, are ignored: a stale completion must not overwrite
        an unrelated record.

        Args:
            index: Target slot
            patch: Field name -> new value (CreationRecord attribute names)
            expected_id: Record id the caller captured, if any

        Returns:
            True if the record was updated

        Raises:
            ValueError: If the patch names unknown or read-only fields
        """
        unknown = set(patch) - _PATCHABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update history fields: {', '.join(sorted(unknown))}")

        if not 0 <= index < len(self._records):
            logger.warning(f"Dropped history update for out-of-range index {index}")
            return False

        current = self._records[index]
        if expected_id is not None and current.record_id != expected_id:
            logger.warning(f"Dropped stale history update: slot {index} no longer holds record {expected_id}")
            return False

        self._records[index] = replace(current, **dict(patch))
        self._persist()
        return True

    def update_ref(self, ref: Optional[RecordRef], patch: Mapping[str, Any]) -> bool:
        """Update the record ``ref`` was captured for, if it is still there."""
        if ref is None:
            return False
        return self.update_at(ref.index, patch, expected_id=ref.record_id)

    def remove(self, index: int) -> Optional[CreationRecord]:
        """
        Delete the record at ``index``.

        The selection is cleared if it pointed at the removed record and
        shifted down if it pointed past it.

        Returns:
            The removed record, or None if ``index`` was out of range
        """
        if not 0 <= index < len(self._records):
            return None

        removed = self._records.pop(index)
        if self._selected_index is not None:
            if self._selected_index == index:
                self._selected_index = None
            elif index < self._selected_index:
                self._selected_index -= 1

        self._persist()
        return removed

    def select(self, index: Optional[int]) -> bool:
        """
        Point the selection at ``index`` (or clear it with None).

        Returns:
            False, without changing anything, for an out-of-range index
        """
        if index is not None and not 0 <= index < len(self._records):
            return False
        self._selected_index = index
        self._persist()
        return True

    def clear(self) -> None:
        """Drop every record and remove the storage keys."""
        self._records = []
        self._selected_index = None
        self._persist()
