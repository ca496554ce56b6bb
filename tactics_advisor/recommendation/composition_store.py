"""In-memory composition index with atomic wholesale snapshot replacement."""

import threading
import time
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Tuple

from ..errors import CompositionStoreEmpty
from ..models import CompositionEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreSnapshot:
    """Immutable full set of compositions as ingested at one time."""

    entries: Tuple[CompositionEntry, ...]
    index: Mapping[str, CompositionEntry] = field(repr=False)
    ingested_at: float
    generation: int

    def __len__(self) -> int:
        return len(self.entries)


class CompositionStore:
    """Readers see one consistent snapshot; writers swap a whole new snapshot in."""

    def __init__(self):
        self._snapshot: Optional[StoreSnapshot] = None
        self._write_lock = threading.Lock()

    def replace(self, entries: Iterable[CompositionEntry], ingested_at: Optional[float] = None) -> StoreSnapshot:
        """Atomically replace every entry. Duplicate ids raise ValueError and keep the old snapshot."""
        ordered = tuple(entries)
        index = {}
        for entry in ordered:
            if entry.id in index:
                raise ValueError(f"Duplicate composition id: {entry.id}")
            index[entry.id] = entry

        with self._write_lock:
            generation = self._snapshot.generation + 1 if self._snapshot else 1
            snapshot = StoreSnapshot(
                entries=ordered,
                index=MappingProxyType(index),
                ingested_at=time.time() if ingested_at is None else ingested_at,
                generation=generation,
            )
            # Single reference assignment, readers hold either the old or the new snapshot
            self._snapshot = snapshot

        logger.info(f"Composition store replaced: {len(ordered)} entries (generation {generation})")
        return snapshot

    @property
    def snapshot(self) -> Optional[StoreSnapshot]:
        return self._snapshot

    def require_snapshot(self) -> StoreSnapshot:
        snapshot = self._snapshot
        if snapshot is None:
            raise CompositionStoreEmpty("No compositions have been ingested yet")
        return snapshot

    def get(self, comp_id: str) -> Optional[CompositionEntry]:
        snapshot = self._snapshot
        if snapshot is None:
            return None
        return snapshot.index.get(comp_id)

    def all(self) -> Tuple[CompositionEntry, ...]:
        snapshot = self._snapshot
        return snapshot.entries if snapshot else ()

    @property
    def ingested_at(self) -> Optional[float]:
        snapshot = self._snapshot
        return snapshot.ingested_at if snapshot else None

    def __len__(self) -> int:
        snapshot = self._snapshot
        return len(snapshot) if snapshot else 0
