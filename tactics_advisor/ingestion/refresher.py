"""Refreshes the composition store from data sources fetched through the rate limiter."""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Optional

from ..errors import Cancelled
from ..models import CompositionEntry
from ..recommendation import CompositionStore, StoreSnapshot
from .rate_limiter import RateLimiter
from .validation import parse_entries

logger = logging.getLogger(__name__)

Source = Callable[[], Any]  # Returns a list of composition dicts, or {"compositions": [...]}


def extract_payloads(raw: Any) -> List[Any]:
    """Accept a bare list or a wrapper object with a compositions/data list."""
    if isinstance(raw, list):
        return raw
    if isinstance(raw, dict):
        for key in ("compositions", "data"):
            if isinstance(raw.get(key), list):
                return raw[key]
    raise ValueError(f"Unrecognized composition payload of type {type(raw).__name__}")


def read_compositions_payload(path: str) -> List[Any]:
    with open(path, "r", encoding="utf-8") as f:
        return extract_payloads(json.load(f))


def load_compositions_file(path: str) -> List[CompositionEntry]:
    """Load a local composition database; any invalid entry or duplicate id raises ValueError."""
    entries, rejected = parse_entries(read_compositions_payload(path))
    if rejected:
        details = "; ".join(f"{comp_id}: {', '.join(str(i) for i in issues)}" for comp_id, issues in rejected)
        raise ValueError(f"Invalid compositions in {path}: {details}")

    seen = set()
    for entry in entries:
        if entry.id in seen:
            raise ValueError(f"Duplicate composition id in {path}: {entry.id}")
        seen.add(entry.id)

    logger.info(f"Loaded {len(entries)} compositions from {path}")
    return entries


@dataclass
class RefreshReport:
    accepted: int = 0
    rejected: int = 0
    duplicates: int = 0
    failed_sources: List[str] = field(default_factory=list)
    snapshot: Optional[StoreSnapshot] = None  # None when the store was left untouched

    @property
    def replaced(self) -> bool:
        return self.snapshot is not None


class CompositionRefresher:
    """Fetches every source through the limiter and swaps the merged result into the store."""

    def __init__(self, store: CompositionStore, limiter: RateLimiter):
        self.store = store
        self.limiter = limiter

    def refresh(self, sources: Iterable[Source], timeout: Optional[float] = None) -> RefreshReport:
        """Replace the store with every valid entry from all sources; earlier sources win duplicate ids.

        The store is left untouched when no source yields a valid entry.
        """
        sources = list(sources)
        futures = [self.limiter.submit(source) for source in sources]
        report = RefreshReport()
        merged: List[CompositionEntry] = []
        seen = set()

        for index, (source, future) in enumerate(zip(sources, futures)):
            name = getattr(source, "__name__", f"source[{index}]")
            try:
                payloads = extract_payloads(future.result(timeout=timeout))
            except Cancelled:
                logger.warning(f"Composition source {name} was cancelled")
                report.failed_sources.append(name)
                continue
            except Exception as e:
                logger.error(f"Composition source {name} failed: {e}")
                report.failed_sources.append(name)
                continue

            entries, rejected = parse_entries(payloads)
            report.rejected += len(rejected)
            for entry in entries:
                if entry.id in seen:
                    report.duplicates += 1
                    logger.debug(f"Skipping duplicate composition {entry.id} from {name}")
                    continue
                seen.add(entry.id)
                merged.append(entry)

        report.accepted = len(merged)
        if not merged:
            logger.warning(
                f"Composition refresh produced no valid entries ({len(report.failed_sources)} sources failed); "
                f"keeping the current snapshot"
            )
            return report

        report.snapshot = self.store.replace(merged)
        logger.info(
            f"Composition refresh: {report.accepted} accepted, {report.rejected} rejected, "
            f"{report.duplicates} duplicates, {len(report.failed_sources)} failed sources"
        )
        return report
