"""Structural checks for raw composition payloads before they become CompositionEntry models."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from ..models import CompositionEntry

logger = logging.getLogger(__name__)


@dataclass
class ValidationIssue:
    field: str
    message: str
    value: Any = None

    def __str__(self) -> str:
        return f"{self.field}: {self.message}" + (f" (got {self.value!r})" if self.value is not None else "")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_range(issues: List[ValidationIssue], payload: Dict[str, Any], key: str, low: float, high: float, label: str):
    if key not in payload:
        return
    value = payload[key]
    if not _is_number(value) or not low <= value <= high:
        issues.append(ValidationIssue(key, f"{label} must be a number between {low:g} and {high:g}", value))


def validate_entry_payload(payload: Any) -> List[ValidationIssue]:
    """Return every problem found in one raw composition dict; an empty list means valid."""
    if not isinstance(payload, dict):
        return [ValidationIssue("", "Composition must be an object", type(payload).__name__)]

    issues: List[ValidationIssue] = []

    if not payload.get("id"):
        issues.append(ValidationIssue("id", "Composition id is required"))
    if not payload.get("name"):
        issues.append(ValidationIssue("name", "Composition name is required"))

    units = payload.get("units")
    if not isinstance(units, list):
        issues.append(ValidationIssue("units", "Composition must have a units list"))
    elif not units:
        issues.append(ValidationIssue("units", "Composition must have at least one unit"))
    else:
        for index, unit in enumerate(units):
            if not isinstance(unit, dict) or not unit.get("unit_id"):
                issues.append(ValidationIssue(f"units[{index}].unit_id", "Unit id is required"))
                continue
            star = unit.get("star_target", 2)
            if not isinstance(star, int) or isinstance(star, bool) or not 1 <= star <= 4:
                issues.append(ValidationIssue(f"units[{index}].star_target", "Star target must be 1-4", star))

    traits = payload.get("traits", [])
    if not isinstance(traits, list):
        issues.append(ValidationIssue("traits", "Composition traits must be a list"))
    else:
        for index, trait in enumerate(traits):
            if not isinstance(trait, dict) or not trait.get("trait"):
                issues.append(ValidationIssue(f"traits[{index}].trait", "Trait name is required"))
            elif not isinstance(trait.get("threshold"), int) or trait["threshold"] < 1:
                issues.append(ValidationIssue(f"traits[{index}].threshold", "Threshold must be >= 1", trait.get("threshold")))

    _check_range(issues, payload, "avg_placement", 1, 8, "Average placement")
    _check_range(issues, payload, "play_rate", 0, 100, "Play rate")
    _check_range(issues, payload, "win_rate", 0, 100, "Win rate")

    return issues


def parse_entry(payload: Any) -> Tuple[Optional[CompositionEntry], List[ValidationIssue]]:
    """Validate and build one entry; the entry is None when any issue was found."""
    issues = validate_entry_payload(payload)
    if issues:
        return None, issues

    try:
        return CompositionEntry.model_validate(payload), []
    except ValidationError as e:
        return None, [
            ValidationIssue(".".join(str(p) for p in err["loc"]), err["msg"], err.get("input")) for err in e.errors()
        ]


def parse_entries(payloads: Iterable[Any]) -> Tuple[List[CompositionEntry], List[Tuple[Any, List[ValidationIssue]]]]:
    """Split payloads into valid entries and (payload id, issues) rejections, keeping input order."""
    entries: List[CompositionEntry] = []
    rejected = []
    for payload in payloads:
        entry, issues = parse_entry(payload)
        if entry is None:
            comp_id = payload.get("id") if isinstance(payload, dict) else None
            logger.warning(f"Rejected composition {comp_id!r}: {'; '.join(str(i) for i in issues)}")
            rejected.append((comp_id, issues))
        else:
            entries.append(entry)
    return entries, rejected
