# Strict grammars for HUD text fields read by OCR
import re
from typing import Any, Dict, Optional, Tuple

GRAMMARS = {
    "integer": re.compile(r"^\d{1,3}$"),
    "signed_integer": re.compile(r"^[+-]?\d{1,2}$"),
    "stage": re.compile(r"^([1-9])-([1-9])$"),
    "text": re.compile(r"^[A-Za-z0-9 '.-]{1,40}$"),
}

# Inclusive value ranges per field; anything outside is treated as a misread
FIELD_RANGES: Dict[str, Tuple[int, int]] = {
    "health": (0, 100),
    "gold": (0, 999),
    "level": (1, 10),
    "streak": (-30, 30),
}

DEFAULT_WHITELISTS = {
    "integer": "0123456789",
    "signed_integer": "0123456789+-",
    "stage": "0123456789-",
    "text": "",
}


class TextValidator:
    # Parses OCR text with the grammar of its field; returns (value, message), value None when rejected

    def parse(self, field: str, grammar: str, text: str) -> Tuple[Optional[Any], str]:
        text = (text or "").strip().replace(" ", "") if grammar != "text" else (text or "").strip()
        if not text:
            return None, "No text detected"

        pattern = GRAMMARS.get(grammar)
        if pattern is None:
            return None, f"Unknown grammar '{grammar}'"

        match = pattern.match(text)
        if not match:
            return None, f"'{text}' does not match {grammar} grammar"

        if grammar == "stage":
            return f"{match.group(1)}-{match.group(2)}", f"Stage: {text}"

        if grammar == "text":
            return text, f"Text: {text}"

        value = int(text)
        bounds = FIELD_RANGES.get(field)
        if bounds and not (bounds[0] <= value <= bounds[1]):
            return None, f"{field}={value} outside {bounds[0]}..{bounds[1]}"
        return value, f"{field}: {value}"

    def whitelist_for(self, grammar: str, override: str = "") -> str:
        return override or DEFAULT_WHITELISTS.get(grammar, "")


def split_stage(stage: Optional[str]) -> Tuple[Optional[int], Optional[int]]:  # "3-2" -> (3, 2)
    if not stage:
        return None, None
    match = GRAMMARS["stage"].match(stage)
    if not match:
        return None, None
    return int(match.group(1)), int(match.group(2))


_validator_instance = None


def get_text_validator() -> TextValidator:  # Get the global TextValidator singleton instance
    global _validator_instance
    if _validator_instance is None:
        _validator_instance = TextValidator()
    return _validator_instance
