"""Typed failure outcomes for the extraction pipeline, composition store and ingestion queue."""


class AdvisorError(Exception):
    """Base class for every failure reported by the advisor core."""


class UnsupportedResolution(AdvisorError):
    """No region profile is within tolerance of the frame resolution."""

    def __init__(self, resolution, known=None):
        self.resolution = tuple(resolution)
        self.known = list(known or [])
        known_str = ", ".join(f"{w}x{h}" for w, h in self.known) or "none"
        super().__init__(f"Unsupported resolution {self.resolution[0]}x{self.resolution[1]} (known: {known_str})")


class RecognitionBelowThreshold(AdvisorError):
    """A single field could not be read with enough confidence."""

    def __init__(self, field: str, confidence: float = 0.0, reason: str = ""):
        self.field = field
        self.confidence = confidence
        self.reason = reason
        super().__init__(f"Field '{field}' below threshold ({confidence:.2f}){': ' + reason if reason else ''}")


class EngineUnavailable(AdvisorError):
    """The OCR engine was never acquired or has already been released."""


class CompositionStoreEmpty(AdvisorError):
    """No composition snapshot has been ingested yet."""


class Cancelled(AdvisorError):
    """Work was dropped before it started: a cleared ingestion task or a superseded pipeline run."""
