# Runtime configuration loaded from environment variables (.env supported) with package defaults
import os
import logging
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

CONFIG_DIR = Path(__file__).parent
DEFAULT_PROFILES_DIR = CONFIG_DIR / "profiles"
DEFAULT_TEMPLATES_DIR = CONFIG_DIR / "templates"
DEFAULT_CATALOG_PATH = CONFIG_DIR / "data" / "catalog.json"
DEFAULT_COMPOSITIONS_PATH = CONFIG_DIR / "data" / "compositions.json"


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid value for {name}: {raw!r}")
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid value for {name}: {raw!r}")
        return default


@dataclass
class ScoringWeights:  # Tunable blend used by the recommendation engine
    unit_weight: float = 0.5  # Share of the held-units sub-score
    trait_weight: float = 0.3  # Share of the active-traits sub-score
    prior_weight: float = 0.2  # Share of the historical-strength prior
    core_weight: float = 2.0  # Importance of units flagged core
    flex_weight: float = 1.0  # Importance of the remaining units
    conflict_penalty: float = 0.1  # 0 disables the trait-conflict penalty
    min_score: float = 0.15  # Relevance floor
    max_results: int = 3

    @classmethod
    def from_env(cls) -> "ScoringWeights":
        return cls(
            unit_weight=_env_float("SCORE_UNIT_WEIGHT", cls.unit_weight),
            trait_weight=_env_float("SCORE_TRAIT_WEIGHT", cls.trait_weight),
            prior_weight=_env_float("SCORE_PRIOR_WEIGHT", cls.prior_weight),
            core_weight=_env_float("SCORE_CORE_WEIGHT", cls.core_weight),
            flex_weight=_env_float("SCORE_FLEX_WEIGHT", cls.flex_weight),
            conflict_penalty=_env_float("SCORE_CONFLICT_PENALTY", cls.conflict_penalty),
            min_score=_env_float("SCORE_MIN", cls.min_score),
            max_results=_env_int("SCORE_MAX_RESULTS", cls.max_results),
        )


@dataclass
class Settings:
    """Pipeline, asset and ingestion settings."""

    profiles_dir: Path = DEFAULT_PROFILES_DIR
    templates_dir: Path = DEFAULT_TEMPLATES_DIR
    catalog_path: Path = DEFAULT_CATALOG_PATH
    compositions_path: Path = DEFAULT_COMPOSITIONS_PATH

    template_threshold: float = 0.80  # Acceptance threshold for a template slot
    tie_epsilon: float = 1e-3  # Scores this close to the best are ties
    empty_std_threshold: float = 6.0  # Grey std-dev below which a slot is empty
    ocr_threshold: float = 0.60  # Minimum OCR confidence (0-1)
    aspect_tolerance: float = 0.02  # Relative aspect-ratio tolerance for profile lookup

    extraction_budget_s: float = 0.75  # Per-frame budget for all recognizers
    staleness_limit_s: float = 10.0  # Carried-forward values expire after this
    max_workers: int = 4  # Recognition thread pool size
    history_size: int = 50

    requests_per_minute: int = 60
    max_concurrent: int = 5

    debug_dir: str = ""  # Save region crops here when set

    weights: ScoringWeights = field(default_factory=ScoringWeights)

    @classmethod
    def from_env(cls) -> "Settings":
        settings = cls(
            profiles_dir=Path(os.getenv("ADVISOR_PROFILES_DIR", str(DEFAULT_PROFILES_DIR))),
            templates_dir=Path(os.getenv("ADVISOR_TEMPLATES_DIR", str(DEFAULT_TEMPLATES_DIR))),
            catalog_path=Path(os.getenv("ADVISOR_CATALOG_PATH", str(DEFAULT_CATALOG_PATH))),
            compositions_path=Path(os.getenv("ADVISOR_COMPOSITIONS_PATH", str(DEFAULT_COMPOSITIONS_PATH))),
            template_threshold=_env_float("TEMPLATE_THRESHOLD", cls.template_threshold),
            tie_epsilon=_env_float("TEMPLATE_TIE_EPSILON", cls.tie_epsilon),
            empty_std_threshold=_env_float("TEMPLATE_EMPTY_STD", cls.empty_std_threshold),
            ocr_threshold=_env_float("OCR_CONFIDENCE_THRESHOLD", cls.ocr_threshold),
            aspect_tolerance=_env_float("PROFILE_ASPECT_TOLERANCE", cls.aspect_tolerance),
            extraction_budget_s=_env_float("EXTRACTION_BUDGET_MS", cls.extraction_budget_s * 1000) / 1000,
            staleness_limit_s=_env_float("STALENESS_LIMIT_S", cls.staleness_limit_s),
            max_workers=_env_int("RECOGNITION_WORKERS", cls.max_workers),
            history_size=_env_int("STATE_HISTORY_SIZE", cls.history_size),
            requests_per_minute=_env_int("INGEST_REQUESTS_PER_MINUTE", cls.requests_per_minute),
            max_concurrent=_env_int("INGEST_MAX_CONCURRENT", cls.max_concurrent),
            debug_dir=os.getenv("ADVISOR_DEBUG_DIR", ""),
            weights=ScoringWeights.from_env(),
        )
        logger.debug(f"Settings loaded: {settings}")
        return settings
