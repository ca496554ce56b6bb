#!/usr/bin/env python3
"""Tactics advisor entry point: read one frame and print the game state with recommendations."""

import sys
import argparse
import logging
import os
from typing import List, Optional

from .capture import ScreenCapture
from .config import Settings
from .core.models import Frame
from .core.orchestrator import PipelineResult, ScreenReadingOrchestrator
from .ingestion import load_compositions_file
from .models import Recommendation
from .recommendation import CompositionStore, RecommendationEngine
from .utils import FileUtils

# Simple logging setup
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


class AdvisorApp:
    """Wires the screen reading pipeline to the recommendation engine for one-shot runs."""

    def __init__(self, debug: bool = False, settings: Optional[Settings] = None):
        self.debug = debug
        self.settings = settings or Settings.from_env()
        self.orchestrator = None
        self.store = CompositionStore()
        self.engine = None

    def setup_components(self) -> None:
        logger.info("Initializing advisor components...")
        self.orchestrator = ScreenReadingOrchestrator(self.settings)

        compositions_path = str(self.settings.compositions_path)
        if os.path.exists(compositions_path):
            self.store.replace(load_compositions_file(compositions_path))
        else:
            logger.warning(f"No composition database at {compositions_path}; recommendations disabled")

        self.engine = RecommendationEngine(self.store, self.settings.weights, self.orchestrator.catalog)
        logger.info("Advisor ready")

    def run(self, frame: Frame) -> PipelineResult:
        if not self.orchestrator:
            raise RuntimeError("Components not initialized. Call setup_components() first.")

        result = self.orchestrator.process_frame(frame)
        if result.success:
            logger.info(f"Screen reading completed successfully ({result.success_rate():.0%} of fields and slots recognized)")
        else:
            logger.warning(f"Screen reading completed with issues: {result.error}")
        return result

    def recommend(self, result: PipelineResult) -> List[Recommendation]:
        return self.engine.recommend(result.game_state)

    def save_outputs(self, result: PipelineResult, recommendations: List[Recommendation], path: str) -> None:
        data = {
            "game_state": result.game_state,
            "error": str(result.error) if result.error else None,
            "timings": result.timings,
            "recommendations": recommendations,
        }
        if FileUtils.save_json(data, path):
            logger.info(f"Results saved to {path}")

    def shutdown(self) -> None:
        if self.orchestrator:
            self.orchestrator.shutdown()


def setup_args() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Auto-battler tactics advisor - screen reading and composition recommendations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                              # Capture the primary monitor once
  %(prog)s --image screenshot.png       # Analyze a saved screenshot
  %(prog)s --image shot.png --save out.json --debug
        """,
    )

    parser.add_argument("--image", help="Analyze a screenshot file instead of capturing the screen")
    parser.add_argument("--monitor", type=int, default=None, help="Monitor index to capture (default: DEFAULT_MONITOR or 1)")
    parser.add_argument("--save", default="", help="Write game state and recommendations to this JSON file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging and verbose output")
    parser.add_argument("--info", action="store_true", help="Show system information only")

    return parser


def show_info(settings: Settings) -> None:
    print("\n" + "=" * 60)
    print("Tactics Advisor")
    print("=" * 60)
    print("\nPipeline:")
    print("  • Region Locator: resolution-specific region profiles")
    print("  • Template Matching: units, star levels and items")
    print("  • OCR: Tesseract reads stage, gold, level, health and streak")
    print("  • State Assembly: hold-last-known merge with staleness limit")
    print("  • Recommendations: composition scoring with explanations")
    print("\nAssets:")
    print(f"  • Profiles:     {settings.profiles_dir}")
    print(f"  • Templates:    {settings.templates_dir}")
    print(f"  • Catalog:      {settings.catalog_path}")
    print(f"  • Compositions: {settings.compositions_path}")
    print("-" * 60)


def main(argv: Optional[List[str]] = None) -> int:
    parser = setup_args()
    args = parser.parse_args(argv)

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    settings = Settings.from_env()
    if args.info:
        show_info(settings)
        return 0

    app = AdvisorApp(debug=args.debug, settings=settings)
    try:
        app.setup_components()

        if args.image:
            frame = Frame.from_file(args.image)
        else:
            frame = ScreenCapture(monitor_index=args.monitor).capture_frame()
        logger.info(f"Frame {frame.resolution[0]}x{frame.resolution[1]} ready")

        result = app.run(frame)
        recommendations = app.recommend(result) if result.success else []

        app.orchestrator.print_summary(result, recommendations)
        if args.save:
            app.save_outputs(result, recommendations, args.save)

        return 0 if result.success else 1

    except KeyboardInterrupt:
        print("\n\nOperation cancelled by user. Exiting...")
        return 130  # Standard exit code for Ctrl+C
    except Exception as e:
        logger.error(f"Application failed: {e}")
        if args.debug:
            import traceback

            traceback.print_exc()
        return 1
    finally:
        app.shutdown()


if __name__ == "__main__":
    sys.exit(main())
