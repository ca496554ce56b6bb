"""File operations shared by the CLI and debug output."""

import json
import os
import glob
import time
import logging
import tempfile
from typing import Any

logger = logging.getLogger(__name__)


def _to_jsonable(data: Any) -> Any:
    # pydantic models (GameState, Recommendation) dump themselves
    if hasattr(data, "model_dump"):
        return data.model_dump(mode="json")
    if isinstance(data, dict):
        return {key: _to_jsonable(value) for key, value in data.items()}
    if isinstance(data, (list, tuple)):
        return [_to_jsonable(value) for value in data]
    return data


class FileUtils:
    """File operations and utilities."""

    @staticmethod
    def save_json(data: Any, filepath: str, indent: int = 2) -> bool:
        """Write JSON atomically (temp file + rename) so readers never see a partial file."""
        dir_path = os.path.dirname(filepath) or "."
        tmp_path = None
        try:
            os.makedirs(dir_path, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=dir_path, prefix=".tmp_", suffix=".json")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(_to_jsonable(data), f, indent=indent, default=str)
            os.replace(tmp_path, filepath)
            logger.debug(f"Saved JSON data to {filepath}")
            return True

        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to save JSON to {filepath}: {e}")
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)
            return False

    @staticmethod
    def ensure_directory_exists(dirpath: str) -> bool:
        try:
            os.makedirs(dirpath, exist_ok=True)
            return True
        except OSError as e:
            logger.error(f"Failed to create directory {dirpath}: {e}")
            return False

    @staticmethod
    def cleanup_old_files(directory: str, pattern: str = "*.png", max_age_hours: float = 24) -> int:
        """Delete files matching pattern older than max_age_hours; returns the number deleted."""
        if not os.path.isdir(directory):
            return 0

        cutoff = time.time() - max_age_hours * 3600
        deleted = 0
        for file_path in glob.glob(os.path.join(directory, pattern)):
            try:
                if os.path.getmtime(file_path) < cutoff:
                    os.remove(file_path)
                    deleted += 1
            except OSError as e:
                logger.warning(f"Could not delete file {file_path}: {e}")

        if deleted:
            logger.info(f"Cleaned up {deleted} old files from {directory}")
        return deleted
