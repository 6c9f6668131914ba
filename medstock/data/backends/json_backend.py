from __future__ import annotations

import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Optional

from ..interface import StateStore
from ...config import get_config
from ...logging import get_logger

logger = get_logger(__name__)

_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_\-]+$")


def _resolve_data_dir(data_dir: Path) -> Path:
    """Anchor a relative data directory at the nearest folder holding pyproject.toml."""
    if data_dir.is_absolute():
        return data_dir
    cwd = Path.cwd()
    root = next((p for p in [cwd, *cwd.parents] if (p / "pyproject.toml").exists()), cwd)
    return root / data_dir


class JsonFileStore(StateStore):
    """
    JSON-file implementation.
    - One document per key: `<data_dir>/<key>.json`.
    - Writes go to a temporary file in the same folder and are then renamed
      over the target, so a reader never sees a half-written document.
    """

    def __init__(self, data_dir: str | Path = None) -> None:
        self.data_dir = _resolve_data_dir(Path(data_dir or get_config().data_dir))
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        if not _KEY_PATTERN.match(key):
            raise ValueError(f"Invalid store key: {key!r}")
        return self.data_dir / f"{key}.json"

    def load(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as fh:
                return json.load(fh)
        except (OSError, json.JSONDecodeError) as e:
            raise RuntimeError(
                f"Error reading {path}: {e}\n"
                f"Please check that the file is valid JSON or remove it to reseed."
            ) from e

    def save(self, key: str, value: Optional[Any]) -> None:
        path = self._path(key)
        if value is None:
            if path.exists():
                path.unlink()
            return

        fd, tmp_name = tempfile.mkstemp(dir=self.data_dir, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(value, fh, ensure_ascii=False, indent=2)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.debug(f"Saved {key} to {path}")
