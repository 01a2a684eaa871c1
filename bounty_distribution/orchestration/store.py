"""Disk persistence of distribution runs for resume after interruption."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from .errors import RunStoreError
from .models import DistributionRun

logger = logging.getLogger(__name__)

RUN_SUFFIX = ".json"


class RunStore:
    """
    Keep one JSON file per run.

    Store structure:
        store_dir/
        ├── {run_id_1}.json
        ├── {run_id_2}.json

    Files are replaced atomically so a crash mid-write never leaves a
    half-written run behind. A corrupted run file raises instead of being
    ignored: silently starting a fresh run could register the same bounty
    twice.
    """

    def __init__(self, store_dir: Path):
        """
        Initialize run store.

        Args:
            store_dir: Directory holding run files
        """
        self._store_dir = store_dir
        self._store_dir.mkdir(parents=True, exist_ok=True)
        logger.debug(f"RunStore ready at {self._store_dir}")

    def path_for(self, run_id: str) -> Path:
        return self._store_dir / f"{run_id}{RUN_SUFFIX}"

    def save(self, run: DistributionRun) -> Path:
        """Write the run, replacing any previous version."""
        path = self.path_for(run.run_id)
        fd, tmp_name = tempfile.mkstemp(dir=self._store_dir, suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(run.to_dict(), f, indent=2)
            os.replace(tmp_name, path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise RunStoreError(f"Failed to save run {run.run_id}: {e}") from e

        logger.debug(f"Saved run {run.run_id} ({run.state.value})")
        return path

    def load(self, run_id: str) -> DistributionRun | None:
        """
        Load a run.

        Returns:
            DistributionRun if stored, None if no file exists

        Raises:
            RunStoreError: If the file exists but cannot be parsed
        """
        path = self.path_for(run_id)
        if not path.exists():
            return None

        try:
            with open(path) as f:
                return DistributionRun.from_dict(json.load(f))
        except (json.JSONDecodeError, KeyError, ValueError, TypeError) as e:
            raise RunStoreError(f"Corrupted run file {path}: {e}") from e

    def exists(self, run_id: str) -> bool:
        return self.path_for(run_id).exists()

    def list_run_ids(self) -> list[str]:
        """List stored run ids, sorted."""
        return sorted(p.stem for p in self._store_dir.glob(f"*{RUN_SUFFIX}"))
