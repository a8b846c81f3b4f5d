"""File-backed persistence of in-flight build state, keyed by build id."""

import logging
import re
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional, Union

from pydantic import ValidationError

from contracts import BuildContext, GeneratedFile, RecoverySnapshot, RecoveryState
from config import settings

logger = logging.getLogger(__name__)


class RecoveryStore:
    """Saves one JSON snapshot per build and expires it after a fixed age."""

    def __init__(self, directory: Optional[Union[str, Path]] = None, ttl_seconds: Optional[int] = None):
        self.directory = Path(directory) if directory else settings.get_recovery_path()
        self.ttl = timedelta(
            seconds=settings.recovery_ttl_seconds if ttl_seconds is None else ttl_seconds
        )

    def _path_for(self, build_id: str) -> Path:
        safe_id = re.sub(r"[^A-Za-z0-9_.-]", "_", build_id)
        return self.directory / f"build-{safe_id}.json"

    def save(
        self,
        build_id: str,
        state: RecoveryState,
        context: BuildContext,
        files: List[GeneratedFile],
    ) -> Path:
        """Persist the current state, overwriting any previous snapshot."""
        snapshot = RecoverySnapshot(
            build_id=build_id,
            state=state,
            context=context,
            files=files,
        )
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path_for(build_id)
        path.write_text(snapshot.model_dump_json(indent=2), encoding="utf-8")
        return path

    def load(self, build_id: str, now: Optional[datetime] = None) -> Optional[RecoverySnapshot]:
        """Return the snapshot if present and fresh; expired snapshots are deleted."""
        path = self._path_for(build_id)
        if not path.exists():
            return None

        try:
            snapshot = RecoverySnapshot.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.warning("Failed to load recovery state for %s: %s", build_id, e)
            return None

        current = now or datetime.now()
        if snapshot.saved_at < current - self.ttl:
            logger.info("Recovery state for %s expired, discarding", build_id)
            path.unlink(missing_ok=True)
            return None
        return snapshot

    def clear(self, build_id: str) -> None:
        """Remove the snapshot for a build, if any."""
        self._path_for(build_id).unlink(missing_ok=True)
