"""Local file sink — writes witness containers to a directory.

Layout: {base_path}/{commit_id}

The file body is the decoded container, byte for byte. Because the file
name is the commit identifier and the content is content-addressed,
re-delivery of identical bytes is a no-op.
"""

from __future__ import annotations

import logging
from pathlib import Path

from witnessrelay.models.artifacts import WitnessArtifact
from witnessrelay.routing.sinks import DeliveryError

logger = logging.getLogger(__name__)


class FilesystemSink:
    """Writes witness containers to local files named by commit id.

    Parameters
    ----------
    base_path:
        Output directory. Defaults to ``cars``.
    create:
        Create the directory if missing. When ``False`` a missing
        directory surfaces as a ``DeliveryError`` on first store.
    """

    def __init__(self, base_path: Path | str | None = None, *, create: bool = True) -> None:
        self._base = Path(base_path) if base_path else Path("cars")
        if create:
            self._base.mkdir(parents=True, exist_ok=True)

    @property
    def sink_name(self) -> str:
        return "local_file"

    @property
    def base_path(self) -> Path:
        return self._base

    def path_for(self, commit_id: str) -> Path:
        """Return the file path for *commit_id*.

        The commit id must be a single plain path component.
        """
        if (
            not commit_id
            or commit_id in (".", "..")
            or "/" in commit_id
            or "\\" in commit_id
            or "\x00" in commit_id
        ):
            raise DeliveryError(f"commit id {commit_id!r} is not a valid file name")
        return self._base / commit_id

    def store(self, commit_id: str, data: bytes) -> Path:
        """Write *data* to the file for *commit_id*; identical content is a no-op."""
        target = self.path_for(commit_id)
        try:
            if target.is_file() and target.read_bytes() == data:
                logger.debug("FilesystemSink: %s already stored", commit_id)
                return target
            target.write_bytes(data)
        except OSError as exc:
            raise DeliveryError(f"failed to write {target}: {exc}") from exc
        logger.debug("FilesystemSink: wrote %d bytes to %s", len(data), target)
        return target

    def deliver(self, commit_id: str, artifact: WitnessArtifact) -> str:
        return str(self.store(commit_id, artifact.raw))

    def list_artifacts(self) -> list[Path]:
        """List stored container files, sorted by name."""
        if not self._base.is_dir():
            return []
        return sorted(p for p in self._base.iterdir() if p.is_file())

    def read_artifact(self, commit_id: str) -> bytes:
        """Read back the stored container bytes for *commit_id*."""
        path = self.path_for(commit_id)
        if not path.is_file():
            raise FileNotFoundError(f"No stored witness for {commit_id}")
        return path.read_bytes()
