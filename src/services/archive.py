from __future__ import annotations

import logging
import os
from pathlib import Path

from config import settings

logger = logging.getLogger("windhub.archive")

PARTIAL_SUFFIX = ".part"


class ArchiveStore:
    """Filesystem layout for staged GRIB2 downloads and archived JSON snapshots.

    The archive has no index of its own; presence of ``<stamp><archive_suffix>``
    in the archive directory is the only record that a stamp is held.
    """

    def __init__(
        self,
        *,
        staging_dir: Path | str | None = None,
        archive_dir: Path | str | None = None,
        staging_suffix: str | None = None,
        archive_suffix: str | None = None,
    ) -> None:
        # Unset values follow the live settings so overrides apply to shared instances.
        self._staging_dir = Path(staging_dir) if staging_dir is not None else None
        self._archive_dir = Path(archive_dir) if archive_dir is not None else None
        self._staging_suffix = staging_suffix
        self._archive_suffix = archive_suffix

    @property
    def staging_dir(self) -> Path:
        return self._staging_dir if self._staging_dir is not None else Path(settings.staging_dir)

    @property
    def archive_dir(self) -> Path:
        return self._archive_dir if self._archive_dir is not None else Path(settings.archive_dir)

    @property
    def staging_suffix(self) -> str:
        return self._staging_suffix if self._staging_suffix is not None else settings.staging_suffix

    @property
    def archive_suffix(self) -> str:
        return self._archive_suffix if self._archive_suffix is not None else settings.archive_suffix

    @classmethod
    def from_settings(cls) -> "ArchiveStore":
        return cls()

    def ensure_dirs(self) -> None:
        self.staging_dir.mkdir(parents=True, exist_ok=True)
        self.archive_dir.mkdir(parents=True, exist_ok=True)

    def staged_path(self, stamp: str) -> Path:
        return self.staging_dir / f"{stamp}{self.staging_suffix}"

    def partial_staged_path(self, stamp: str) -> Path:
        return self.staging_dir / f"{stamp}{self.staging_suffix}{PARTIAL_SUFFIX}"

    def archived_path(self, stamp: str) -> Path:
        return self.archive_dir / f"{stamp}{self.archive_suffix}"

    def temp_archive_path(self, stamp: str) -> Path:
        # Same directory keeps os.replace atomic; the leading dot keeps it off archive names.
        return self.archive_dir / f".{stamp}{self.archive_suffix}.tmp"

    def has_archived(self, stamp: str) -> bool:
        return self.archived_path(stamp).is_file()

    def publish(self, stamp: str, temp_path: Path) -> Path:
        final_path = self.archived_path(stamp)
        os.replace(temp_path, final_path)
        logger.debug("Published %s", final_path)
        return final_path

    def discard_staged(self, stamp: str) -> None:
        for path in (self.staged_path(stamp), self.partial_staged_path(stamp)):
            try:
                path.unlink()
            except FileNotFoundError:
                continue

    def discard_temp(self, stamp: str) -> None:
        try:
            self.temp_archive_path(stamp).unlink()
        except FileNotFoundError:
            pass

    def list_stamps(self) -> list[str]:
        if not self.archive_dir.is_dir():
            return []
        stamps = []
        for entry in self.archive_dir.iterdir():
            if not entry.is_file() or entry.name.startswith("."):
                continue
            if not entry.name.endswith(self.archive_suffix):
                continue
            stem = entry.name[: -len(self.archive_suffix)]
            if len(stem) == 10 and stem.isdigit():
                stamps.append(stem)
        return sorted(stamps)


__all__ = ["ArchiveStore", "PARTIAL_SUFFIX"]
