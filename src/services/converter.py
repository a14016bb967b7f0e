"""Runs the external GRIB2 to JSON converter and publishes its output."""

from __future__ import annotations

import asyncio
import logging
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Sequence

from config import settings
from .archive import ArchiveStore

logger = logging.getLogger("windhub.converter")


@dataclass(frozen=True, slots=True)
class ConversionResult:
    stamp: str
    ok: bool
    archived_path: Path | None = None
    error: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "stamp": self.stamp,
            "ok": self.ok,
            "archived_path": str(self.archived_path) if self.archived_path else None,
            "error": self.error,
        }


def build_command(template: str, input_path: Path, output_path: Path) -> list[str]:
    return [token.format(input=str(input_path), output=str(output_path)) for token in shlex.split(template)]


class ConversionOrchestrator:
    def __init__(
        self,
        archive: ArchiveStore | None = None,
        *,
        command: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.archive = archive or ArchiveStore.from_settings()
        self.command = command or settings.converter_command
        self.timeout = timeout if timeout is not None else settings.converter_timeout

    async def convert(self, stamp: str) -> ConversionResult:
        staged = self.archive.staged_path(stamp)
        if self.archive.has_archived(stamp):
            logger.info("%s already archived; dropping staged copy", stamp)
            self.archive.discard_staged(stamp)
            return ConversionResult(stamp, True, self.archive.archived_path(stamp))
        if not staged.is_file():
            return self._fail(stamp, f"staged file {staged} missing")

        self.archive.ensure_dirs()
        temp_path = self.archive.temp_archive_path(stamp)
        argv = build_command(self.command, staged, temp_path)
        logger.info("Converting %s: %s", stamp, " ".join(argv))

        try:
            returncode, stdout, stderr = await self._run(argv)
        except asyncio.TimeoutError:
            return self._fail(stamp, f"converter timed out after {self.timeout:.0f}s")
        except OSError as exc:
            return self._fail(stamp, f"converter could not start: {exc}")

        if returncode != 0:
            logger.warning("stdout: %s", stdout.strip())
            logger.warning("stderr: %s", stderr.strip())
            return self._fail(stamp, f"converter exited with status {returncode}")
        if not temp_path.is_file() or temp_path.stat().st_size == 0:
            return self._fail(stamp, "converter reported success but wrote no output")

        archived = self.archive.publish(stamp, temp_path)
        # raw GRIB data is not kept
        self.archive.discard_staged(stamp)
        logger.info("converted %s", stamp)
        return ConversionResult(stamp, True, archived)

    async def _run(self, argv: Sequence[str]) -> tuple[int, str, str]:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise
        return (
            proc.returncode if proc.returncode is not None else -1,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )

    def _fail(self, stamp: str, reason: str) -> ConversionResult:
        logger.error("Conversion of %s failed: %s", stamp, reason)
        self.archive.discard_temp(stamp)
        self.archive.discard_staged(stamp)
        return ConversionResult(stamp, False, error=reason)


__all__ = ["ConversionOrchestrator", "ConversionResult", "build_command"]
