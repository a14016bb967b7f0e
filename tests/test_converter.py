import json
import sys
import textwrap
from pathlib import Path

import pytest

from services.archive import ArchiveStore
from services.converter import ConversionOrchestrator, build_command

STAMP = "2024112506"


def _script(tmp_path: Path, body: str) -> str:
    script = tmp_path / "fake_grib2json.py"
    script.write_text(textwrap.dedent(body))
    return f'"{sys.executable}" "{script}" {{input}} {{output}}'


def _stage(archive: ArchiveStore, stamp: str = STAMP, payload: bytes = b"GRIB") -> Path:
    archive.ensure_dirs()
    path = archive.staged_path(stamp)
    path.write_bytes(payload)
    return path


GOOD_CONVERTER = """
    import json, sys
    src, dst = sys.argv[1], sys.argv[2]
    with open(src, "rb") as handle:
        raw = handle.read()
    with open(dst, "w") as handle:
        json.dump([{"header": {"source": raw.decode()}, "data": [1.0, 2.0]}], handle)
"""


def test_build_command_substitutes_paths() -> None:
    argv = build_command("java -jar conv.jar --output {output} --compact {input}", Path("in.f000"), Path("out.json"))
    assert argv == ["java", "-jar", "conv.jar", "--output", "out.json", "--compact", "in.f000"]


@pytest.mark.anyio
async def test_convert_publishes_and_cleans_staging(archive: ArchiveStore, tmp_path: Path) -> None:
    _stage(archive)
    converter = ConversionOrchestrator(archive, command=_script(tmp_path, GOOD_CONVERTER), timeout=30)

    result = await converter.convert(STAMP)

    assert result.ok is True
    assert result.archived_path == archive.archived_path(STAMP)
    payload = json.loads(archive.archived_path(STAMP).read_text())
    assert payload[0]["header"]["source"] == "GRIB"
    assert not archive.staged_path(STAMP).exists()
    assert not archive.temp_archive_path(STAMP).exists()
    assert archive.list_stamps() == [STAMP]


@pytest.mark.anyio
async def test_convert_only_discards_its_own_staged_file(archive: ArchiveStore, tmp_path: Path) -> None:
    _stage(archive)
    other = _stage(archive, "2024112500")
    converter = ConversionOrchestrator(archive, command=_script(tmp_path, GOOD_CONVERTER), timeout=30)

    result = await converter.convert(STAMP)

    assert result.ok is True
    assert other.exists()


@pytest.mark.anyio
async def test_convert_failure_leaves_no_archive(archive: ArchiveStore, tmp_path: Path) -> None:
    _stage(archive)
    command = _script(
        tmp_path,
        """
        import sys
        with open(sys.argv[2], "w") as handle:
            handle.write('[{"half": ')
        sys.stderr.write("corrupt grib")
        sys.exit(3)
        """,
    )
    converter = ConversionOrchestrator(archive, command=command, timeout=30)

    result = await converter.convert(STAMP)

    assert result.ok is False
    assert "status 3" in (result.error or "")
    assert not archive.has_archived(STAMP)
    assert not archive.temp_archive_path(STAMP).exists()
    assert not archive.staged_path(STAMP).exists()


@pytest.mark.anyio
async def test_convert_requires_output(archive: ArchiveStore, tmp_path: Path) -> None:
    _stage(archive)
    converter = ConversionOrchestrator(archive, command=_script(tmp_path, "import sys\n"), timeout=30)

    result = await converter.convert(STAMP)

    assert result.ok is False
    assert not archive.has_archived(STAMP)


@pytest.mark.anyio
async def test_convert_reports_missing_executable(archive: ArchiveStore) -> None:
    _stage(archive)
    converter = ConversionOrchestrator(archive, command="no-such-grib2json-binary {input} {output}", timeout=30)

    result = await converter.convert(STAMP)

    assert result.ok is False
    assert "could not start" in (result.error or "")


@pytest.mark.anyio
async def test_convert_times_out(archive: ArchiveStore, tmp_path: Path) -> None:
    _stage(archive)
    converter = ConversionOrchestrator(archive, command=_script(tmp_path, "import time\ntime.sleep(10)\n"), timeout=0.5)

    result = await converter.convert(STAMP)

    assert result.ok is False
    assert "timed out" in (result.error or "")
    assert not archive.has_archived(STAMP)


@pytest.mark.anyio
async def test_convert_without_staged_file_fails(archive: ArchiveStore, tmp_path: Path) -> None:
    converter = ConversionOrchestrator(archive, command=_script(tmp_path, GOOD_CONVERTER), timeout=30)

    result = await converter.convert(STAMP)

    assert result.ok is False
    assert "missing" in (result.error or "")


@pytest.mark.anyio
async def test_convert_never_overwrites_archived_stamp(archive: ArchiveStore, tmp_path: Path, write_archived) -> None:
    original = write_archived(STAMP, '["original"]')
    _stage(archive)
    converter = ConversionOrchestrator(archive, command=_script(tmp_path, GOOD_CONVERTER), timeout=30)

    result = await converter.convert(STAMP)

    assert result.ok is True
    assert original.read_text() == '["original"]'
    assert not archive.staged_path(STAMP).exists()
