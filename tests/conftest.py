import sys
from pathlib import Path
from typing import Any, Callable, Dict

ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from config import settings  # noqa: E402
from main import create_app  # noqa: E402
from services.archive import ArchiveStore  # noqa: E402
from services.scheduler import harvest_scheduler  # noqa: E402


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def _reset_scheduler() -> None:
    harvest_scheduler.clear()
    yield
    harvest_scheduler.clear()


@pytest.fixture
def settings_override() -> Callable[..., None]:
    original: Dict[str, Any] = {}

    def _apply(**overrides: Any) -> None:
        for key, value in overrides.items():
            if key not in original:
                original[key] = getattr(settings, key)
            setattr(settings, key, value)

    yield _apply

    for key, value in original.items():
        setattr(settings, key, value)


@pytest.fixture
def archive(tmp_path: Path, settings_override: Callable[..., None]) -> ArchiveStore:
    settings_override(
        staging_dir=str(tmp_path / "grib-data"),
        archive_dir=str(tmp_path / "json-data"),
    )
    return ArchiveStore()


@pytest.fixture
def write_archived(archive: ArchiveStore) -> Callable[..., Path]:
    def _write(stamp: str, body: str | None = None) -> Path:
        archive.ensure_dirs()
        path = archive.archived_path(stamp)
        path.write_text(body if body is not None else f'[{{"stamp": "{stamp}"}}]')
        return path

    return _write


@pytest.fixture
def client(archive: ArchiveStore, settings_override: Callable[..., None]) -> TestClient:
    settings_override(harvest_enabled=False, api_key=None)
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client
