import os
import sys
from pathlib import Path

import pytest

os.environ.setdefault("MARIPOSA_ENV", "test")
os.environ.setdefault("MARIPOSA_DISABLE_ENV_FILE", "1")

# Ensure the project root is on sys.path for module imports
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture
def isolated_settings(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    from mariposa_app.utils import envs

    settings_file = tmp_path / "settings.json"
    monkeypatch.setattr(envs, "SETTINGS_FILE", settings_file)
    for env_key in envs._ENV_MAP.values():
        monkeypatch.delenv(env_key, raising=False)
    envs._invalidate_cache()
    yield settings_file
    envs._invalidate_cache()


@pytest.fixture
def isolated_storage(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    from mariposa_app.utils import storage

    path = tmp_path / "storage.json"
    monkeypatch.setattr(storage, "_STORAGE_PATH", path)
    return path


@pytest.fixture
def captured_logs(monkeypatch: pytest.MonkeyPatch) -> list[tuple[str, dict]]:
    """Collect ``log`` calls made through the modules that import it by name."""

    import importlib

    records: list[tuple[str, dict]] = []

    def fake_log(event: str, **payload) -> None:
        records.append((event, payload))

    for name in (
        "mariposa_app.utils.backend_api",
        "mariposa_app.utils.background",
        "mariposa_app.utils.ws_client",
        "mariposa_app.utils.storage",
        "mariposa_app.utils.envs",
        "mariposa_app.utils.error_handling",
        "mariposa_app.ui.actions",
        "mariposa_app.ui.backend_client",
    ):
        module = importlib.import_module(name)
        if hasattr(module, "log"):
            monkeypatch.setattr(module, "log", fake_log)
    return records
