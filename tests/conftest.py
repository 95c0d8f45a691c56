import sys
from pathlib import Path

import pytest

# Ensure the `tourmark` package is importable when running pytest from the repo root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from tourmark.core import config  # noqa: E402
from tourmark.vendors import tour_api  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_client(monkeypatch):
    """Fresh settings, cache and session for every test; no .env leakage."""
    monkeypatch.setattr(config, "load_dotenv", lambda *args, **kwargs: None)
    config.get_settings.cache_clear()
    monkeypatch.setattr(tour_api, "_CACHE", None)
    monkeypatch.setattr(tour_api, "_SESSION", None)
    yield
    config.get_settings.cache_clear()
