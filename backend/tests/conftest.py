import sys
from pathlib import Path

import pytest

# Tests import `domain`, `services`, `api` and `settings` as top-level modules;
# make that work whether pytest runs from the repo root or from backend/.
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))


@pytest.fixture(autouse=True)
def _no_mapbox_token(monkeypatch):
    """Keep tests off the network even when a real token is in the environment."""
    from settings import settings

    monkeypatch.setattr(settings, "MAPBOX_TOKEN", None)
