import sys
from pathlib import Path

import pytest

# Ensure project root on sys.path
_THIS_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _THIS_DIR.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    # Point the store only at temp databases built by the fixtures below
    for k in ("CASBIN_DB_PATH", "CASBIN_POOL_SIZE", "CASBIN_MIGRATE", "APP_ENV"):
        monkeypatch.delenv(k, raising=False)


@pytest.fixture()
def db_path(tmp_path):
    return str(tmp_path / "casbin_test.db")


@pytest.fixture()
def options(db_path):
    from casbin_store.config import StoreOptions
    return StoreOptions(db_path=db_path, pool_size=4, acquire_timeout=2.0)
