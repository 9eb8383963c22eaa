from __future__ import annotations

# casbin_store/config.py
import os
from typing import Any, Awaitable, Callable, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field

# 配置解析顺序：
# 1) load_options(**overrides) 显式参数
# 2) 环境变量 CASBIN_DB_PATH / CASBIN_POOL_SIZE / CASBIN_MIGRATE
# 3) config.yaml 的 casbin 段（检测到测试环境时优先 test_db_path）
# 4) 兜底：当前目录 casbin.db
DEFAULT_DB_PATH = "casbin.db"
CONFIG_SECTION = "casbin"

HandleFactory = Callable[[Callable[[Any], Awaitable[Any]]], Awaitable[Any]]


class StoreOptions(BaseModel):
    """Connection target, pool sizing and timeouts for one repository."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    connection_string: Optional[str] = None
    db_path: Optional[str] = None
    pool_size: int = Field(default=10, ge=1)
    acquire_timeout: Optional[float] = Field(default=30.0, gt=0)
    statement_timeout: Optional[float] = Field(default=None, gt=0)
    busy_timeout: float = Field(default=5.0, ge=0)
    idle_timeout: Optional[float] = Field(default=None, gt=0)
    migrate: bool = True
    # overrides internal pooling entirely
    db_client: Optional[HandleFactory] = Field(default=None, exclude=True)

    def target(self) -> tuple[str, bool]:
        """Return ``(database, is_uri)`` as accepted by ``sqlite3.connect``."""
        cs = (self.connection_string or "").strip()
        if cs.startswith("sqlite:///"):
            return cs[len("sqlite:///"):], False
        if cs.startswith("file:"):
            return cs, True
        if cs:
            return cs, False
        return self.db_path or DEFAULT_DB_PATH, False

    def is_memory(self) -> bool:
        database, is_uri = self.target()
        return database == ":memory:" or (is_uri and "mode=memory" in database)


def _read_config_yaml(path: str) -> dict:
    if not os.path.exists(path):
        return {}
    with open(path, "r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f) or {}
    section = cfg.get(CONFIG_SECTION) or {}
    if not isinstance(section, dict):
        raise ValueError(f"{path}: '{CONFIG_SECTION}' must be a mapping")
    return section


def _is_test_env() -> bool:
    return (os.environ.get("APP_ENV") == "test") or (os.environ.get("PYTEST_CURRENT_TEST") is not None)


def _env_overrides() -> dict:
    out: dict[str, Any] = {}
    if os.environ.get("CASBIN_DB_PATH"):
        out["db_path"] = os.environ["CASBIN_DB_PATH"]
        out["connection_string"] = None
    if os.environ.get("CASBIN_POOL_SIZE"):
        out["pool_size"] = int(os.environ["CASBIN_POOL_SIZE"])
    if os.environ.get("CASBIN_MIGRATE"):
        out["migrate"] = os.environ["CASBIN_MIGRATE"].strip().lower() not in ("0", "false", "no", "off")
    return out


def load_options(config_path: str = "config.yaml", **overrides: Any) -> StoreOptions:
    """Build ``StoreOptions`` from config.yaml, the environment and overrides."""
    cfg = _read_config_yaml(config_path)
    test_path = cfg.pop("test_db_path", None)
    if test_path and _is_test_env():
        cfg["db_path"] = test_path
        cfg.pop("connection_string", None)
    cfg.update(_env_overrides())
    cfg.update(overrides)
    return StoreOptions(**cfg)
