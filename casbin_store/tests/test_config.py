import pytest
from pydantic import ValidationError

from casbin_store.config import DEFAULT_DB_PATH, StoreOptions, load_options


class TestTarget:
    def test_default(self):
        assert StoreOptions().target() == (DEFAULT_DB_PATH, False)

    def test_db_path(self):
        assert StoreOptions(db_path="/tmp/x.db").target() == ("/tmp/x.db", False)

    def test_sqlite_url(self):
        opts = StoreOptions(connection_string="sqlite:///data/casbin.db", db_path="ignored.db")
        assert opts.target() == ("data/casbin.db", False)

    def test_file_uri(self):
        opts = StoreOptions(connection_string="file:casbin?mode=memory&cache=shared")
        assert opts.target() == ("file:casbin?mode=memory&cache=shared", True)
        assert opts.is_memory()

    def test_plain_memory(self):
        assert StoreOptions(connection_string=":memory:").is_memory()
        assert not StoreOptions(db_path="a.db").is_memory()


class TestValidation:
    @pytest.mark.parametrize("field,value", [
        ("pool_size", 0),
        ("acquire_timeout", 0),
        ("statement_timeout", -1),
        ("busy_timeout", -0.5),
    ])
    def test_rejects_out_of_range(self, field, value):
        with pytest.raises(ValidationError):
            StoreOptions(**{field: value})

    def test_db_client_not_dumped(self):
        async def factory(work):
            return None

        dumped = StoreOptions(db_client=factory).model_dump()
        assert "db_client" not in dumped


class TestLoadOptions:
    def test_missing_file_uses_defaults(self, tmp_path):
        opts = load_options(str(tmp_path / "nope.yaml"))
        assert opts.target() == (DEFAULT_DB_PATH, False)
        assert opts.pool_size == 10
        assert opts.migrate is True

    def test_yaml_section(self, tmp_path):
        cfg = tmp_path / "config.yaml"
        cfg.write_text(
            "casbin:\n"
            "  db_path: prod.db\n"
            "  pool_size: 3\n"
            "  statement_timeout: 2.5\n"
            "other:\n"
            "  key: value\n",
            encoding="utf-8",
        )
        opts = load_options(str(cfg))
        assert opts.db_path == "prod.db"
        assert opts.pool_size == 3
        assert opts.statement_timeout == 2.5

    def test_test_db_path_wins_under_pytest(self, tmp_path):
        cfg = tmp_path / "config.yaml"
        cfg.write_text(
            "casbin:\n"
            "  connection_string: sqlite:///prod.db\n"
            "  test_db_path: test.db\n",
            encoding="utf-8",
        )
        assert load_options(str(cfg)).target() == ("test.db", False)

    def test_env_overrides_yaml(self, tmp_path, monkeypatch):
        cfg = tmp_path / "config.yaml"
        cfg.write_text("casbin:\n  db_path: prod.db\n  pool_size: 3\n", encoding="utf-8")
        monkeypatch.setenv("CASBIN_DB_PATH", "env.db")
        monkeypatch.setenv("CASBIN_POOL_SIZE", "7")
        monkeypatch.setenv("CASBIN_MIGRATE", "off")
        opts = load_options(str(cfg))
        assert (opts.db_path, opts.pool_size, opts.migrate) == ("env.db", 7, False)

    def test_explicit_overrides_win(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CASBIN_POOL_SIZE", "7")
        opts = load_options(str(tmp_path / "nope.yaml"), pool_size=2)
        assert opts.pool_size == 2

    def test_section_must_be_mapping(self, tmp_path):
        cfg = tmp_path / "config.yaml"
        cfg.write_text("casbin: just-a-string\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_options(str(cfg))
