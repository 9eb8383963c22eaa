"""casbin-store command line against a temp database."""
import json

import pytest

from casbin_store.cli import build_parser, main
from casbin_store.migrations import MIGRATIONS

POLICY_CSV = """\
p, alice, data1, read
p, bob, data2, write
g, alice, admin
"""


@pytest.fixture()
def cli(tmp_path, db_path):
    base = ["--config", str(tmp_path / "missing.yaml"), "--db", db_path]

    def invoke(*args):
        return main([*base, *args])

    return invoke


@pytest.fixture()
def policy_csv(tmp_path):
    path = tmp_path / "policy.csv"
    path.write_text(POLICY_CSV, encoding="utf-8")
    return str(path)


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_migrate_and_status(cli, capsys):
    assert cli("status") == 0
    assert capsys.readouterr().out == ""

    assert cli("migrate") == 0
    assert "applied" in capsys.readouterr().out

    assert cli("status") == 0
    assert capsys.readouterr().out.split() == [name for name, _ in MIGRATIONS]

    assert cli("migrate", "--down", "1") == 0
    assert MIGRATIONS[-1][0] in capsys.readouterr().out


def test_import_list_export(cli, capsys, policy_csv, tmp_path):
    assert cli("import-csv", policy_csv) == 0
    assert "'imported': 3" in capsys.readouterr().out

    assert cli("list") == 0
    assert sorted(capsys.readouterr().out.splitlines()) == [
        "g, alice, admin",
        "p, alice, data1, read",
        "p, bob, data2, write",
    ]

    assert cli("list", "--filter", json.dumps({"p": ["bob"]})) == 0
    assert sorted(capsys.readouterr().out.splitlines()) == ["g, alice, admin", "p, bob, data2, write"]

    out = tmp_path / "export.csv"
    assert cli("export-csv", str(out)) == 0
    assert "'exported': 3" in capsys.readouterr().out
    assert sorted(out.read_text(encoding="utf-8").splitlines()) == [
        "g,alice,admin",
        "p,alice,data1,read",
        "p,bob,data2,write",
    ]


def test_import_twice_conflicts_unless_replace(cli, capsys, policy_csv):
    assert cli("import-csv", policy_csv) == 0
    assert cli("import-csv", policy_csv) == 1
    assert "ConstraintViolation" in capsys.readouterr().err
    assert cli("import-csv", policy_csv, "--replace") == 0


def test_stats_and_clear(cli, capsys, policy_csv):
    assert cli("stats") == 0
    assert "no rules" in capsys.readouterr().out

    cli("import-csv", policy_csv)
    capsys.readouterr()
    assert cli("stats") == 0
    out = capsys.readouterr().out
    assert "ptype" in out and "max_fields" in out

    assert cli("clear") == 0
    assert "'deleted': 3" in capsys.readouterr().out
