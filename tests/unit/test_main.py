"""
Unit tests for the command line entry point.

Each main() call is a separate "process": memory backends start empty,
while the SQLite registry and the data directory persist between calls.
"""

import logging

import pytest

from dbsync.chaindb.config import ClientConfig
from dbsync.chaindb.main import build_parser, build_reconciler, main

KEY = "cli-owner-key"


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture
def env(monkeypatch, tmp_path):
    monkeypatch.setenv("CHAINDB_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("SNAPSHOT_STORE", "memory")
    monkeypatch.setenv("POINTER_REGISTRY", "sqlite")
    monkeypatch.setenv("REGISTRY_SQLITE_PATH", str(tmp_path / "registry.db"))
    monkeypatch.setenv("REGISTRY_OWNER_KEY", KEY)
    monkeypatch.setenv("CHAINDB_PRIVATE_KEY", KEY)
    monkeypatch.setenv("ORDERING_SOURCE", "local")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    monkeypatch.delenv("CHAINDB_DB_NAME", raising=False)
    monkeypatch.delenv("REGISTRY_NAME", raising=False)
    return monkeypatch


class TestParser:
    def test_requires_command(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_save_messages(self):
        args = build_parser().parse_args(["save", "-m", "one", "-m", "two"])
        assert args.message == ["one", "two"]

    def test_todo_done_undo(self):
        args = build_parser().parse_args(["todo", "done", "3", "--undo", "--save"])
        assert (args.id, args.undo, args.save) == (3, True, True)


class TestMain:
    """Tests for main()."""

    def test_status_on_first_use(self, env, capsys):
        assert main(["status"]) == 0

        out = capsys.readouterr().out
        assert "Status:  ready" in out
        assert "Outcome: fresh_empty" in out
        assert "Version: none" in out

    def test_add_and_save(self, env, capsys):
        assert main(["todo", "add", "milk", "--save"]) == 0

        out = capsys.readouterr().out
        assert "Added 1: milk" in out
        assert "Published sha256:" in out

    def test_list_local_rows(self, env, capsys):
        main(["todo", "add", "milk"])
        main(["todo", "add", "eggs"])
        main(["todo", "done", "1"])
        capsys.readouterr()

        assert main(["todo", "list"]) == 0

        out = capsys.readouterr().out
        assert "[x] 1: milk" in out
        assert "[ ] 2: eggs" in out

    def test_missing_todo(self, env, capsys):
        main(["todo", "add", "milk"])

        assert main(["todo", "rm", "99"]) == 1
        assert "NOT_FOUND" in capsys.readouterr().err

    def test_save_without_credential(self, env, capsys):
        env.delenv("CHAINDB_PRIVATE_KEY")

        assert main(["save", "-m", "nothing"]) == 1
        assert "UNAUTHORIZED" in capsys.readouterr().err

    def test_unreachable_blobs_fall_back_to_local(self, env, capsys):
        """The memory store forgets blobs between runs; the registry does not."""
        assert main(["todo", "add", "milk", "--save"]) == 0
        capsys.readouterr()

        assert main(["status"]) == 0

        out = capsys.readouterr().out
        assert "Warning: could not reconcile with the published version" in out

    def test_logs_configuration_without_secrets(self, env, capsys):
        env.setenv("LOG_LEVEL", "INFO")
        env.setenv("LOG_FORMAT", "json")

        assert main(["status"]) == 0

        err = capsys.readouterr().err
        assert "Client configuration loaded" in err
        assert '"registry": "sqlite"' in err
        assert KEY not in err

    def test_configuration_error(self, env, capsys):
        env.setenv("POINTER_REGISTRY", "carrier-pigeon")

        assert main(["status"]) == 1
        assert "Configuration error" in capsys.readouterr().err


class TestBuildReconciler:
    @pytest.mark.asyncio
    async def test_wires_configured_backends(self, env):
        reconciler = build_reconciler(ClientConfig.from_env())

        assert reconciler.engine.db_name == "todo-db"
        assert reconciler.credentials.get() == KEY
        await reconciler.close()
