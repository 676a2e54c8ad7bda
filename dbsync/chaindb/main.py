"""
ChainDB - command line entry point.

Usage:
    chaindb status
    chaindb sync
    chaindb save -m "Describe the change"
    chaindb todo add "Buy milk" [--save]
    chaindb todo list
    chaindb todo done 3 [--undo] [--save]
    chaindb todo rm 3 [--save]

Each command bootstraps a session (reconciling local storage with the
registry) before doing its work. Edits made by one invocation are only
published by that invocation (``--save``) or by ``chaindb save``.

Configuration is entirely via environment variables.
See config.py for all available settings.

Invariants:
    - Exit status is 0 on success and 1 on any error
    - Secrets are read from the environment, never from arguments

How to change safely:
    - Add new commands as subparsers that go through _run()
    - Keep build_reconciler() the only place collaborators are wired together
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Awaitable, Callable

import json_log_formatter

from .cache import FileVersionCache
from .config import ClientConfig
from .credentials import EnvCredentialProvider
from .engine import SqliteEngine
from .errors import ChainDbError, ConflictError
from .ordering import create_ordering_source
from .reconcile import Reconciler, Session
from .registry import create_pointer_registry
from .store import create_snapshot_store
from .todos import TodoRepository

logger = logging.getLogger(__name__)


def setup_logging(config: ClientConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Client configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("aiobotocore").setLevel(logging.WARNING)


def build_reconciler(config: ClientConfig) -> Reconciler:
    """Wire the collaborators named by the configuration into a Reconciler."""
    return Reconciler(
        snapshot_store=create_snapshot_store(config),
        registry=create_pointer_registry(config),
        cache=FileVersionCache.for_database(config.storage.data_dir, config.storage.db_name),
        engine=SqliteEngine(
            data_dir=config.storage.data_dir,
            db_name=config.storage.db_name,
            busy_timeout_ms=config.storage.busy_timeout_ms,
        ),
        ordering=create_ordering_source(config),
        credentials=EnvCredentialProvider(),
        max_depth=config.chain.max_depth,
    )


def _print_session(session: Session) -> None:
    record = session.effective_record
    print(f"Status:  {session.status}")
    if session.outcome is not None:
        print(f"Outcome: {session.outcome.value}")
    if record is None:
        print("Version: none")
    else:
        print(f"Version: {session.effective_record_id or 'unknown'}")
        print(f"  Snapshot:   {record.snapshot_id}")
        print(f"  Chain seq:  {record.chain_seq}")
        print(f"  Chain time: {record.chain_time}")
        print(f"  Previous:   {record.prev or 'none (root)'}")
        for entry in record.change_log:
            print(f"  - {entry}")
    if session.last_error is not None:
        print(f"Warning: could not reconcile with the published version ({session.last_error})")


async def _save(reconciler: Reconciler, session: Session, change_log: list[str]) -> None:
    try:
        result = await reconciler.save(session, change_log)
    except ConflictError:
        print(
            "Save rejected: another device published first. "
            "Run 'chaindb sync' to pick up its version.",
            file=sys.stderr,
        )
        raise
    print(f"Published {result.record_id} (chain seq {result.record.chain_seq})")


async def _status(reconciler: Reconciler, session: Session, args: argparse.Namespace) -> None:
    _print_session(session)


async def _sync(reconciler: Reconciler, session: Session, args: argparse.Namespace) -> None:
    # bootstrap has already reconciled
    _print_session(session)


async def _save_command(reconciler: Reconciler, session: Session, args: argparse.Namespace) -> None:
    await _save(reconciler, session, args.message or [])


async def _todo(reconciler: Reconciler, session: Session, args: argparse.Namespace) -> None:
    todos = TodoRepository(session)

    if args.todo_command == "list":
        items = await todos.list()
        if not items:
            print("No todos")
        for item in items:
            print(f"[{'x' if item.done else ' '}] {item.id}: {item.task}")
        return

    if args.todo_command == "add":
        item = await todos.add(args.task)
        print(f"Added {item.id}: {item.task}")
        change = f"Add todo: {item.task}"
    elif args.todo_command == "done":
        if not await todos.set_done(args.id, not args.undo):
            raise ChainDbError(f"No todo with id {args.id}", code="NOT_FOUND")
        change = f"{'Reopen' if args.undo else 'Complete'} todo {args.id}"
    else:
        if not await todos.delete(args.id):
            raise ChainDbError(f"No todo with id {args.id}", code="NOT_FOUND")
        change = f"Delete todo {args.id}"

    if args.save:
        await _save(reconciler, session, [change])


Command = Callable[[Reconciler, Session, argparse.Namespace], Awaitable[None]]


async def _run(config: ClientConfig, command: Command, args: argparse.Namespace) -> None:
    reconciler = build_reconciler(config)
    try:
        session = await reconciler.bootstrap()
        await command(reconciler, session, args)
    finally:
        await reconciler.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chaindb",
        description="Local SQLite database synchronized through a version chain",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    subparsers = parser.add_subparsers(dest="command", required=True)

    status_parser = subparsers.add_parser("status", help="Show the session state")
    status_parser.set_defaults(handler=_status)

    sync_parser = subparsers.add_parser("sync", help="Reconcile with the published version")
    sync_parser.set_defaults(handler=_sync)

    save_parser = subparsers.add_parser("save", help="Publish the local database")
    save_parser.add_argument(
        "-m", "--message", action="append", help="Change log entry (repeatable)"
    )
    save_parser.set_defaults(handler=_save_command)

    todo_parser = subparsers.add_parser("todo", help="Edit todo rows")
    todo_parser.set_defaults(handler=_todo)
    todo_sub = todo_parser.add_subparsers(dest="todo_command", required=True)

    todo_sub.add_parser("list", help="List todos")

    add_parser = todo_sub.add_parser("add", help="Add a todo")
    add_parser.add_argument("task", help="Task text")

    done_parser = todo_sub.add_parser("done", help="Mark a todo done")
    done_parser.add_argument("id", type=int, help="Todo id")
    done_parser.add_argument("--undo", action="store_true", help="Mark as not done")

    rm_parser = todo_sub.add_parser("rm", help="Delete a todo")
    rm_parser.add_argument("id", type=int, help="Todo id")

    for sub in (add_parser, done_parser, rm_parser):
        sub.add_argument("--save", action="store_true", help="Publish right after the edit")

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    # Load configuration
    try:
        config = ClientConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    setup_logging(config)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    config.log_config()

    try:
        asyncio.run(_run(config, args.handler, args))
    except ChainDbError as e:
        print(f"Error [{e.code}]: {e.message}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
