"""Tests for the CLI entry point."""

import asyncio
import logging
import sys
from datetime import datetime

import pytest

from recollect import cli
from recollect.core.config import Settings
from recollect.memory.base import MemoryEntry, MemoryTier
from recollect.memory.persistence import SQLiteKeyValueStore, encode_tier, snapshot_key


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("RECOLLECT_DATA_DIR", str(tmp_path))
    yield tmp_path
    # handlers from the last setup_logging call hold the log file open
    logger = logging.getLogger("recollect")
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def run_cli(monkeypatch, *args: str) -> int:
    monkeypatch.setattr(sys, "argv", ["recollect", *args])
    return cli.main()


async def seed(data_dir, session_id: str) -> None:
    store = SQLiteKeyValueStore(Settings(data_dir=data_dir, _env_file=None).db_path)
    await store.connect()
    entry = MemoryEntry(
        id="m1",
        tier=MemoryTier.LONG_TERM,
        content="Alice keeps the lighthouse key",
        timestamp=datetime(2025, 1, 1),
        importance=0.9,
    )
    await store.set(snapshot_key(MemoryTier.LONG_TERM, session_id), encode_tier([entry]))
    await store.close()


def test_usage_without_command(data_dir, monkeypatch, capsys):
    assert run_cli(monkeypatch) == 1
    assert "Usage" in capsys.readouterr().out


def test_unknown_command(data_dir, monkeypatch, capsys):
    assert run_cli(monkeypatch, "explode") == 1
    assert "Unknown command" in capsys.readouterr().out


def test_init_creates_database(data_dir, monkeypatch):
    assert run_cli(monkeypatch, "init") == 0
    assert (data_dir / "recollect.db").exists()


def test_status_requires_session(data_dir, monkeypatch, capsys):
    assert run_cli(monkeypatch, "status") == 1
    assert "status <session>" in capsys.readouterr().out


def test_status_prints_counts(data_dir, monkeypatch, capsys):
    asyncio.run(seed(data_dir, "chat-a"))
    assert run_cli(monkeypatch, "status", "chat-a") == 0
    out = capsys.readouterr().out
    assert '"long_term": 1' in out


def test_preview_prints_payload(data_dir, monkeypatch, capsys):
    asyncio.run(seed(data_dir, "chat-a"))
    assert run_cli(monkeypatch, "--debug", "preview", "chat-a") == 0
    out = capsys.readouterr().out
    assert "• Alice keeps the lighthouse key" in out
    assert "budget 4000" in out


def test_preview_empty_session(data_dir, monkeypatch, capsys):
    assert run_cli(monkeypatch, "preview", "nobody") == 0
    assert "nothing to inject" in capsys.readouterr().out
