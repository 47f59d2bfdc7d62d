from __future__ import annotations

import logging
import stat
import sys
from pathlib import Path

import pytest

from conduit.config import Config


@pytest.fixture(autouse=True)
def _reset_conduit_logger():
    base = logging.getLogger("conduit")
    level = base.level
    yield
    for handler in list(base.handlers):
        base.removeHandler(handler)
        handler.close()
    base.setLevel(level)


@pytest.fixture
def make_stub(tmp_path, monkeypatch):
    """Write an executable Python script named `name` and put it on PATH."""

    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    monkeypatch.setenv("PATH", str(bin_dir))

    def _make(body: str, name: str = "lnd") -> Path:
        path = bin_dir / name
        path.write_text(f"#!{sys.executable}\n{body}")
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return path

    return _make


@pytest.fixture
def config(tmp_path) -> Config:
    return Config(
        conduit_dir=tmp_path / "conduit",
        default_dir=False,
        console_output=False,
        lnd_options={"bitcoin.simnet": True},
        shutdown_timeout=5,
        poll_interval=0.05,
    )
