from __future__ import annotations

import dataclasses
import logging
from pathlib import Path

import pytest

from conduit.config import DEFAULT_LND_ARGS, Config, load_config


def test_default_lnd_args() -> None:
    assert Config().lnd_args() == list(DEFAULT_LND_ARGS)


def test_lnd_args_flatten_options() -> None:
    config = Config(
        lnd_options={
            "bitcoin.active": True,
            "bitcoin.mainnet": False,
            "alias": "conduit-node",
            "externalip": ["1.2.3.4", "5.6.7.8"],
            "maxpendingchannels": 5,
            "tor.active": None,
        },
        lnd_extra_args=("--noseedbackup",),
    )

    assert config.lnd_args() == [
        "--bitcoin.active",
        "--alias=conduit-node",
        "--externalip=1.2.3.4",
        "--externalip=5.6.7.8",
        "--maxpendingchannels=5",
        "--noseedbackup",
    ]


def test_config_is_frozen() -> None:
    with pytest.raises(AttributeError):
        Config().log_level = "DEBUG"


def test_derived_paths(tmp_path) -> None:
    config = Config(conduit_dir=tmp_path)

    assert config.config_file == tmp_path / "config.yaml"
    assert config.log_file == tmp_path / "logfile.log"


def test_ensure_dirs(tmp_path) -> None:
    config = Config(conduit_dir=tmp_path / "a" / "b")

    config.ensure_dirs()

    assert (tmp_path / "a" / "b").is_dir()


def test_load_config_without_file_uses_defaults(tmp_path) -> None:
    config = load_config(conduit_dir=tmp_path)

    assert config.conduit_dir == tmp_path
    assert config.default_dir is False
    assert config.lnd_args() == list(DEFAULT_LND_ARGS)


def test_load_config_reads_yaml(tmp_path) -> None:
    (tmp_path / "config.yaml").write_text(
        "console_output: false\n"
        "log_level: DEBUG\n"
        "shutdown_timeout: 12\n"
        "lnd:\n"
        "  bitcoin.active: true\n"
        "  bitcoin.testnet: true\n"
        "  bitcoin.node: neutrino\n"
    )

    config = load_config(conduit_dir=tmp_path)

    assert config.console_output is False
    assert config.log_level == "DEBUG"
    assert config.shutdown_timeout == 12
    assert config.lnd_args() == ["--bitcoin.active", "--bitcoin.testnet", "--bitcoin.node=neutrino"]


def test_overrides_win_over_file(tmp_path) -> None:
    (tmp_path / "config.yaml").write_text("log_level: DEBUG\nconsole_output: false\n")

    config = load_config(conduit_dir=tmp_path, log_level="ERROR", console_output=None)

    assert config.log_level == "ERROR"
    assert config.console_output is False


def test_explicit_config_file(tmp_path) -> None:
    other = tmp_path / "elsewhere.yaml"
    other.write_text(f"conduit_dir: {tmp_path / 'data'}\n")

    config = load_config(config_file=other)

    assert config.conduit_dir == tmp_path / "data"
    assert config.default_dir is False


def test_malformed_yaml_falls_back_to_defaults(tmp_path, caplog) -> None:
    (tmp_path / "config.yaml").write_text("log_level: [unclosed\n")

    with caplog.at_level(logging.WARNING, logger="conduit.config"):
        config = load_config(conduit_dir=tmp_path)

    assert config.log_level == Config().log_level
    assert "using defaults" in caplog.text


def test_unknown_keys_are_ignored(tmp_path, caplog) -> None:
    (tmp_path / "config.yaml").write_text("colour: blue\nlog_level: WARN\n")

    with caplog.at_level(logging.WARNING, logger="conduit.config"):
        config = load_config(conduit_dir=tmp_path)

    assert config.log_level == "WARN"
    assert "colour" in caplog.text


def test_extra_args_override(tmp_path) -> None:
    config = load_config(conduit_dir=tmp_path, lnd_extra_args=["--bitcoin.regtest"])

    assert config.lnd_extra_args == ("--bitcoin.regtest",)
    assert config.lnd_args() == ["--bitcoin.regtest"]


def test_extra_args_string_is_split(tmp_path) -> None:
    (tmp_path / "config.yaml").write_text("lnd_extra_args: --bitcoin.regtest --alias='my node'\n")

    config = load_config(conduit_dir=tmp_path)

    assert config.lnd_extra_args == ("--bitcoin.regtest", "--alias=my node")


@pytest.mark.parametrize(
    ("text", "key"),
    [
        ("log_level: 10\n", "log_level"),
        ("log_level: LOUD\n", "log_level"),
        ("shutdown_timeout: '10'\n", "shutdown_timeout"),
        ("console_output: 'no'\n", "console_output"),
        ("log_backup_count: true\n", "log_backup_count"),
        ("conduit_dir: 42\n", "conduit_dir"),
        ("lnd_extra_args: [--bitcoin.regtest, 5]\n", "lnd_extra_args"),
        ("lnd: --bitcoin.regtest\n", "lnd_options"),
    ],
)
def test_wrongly_typed_values_keep_defaults(tmp_path, caplog, text: str, key: str) -> None:
    (tmp_path / "config.yaml").write_text(text)

    with caplog.at_level(logging.WARNING, logger="conduit.config"):
        config = load_config(conduit_dir=tmp_path)

    defaults = dataclasses.replace(Config(), conduit_dir=tmp_path, default_dir=False)
    assert getattr(config, key) == getattr(defaults, key)
    assert f"Ignoring config key '{key}'" in caplog.text


def test_integer_timeout_is_accepted(tmp_path) -> None:
    (tmp_path / "config.yaml").write_text("shutdown_timeout: 3\n")

    config = load_config(conduit_dir=tmp_path)

    assert config.shutdown_timeout == 3.0
    assert isinstance(config.shutdown_timeout, float)
