"""Tests for configuration, exceptions, logging and console helpers."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

import pytest

from asset_locks.core.colors import ConsoleColors
from asset_locks.core.config import CoordinatorConfig, parse_extension_list
from asset_locks.core.exceptions import (
    AssetLockError,
    ConfigurationError,
    CoordinationUnavailableError,
    VersionControlError,
)
from asset_locks.core.logging import ContextTextFormatter, JSONFormatter, setup_logging, with_log_context
from asset_locks.locks.policy import LockablePolicy


class TestParseExtensionList:
    def test_comma_separated(self):
        assert parse_extension_list(" PNG, .unity ,,fbx") == (".png", ".unity", ".fbx")

    def test_sequence_deduplicated(self):
        assert parse_extension_list([".png", "png", ".PNG"]) == (".png",)

    def test_empty(self):
        assert parse_extension_list("") is None
        assert parse_extension_list(None) is None


class TestCoordinatorConfig:
    def test_defaults(self):
        config = CoordinatorConfig()

        assert config.root is None
        assert config.lease_hours == 24.0
        assert config.max_history_entries == 100
        assert config.lockable_extensions is None

    def test_from_env(self, tmp_path):
        config = CoordinatorConfig.from_env(
            {
                "ASSET_LOCKS_ROOT": str(tmp_path),
                "ASSET_LOCKS_LEASE_HOURS": "8",
                "ASSET_LOCKS_EXTENSIONS": "psd,blend",
                "LOG_LEVEL": "DEBUG",
            }
        )

        assert config.root == tmp_path
        assert config.lease_hours == 8.0
        assert config.lockable_extensions == (".psd", ".blend")
        assert config.log.level == "DEBUG"

    def test_invalid_lease(self):
        with pytest.raises(ConfigurationError) as exc_info:
            CoordinatorConfig.from_env({"ASSET_LOCKS_LEASE_HOURS": "soon"})
        assert exc_info.value.field == "ASSET_LOCKS_LEASE_HOURS"

    def test_non_positive_lease(self):
        with pytest.raises(ConfigurationError):
            CoordinatorConfig(lease_hours=0)

    def test_args_override_env(self, tmp_path):
        args = argparse.Namespace(root=str(tmp_path), log_level="WARNING", log_format="json")

        config = CoordinatorConfig.from_args(args, {"ASSET_LOCKS_ROOT": "/elsewhere", "LOG_LEVEL": "DEBUG"})

        assert config.root == Path(tmp_path)
        assert config.log.level == "WARNING"
        assert config.log.log_format == "json"


class TestExceptions:
    def test_base_renders_details(self):
        assert str(AssetLockError("Boom", details="disk full")) == "Boom: disk full"
        assert str(AssetLockError("Boom")) == "Boom"

    def test_version_control_error(self):
        error = VersionControlError("git push failed", command=["push"], returncode=1, stderr="rejected\n")

        assert str(error) == "git push failed - command: git push - exit 1 - rejected"
        assert isinstance(error, AssetLockError)

    def test_coordination_unavailable(self):
        assert "no repository root" in str(CoordinationUnavailableError())
        assert "/tmp/x" in str(CoordinationUnavailableError("/tmp/x"))


class TestLogging:
    def test_json_formatter_includes_context(self):
        record = logging.makeLogRecord({"name": "asset_locks", "levelname": "INFO", "msg": "Locked", "resource": "a.png"})

        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "Locked"
        assert data["resource"] == "a.png"
        assert data["logger"] == "asset_locks"

    def test_with_log_context_merges_fields(self, caplog):
        caplog.set_level(logging.INFO)
        logger = logging.getLogger("asset_locks.test")

        adapter = with_log_context(with_log_context(logger, resource="a.png"), user="alice")
        adapter.info("hello")

        assert caplog.records[-1].resource == "a.png"
        assert caplog.records[-1].user == "alice"

    def test_text_formatter_appends_context(self):
        record = logging.makeLogRecord({"msg": "Locked", "levelname": "INFO", "resource": "a.png", "user": "alice"})

        assert ContextTextFormatter("%(message)s").format(record) == "Locked [resource=a.png user=alice]"

    def test_text_formatter_without_context(self):
        record = logging.makeLogRecord({"msg": "Refreshed", "levelname": "INFO"})

        assert ContextTextFormatter("%(message)s").format(record) == "Refreshed"

    def test_with_log_context_passes_through_non_loggers(self):
        sentinel = object()

        assert with_log_context(sentinel, resource="x") is sentinel

    def test_setup_logging_invalid_level_falls_back(self, capsys):
        root_handlers = logging.root.handlers[:]
        root_level = logging.root.level
        try:
            logger = setup_logging("LOUD")
            assert logger.name == "asset_locks"
            assert logging.root.level == logging.INFO
            assert "Invalid log level" in capsys.readouterr().err
        finally:
            for handler in logging.root.handlers[:]:
                logging.root.removeHandler(handler)
            for handler in root_handlers:
                logging.root.addHandler(handler)
            logging.root.setLevel(root_level)

    def test_setup_logging_with_file(self, tmp_path):
        root_handlers = logging.root.handlers[:]
        root_level = logging.root.level
        log_file = tmp_path / "logs" / "asset-locks.log"
        try:
            logger = setup_logging("INFO", log_format="json", log_file=log_file)
            logger.info("written to file")
            for handler in logging.root.handlers:
                handler.flush()
            assert json.loads(log_file.read_text(encoding="utf-8").splitlines()[-1])["message"] == "written to file"
        finally:
            for handler in logging.root.handlers[:]:
                handler.close()
                logging.root.removeHandler(handler)
            for handler in root_handlers:
                logging.root.addHandler(handler)
            logging.root.setLevel(root_level)


class TestConsoleColors:
    def test_disabled_returns_plain_text(self):
        ConsoleColors.configure(no_color=True)

        assert ConsoleColors.error("x") == "x"
        assert ConsoleColors.lock_state("mine", "y") == "y"

    def test_lock_state_colors(self, monkeypatch):
        monkeypatch.setattr(ConsoleColors, "_enabled", True)

        assert ConsoleColors.lock_state("other", "x") == f"{ConsoleColors.RED}x{ConsoleColors.RESET}"
        assert ConsoleColors.lock_state("unknown", "x") == "x"


class TestLockablePolicy:
    def test_default_list(self):
        policy = LockablePolicy()

        assert policy.is_lockable("Assets/Main.unity")
        assert policy.is_lockable("Assets/Anim/Run.overrideController")
        assert not policy.is_lockable("Assets/Scripts/Player.cs")
        assert not policy.is_lockable("Assets/Makefile")
        assert not policy.is_lockable(None)

    def test_empty_override_uses_defaults(self):
        assert LockablePolicy([]).is_lockable("Assets/a.png")
