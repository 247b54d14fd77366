"""
Tests for configuration management in `news2/config.py`.

Covers:
- Environment parsing and debug defaults
- Logging level coercion to the expected Literal
- Alerting and scanner overrides from the environment
- Scanner concurrency bounded by the pool size
- get_config cache behavior
- AppConfig validation (debug only allowed in development)
"""

from __future__ import annotations

import logging
from collections.abc import Iterator

import pytest
import structlog
from pydantic import ValidationError

from news2.config import (
    AlertingConfig,
    AppConfig,
    DatabaseConfig,
    LoggingConfig,
    ScannerConfig,
    get_config,
    load_config_from_env,
    reset_config_cache,
)
from news2.logging_setup import configure_logging


def test_load_config_dev_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("DETERIORATION_SCORE_DELTA", raising=False)

    config = load_config_from_env()

    assert config.environment == "development"
    assert config.debug is True
    assert config.logging.format == "console"
    assert config.alerting.deterioration_score_delta == 2
    assert config.alerting.resolve_overdue_on_observation is False


def test_production_uses_json_logs(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "prod")

    config = load_config_from_env()

    assert config.environment == "production"
    assert config.debug is False
    assert config.logging.format == "json"


def test_logging_level_literal_coercion(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "staging")

    # Unknown level should coerce to INFO
    monkeypatch.setenv("LOG_LEVEL", "unknown")
    assert load_config_from_env().logging.level == "INFO"

    monkeypatch.setenv("LOG_LEVEL", "error")
    assert load_config_from_env().logging.level == "ERROR"


def test_alerting_and_scanner_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DETERIORATION_SCORE_DELTA", "3")
    monkeypatch.setenv("OVERDUE_ESCALATION_FACTOR", "1.5")
    monkeypatch.setenv("RESOLVE_OVERDUE_ON_OBSERVATION", "yes")
    monkeypatch.setenv("SCAN_INTERVAL_SECONDS", "60")
    monkeypatch.setenv("MAX_CONCURRENT_EVALUATIONS", "25")
    monkeypatch.setenv("DATABASE_POOL_SIZE", "5")

    config = load_config_from_env()

    assert config.alerting.deterioration_score_delta == 3
    assert config.alerting.overdue_escalation_factor == 1.5
    assert config.alerting.resolve_overdue_on_observation is True
    assert config.scanner.scan_interval_seconds == 60.0
    assert config.scan_concurrency == 5


def test_invalid_escalation_factor_fails_fast(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OVERDUE_ESCALATION_FACTOR", "1.0")

    with pytest.raises(ValidationError):
        load_config_from_env()


@pytest.mark.parametrize(
    "evaluations,pool_size,expected",
    [(10, 10, 10), (20, 4, 4), (3, 50, 3)],
)
def test_scan_concurrency_is_bounded_by_pool(
    evaluations: int, pool_size: int, expected: int
) -> None:
    config = AppConfig(
        scanner=ScannerConfig(max_concurrent_evaluations=evaluations),
        database=DatabaseConfig(pool_size=pool_size),
    )

    assert config.scan_concurrency == expected


def test_get_config_cache(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENVIRONMENT", "development")

    c1 = get_config()
    c2 = get_config()
    assert c1 is c2  # same object due to lru_cache

    reset_config_cache()
    assert get_config() is not c1


def test_app_config_debug_only_in_dev_validation() -> None:
    with pytest.raises(ValueError, match="debug mode is only allowed"):
        AppConfig(
            environment="production",
            debug=True,
            alerting=AlertingConfig(),
            logging=LoggingConfig(),
        )


@pytest.fixture
def restore_logging() -> Iterator[None]:
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    structlog.reset_defaults()


@pytest.mark.parametrize("fmt", ["json", "console"])
def test_configure_logging_installs_single_root_handler(
    fmt: str, restore_logging: None
) -> None:
    configure_logging(LoggingConfig(level="WARNING", format=fmt))  # type: ignore[arg-type]

    root = logging.getLogger()
    assert len(root.handlers) == 1
    assert isinstance(root.handlers[0].formatter, structlog.stdlib.ProcessorFormatter)
    assert root.level == logging.WARNING
