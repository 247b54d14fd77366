"""
Configuration management with environment variable support and validation.

Design principles:
- Environment-specific configs (dev, staging, prod)
- Validation at startup (fail fast)
- Type safety with Pydantic
"""

import os
from functools import lru_cache
from typing import Literal, cast

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

# Load environment variables from .env file
load_dotenv()


class AlertingConfig(BaseModel):
    """Alert engine behaviour."""

    deterioration_score_delta: int = Field(
        default=2, ge=1, description="Score rise between observations that counts as deteriorating"
    )
    overdue_escalation_factor: float = Field(
        default=2.0,
        gt=1.0,
        description="Overdue alerts escalate once the gap exceeds this many monitoring intervals",
    )
    conflict_retry_attempts: int = Field(
        default=3, gt=0, description="Attempts at an alert upsert before giving up"
    )
    resolve_overdue_on_observation: bool = Field(
        default=False, description="Resolve an open overdue alert when an observation arrives"
    )


class ScannerConfig(BaseModel):
    """Overdue observation scanner."""

    scan_interval_seconds: float = Field(
        default=300.0, gt=0.0, description="Interval between overdue scans"
    )
    max_concurrent_evaluations: int = Field(
        default=10, gt=0, description="Maximum number of patients evaluated at once"
    )
    evaluation_timeout_seconds: float = Field(
        default=10.0, gt=0.0, description="Timeout for a single patient evaluation"
    )


class DatabaseConfig(BaseModel):
    """Monitoring store configuration."""

    url: str = Field(default="memory://", description="Monitoring store URL")
    pool_size: int = Field(default=10, gt=0, description="Connection pool size")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    alerting: AlertingConfig = Field(default_factory=AlertingConfig)
    scanner: ScannerConfig = Field(default_factory=ScannerConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self

    @property
    def scan_concurrency(self) -> int:
        """Scanner worker pool size, bounded by the store's connection capacity."""
        return min(self.scanner.max_concurrent_evaluations, self.database.pool_size)


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
        v = val.strip().lower()
        if v in {"dev", "development"}:
            return "development"
        if v in {"stage", "staging"}:
            return "staging"
        return "production"

    def _level_to_literal(val: str) -> Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        v = val.strip().upper()
        return cast(
            Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO",
        )

    def _parse_bool(val: str | None, default: bool) -> bool:
        if val is None:
            return default
        return val.strip().lower() in {"1", "true", "yes", "on"}

    # Detect environment
    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    alerting_config = AlertingConfig(
        deterioration_score_delta=int(os.getenv("DETERIORATION_SCORE_DELTA", "2")),
        overdue_escalation_factor=float(os.getenv("OVERDUE_ESCALATION_FACTOR", "2.0")),
        conflict_retry_attempts=int(os.getenv("ALERT_CONFLICT_RETRY_ATTEMPTS", "3")),
        resolve_overdue_on_observation=_parse_bool(
            os.getenv("RESOLVE_OVERDUE_ON_OBSERVATION"), False
        ),
    )

    scanner_config = ScannerConfig(
        scan_interval_seconds=float(os.getenv("SCAN_INTERVAL_SECONDS", "300.0")),
        max_concurrent_evaluations=int(os.getenv("MAX_CONCURRENT_EVALUATIONS", "10")),
        evaluation_timeout_seconds=float(os.getenv("EVALUATION_TIMEOUT_SECONDS", "10.0")),
    )

    database_config = DatabaseConfig(
        url=os.getenv("DATABASE_URL", "memory://"),
        pool_size=int(os.getenv("DATABASE_POOL_SIZE", "10")),
    )

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        alerting=alerting_config,
        scanner=scanner_config,
        database=database_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()


def reset_config_cache() -> None:
    get_config.cache_clear()


def validate_config() -> None:
    """Validate configuration at startup."""
    try:
        config = get_config()
        print(f"✅ Configuration loaded for {config.environment} environment")
    except Exception as e:
        print(f"❌ Configuration validation failed: {e}")
        raise


def print_config_summary() -> None:
    """Print configuration summary for debugging."""
    config = get_config()

    print("\n🔧 CONFIGURATION SUMMARY")
    print(f"Environment: {config.environment}")
    print(f"Debug Mode: {config.debug}")
    print(f"Log Level: {config.logging.level}")

    print("\n🚨 ALERTING CONFIGURATION")
    print(f"Deterioration Delta: +{config.alerting.deterioration_score_delta}")
    print(f"Overdue Escalation: {config.alerting.overdue_escalation_factor}x interval")
    print(f"Resolve Overdue On Observation: {config.alerting.resolve_overdue_on_observation}")

    print("\n⏱️  SCANNER CONFIGURATION")
    print(f"Scan Interval: {config.scanner.scan_interval_seconds}s")
    print(f"Concurrency: {config.scan_concurrency}")


if __name__ == "__main__":
    validate_config()
    print_config_summary()
