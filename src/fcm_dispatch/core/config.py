"""Configuration system for fcm-dispatch.

This module implements the main configuration schema using Pydantic for
validation, with support for environment variable resolution and fail-fast
validation with actionable error messages. Every section has defaults, so an
empty configuration is valid and the configuration file is optional.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Final, Self

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from fcm_dispatch.core.dispatcher import Dispatcher
from fcm_dispatch.core.retry import RetryPolicy
from fcm_dispatch.core.scheduler import DispatchScheduler

if TYPE_CHECKING:
    from fcm_dispatch.types import Sender

# Matches ${VARIABLE_NAME} where VARIABLE_NAME contains letters, digits and underscores
ENV_VAR_PATTERN: Final[re.Pattern[str]] = re.compile(r"\$\{([A-Z0-9_]+)\}")


class DispatchConfig(BaseModel):
    """Configuration for batch dispatch behavior."""

    max_concurrency: Annotated[
        int,
        Field(gt=0, description="Upper bound for in-flight provider calls per batch"),
    ] = 20
    default_concurrency: Annotated[
        int,
        Field(gt=0, description="Concurrency used when a caller does not ask for one"),
    ] = 10
    max_batch_size: Annotated[
        int,
        Field(gt=0, description="Largest batch accepted in a single dispatch"),
    ] = 500
    send_timeout_seconds: Annotated[
        float | None,
        Field(gt=0, description="Per-attempt timeout; exceeding it is a transient error"),
    ] = 10.0
    retry: Annotated[
        RetryPolicy,
        Field(description="Retry policy for transient send failures"),
    ] = RetryPolicy()

    @model_validator(mode="after")
    def validate_default_concurrency(self) -> Self:
        if self.default_concurrency > self.max_concurrency:
            msg = (
                f"default_concurrency ({self.default_concurrency}) must not exceed "
                f"max_concurrency ({self.max_concurrency})"
            )
            raise ValueError(msg)
        return self


class SchedulingConfig(BaseModel):
    """Configuration for delayed dispatch."""

    min_delay_seconds: Annotated[
        float,
        Field(ge=0, description="Shortest delay a scheduled notification may use"),
    ] = 1.0
    max_delay_seconds: Annotated[
        float,
        Field(gt=0, description="Longest delay a scheduled notification may use"),
    ] = 60.0

    @model_validator(mode="after")
    def validate_delay_range(self) -> Self:
        if self.min_delay_seconds > self.max_delay_seconds:
            msg = (
                f"min_delay_seconds ({self.min_delay_seconds}) must not exceed "
                f"max_delay_seconds ({self.max_delay_seconds})"
            )
            raise ValueError(msg)
        return self


class FirebaseConfig(BaseModel):
    """Configuration for the Firebase Admin SDK."""

    credentials_file: Annotated[
        Path | None,
        Field(description="Service-account JSON; application default credentials when unset"),
    ] = None
    project_id: Annotated[
        str | None,
        Field(description="Firebase project ID override"),
    ] = None
    app_name: Annotated[
        str,
        Field(min_length=1, description="Name of the firebase_admin App instance"),
    ] = "fcm-dispatch"
    validate_only: Annotated[
        bool,
        Field(description="Ask FCM to validate messages without delivering them"),
    ] = False


class ServerConfig(BaseModel):
    """Configuration for the HTTP server."""

    host: Annotated[str, Field(min_length=1, description="Bind address")] = "0.0.0.0"
    port: Annotated[int, Field(gt=0, lt=65536, description="Bind port")] = 3000
    default_bulk_title: Annotated[
        str,
        Field(min_length=1, description="Title used by bulk sends that omit one"),
    ] = "Bulk Test"
    default_bulk_body: Annotated[
        str,
        Field(min_length=1, description="Body used by bulk sends that omit one"),
    ] = "Bulk notification test"
    environment: Annotated[
        str,
        Field(description="Deployment environment reported by the health endpoint"),
    ] = "development"


class ApplicationConfig(BaseModel):
    """Configuration for application-level settings."""

    log_level: Annotated[
        str,
        Field(
            description="Logging level",
            pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        ),
    ] = "INFO"
    dry_run: Annotated[
        bool,
        Field(description="Dry-run mode: log notifications without contacting FCM"),
    ] = False


class MainConfig(BaseModel):
    """Main application configuration schema.

    Top-level container aggregating all configuration sections:
    - dispatch: Batch dispatch and retry behavior
    - scheduling: Delayed dispatch range
    - firebase: Provider SDK settings
    - server: HTTP server settings
    - application: Application-level settings
    """

    dispatch: DispatchConfig = DispatchConfig()
    scheduling: SchedulingConfig = SchedulingConfig()
    firebase: FirebaseConfig = FirebaseConfig()
    server: ServerConfig = ServerConfig()
    application: ApplicationConfig = ApplicationConfig()

    def build_dispatcher(self, sender: Sender) -> Dispatcher:
        """Create a Dispatcher configured from the dispatch section."""
        return Dispatcher(
            sender,
            max_concurrency=self.dispatch.max_concurrency,
            default_concurrency=self.dispatch.default_concurrency,
            max_batch_size=self.dispatch.max_batch_size,
            default_retry_policy=self.dispatch.retry,
            send_timeout_seconds=self.dispatch.send_timeout_seconds,
        )

    def build_scheduler(self, dispatcher: Dispatcher) -> DispatchScheduler:
        """Create a DispatchScheduler configured from the scheduling section."""
        return DispatchScheduler(
            dispatcher,
            min_delay_seconds=self.scheduling.min_delay_seconds,
            max_delay_seconds=self.scheduling.max_delay_seconds,
        )


class EnvironmentVariableError(Exception):
    """Exception raised when environment variable resolution fails.

    Error messages name the missing variable but never include secret values.
    """


class ConfigurationError(Exception):
    """Exception raised when configuration loading or validation fails."""


def resolve_env_var(value: str) -> str:
    """Resolve ${VARIABLE_NAME} references in a string value.

    Raises:
        EnvironmentVariableError: If a referenced environment variable is not set

    Examples:
        >>> os.environ["TEST_VAR"] = "value"
        >>> resolve_env_var("prefix_${TEST_VAR}_suffix")
        'prefix_value_suffix'
    """

    def replace_match(match: re.Match[str]) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            msg = (
                f"Required environment variable '{var_name}' is not set. "
                f"Please set this variable before starting the application."
            )
            raise EnvironmentVariableError(msg)
        return env_value

    return ENV_VAR_PATTERN.sub(replace_match, value)


def resolve_env_vars_in_dict(data: Mapping[str, object]) -> dict[str, object]:
    """Recursively resolve environment variables in nested dicts and lists.

    Non-string values are preserved as-is; the result is validated by Pydantic
    afterwards.
    """
    return {key: _resolve_env_vars_in_value(value) for key, value in data.items()}


def _resolve_env_vars_in_value(value: object) -> object:
    if isinstance(value, str):
        return resolve_env_var(value)
    if isinstance(value, dict):
        # YAML data is untyped at load time; validated by Pydantic after resolution
        return resolve_env_vars_in_dict(value)  # pyright: ignore[reportUnknownArgumentType]  # YAML boundary
    if isinstance(value, list):
        return [_resolve_env_vars_in_value(item) for item in value]  # pyright: ignore[reportUnknownVariableType]  # YAML list items
    return value


def load_config(config_path: Path | None) -> MainConfig:
    """Load and validate application configuration from a YAML file.

    Args:
        config_path: Path to the YAML file, or None for all defaults

    Returns:
        Validated MainConfig instance

    Raises:
        ConfigurationError: If the file cannot be loaded or is invalid
    """
    if config_path is None:
        return MainConfig()

    if not config_path.exists():
        msg = (
            f"Configuration file not found: {config_path}\n"
            f"Please create a configuration file at this location or omit --config."
        )
        raise ConfigurationError(msg)

    try:
        with config_path.open("r") as f:
            raw_data: object = yaml.safe_load(f)  # pyright: ignore[reportAny]  # YAML boundary
    except yaml.YAMLError as e:
        msg = (
            f"Failed to parse YAML configuration file: {config_path}\n"
            f"YAML parsing error: {e}\n"
            f"Please check the file for syntax errors."
        )
        raise ConfigurationError(msg) from e
    except OSError as e:
        msg = f"Failed to read configuration file: {config_path}\nError: {e}\nPlease check file permissions."
        raise ConfigurationError(msg) from e

    # An empty file is an all-defaults configuration
    if raw_data is None:
        raw_data = {}

    if not isinstance(raw_data, dict):
        msg = (
            f"Invalid configuration file format: {config_path}\n"
            f"Expected YAML dictionary at root level, got: {type(raw_data).__name__}\n"
            f"Configuration file must contain key-value pairs."
        )
        raise ConfigurationError(msg)

    try:
        resolved_data = resolve_env_vars_in_dict(raw_data)  # pyright: ignore[reportUnknownArgumentType]  # YAML boundary
    except EnvironmentVariableError as e:
        msg = (
            f"Environment variable resolution failed in: {config_path}\n"
            f"{e}\n"
            f"Set the required environment variable before starting the application."
        )
        raise ConfigurationError(msg) from e

    try:
        return MainConfig.model_validate(resolved_data)
    except ValidationError as e:
        error_lines = ["Configuration validation failed:", ""]
        for error in e.errors():
            field_path = " → ".join(str(loc) for loc in error["loc"])
            error_lines.append(f"  Field: {field_path}")
            error_lines.append(f"  Error: {error['msg']}")
            error_lines.append(f"  Type: {error['type']}")
            error_lines.append("")

        error_lines.append(f"Configuration file: {config_path}")
        error_lines.append("Please fix the above errors and try again.")
        raise ConfigurationError("\n".join(error_lines)) from e
