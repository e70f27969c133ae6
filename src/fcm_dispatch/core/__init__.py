"""Core dispatch engine: batch dispatcher, retry policy, scheduler and configuration."""

from fcm_dispatch.core.config import (
    ConfigurationError,
    EnvironmentVariableError,
    MainConfig,
    load_config,
)
from fcm_dispatch.core.dispatcher import Dispatcher
from fcm_dispatch.core.retry import RetryPolicy
from fcm_dispatch.core.scheduler import DispatchScheduler, ScheduledDispatch, ScheduleState

__all__ = [
    "ConfigurationError",
    "DispatchScheduler",
    "Dispatcher",
    "EnvironmentVariableError",
    "MainConfig",
    "RetryPolicy",
    "ScheduleState",
    "ScheduledDispatch",
    "load_config",
]
