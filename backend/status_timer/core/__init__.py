# Core modules - Config, Exceptions, Clock
from .config import settings, get_settings, Settings
from .clock import Clock, SystemClock, FixedClock
from .exceptions import (
    TimerException,
    ValidationError,
    IssueSourceError,
    IssueNotFoundError,
    PersistenceError,
    ConfigurationError,
)

__all__ = [
    "settings",
    "get_settings",
    "Settings",
    "Clock",
    "SystemClock",
    "FixedClock",
    "TimerException",
    "ValidationError",
    "IssueSourceError",
    "IssueNotFoundError",
    "PersistenceError",
    "ConfigurationError",
]
