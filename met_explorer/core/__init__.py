"""Core functionality for Met Explorer.

This package contains the orchestration layer: data models, response
schemas, the rate limiter, the timeout-aware HTTP client, generation
tracking, bounded hydration, configuration, logging and the explorer
controller.
"""

from .data_models import (  # noqa: F401
    HydrationResult,
    ResultCard,
    SearchPage,
    SearchRequest,
    StatusMessage,
)
from .schemas import Department, ObjectRecord, SearchResponse  # noqa: F401
from .outcomes import CallFailure, CallOutcome, FailureKind, MetApiError  # noqa: F401
from .rate_limiter import (  # noqa: F401
    RateLimitConfig,
    RateLimiter,
    get_rate_limiter,
    set_rate_limiter,
)
from .http_client import OutboundCall, TimeoutAwareClient  # noqa: F401
from .generation import GenerationTracker  # noqa: F401
from .hydrator import BoundedHydrator  # noqa: F401
from .config import Config, ValidationResult, get_config  # noqa: F401
from .logging_setup import configure_logging  # noqa: F401
from .orchestrator import ExplorerController, ExplorerState  # noqa: F401

__all__ = [
    # Models
    "HydrationResult",
    "ResultCard",
    "SearchPage",
    "SearchRequest",
    "StatusMessage",
    "Department",
    "ObjectRecord",
    "SearchResponse",
    # Outcomes
    "CallFailure",
    "CallOutcome",
    "FailureKind",
    "MetApiError",
    # Rate Limiting
    "RateLimitConfig",
    "RateLimiter",
    "get_rate_limiter",
    "set_rate_limiter",
    # HTTP
    "OutboundCall",
    "TimeoutAwareClient",
    # Concurrency
    "GenerationTracker",
    "BoundedHydrator",
    # Config
    "Config",
    "ValidationResult",
    "get_config",
    # Logging
    "configure_logging",
    # Controller
    "ExplorerController",
    "ExplorerState",
]
