"""openrouteservice client, limits and rate limiting."""

from .client import ORSClient, ORSRequestError, ORSValidationError, check_health
from .limits import DEFAULT_LIMITS, PROFILE_GROUPS, ORSLimits, merge_limits, profile_group
from .rate_limiter import RateLimiter

__all__ = [
    "ORSClient",
    "ORSRequestError",
    "ORSValidationError",
    "check_health",
    "DEFAULT_LIMITS",
    "PROFILE_GROUPS",
    "ORSLimits",
    "merge_limits",
    "profile_group",
    "RateLimiter",
]
