"""Rate-limited dispatch of outbound calls."""

from ccpretty.dispatch.limiter import DispatchLimiter

__all__ = ["DispatchLimiter"]
