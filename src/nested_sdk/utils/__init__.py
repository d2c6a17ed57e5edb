"""Utility modules for the Nested SDK."""

from nested_sdk.utils.math import FIXED_FEE, add_fees, remove_fees, safe_mult
from nested_sdk.utils.rate_limit import RateLimiter

__all__ = ["FIXED_FEE", "add_fees", "remove_fees", "safe_mult", "RateLimiter"]
