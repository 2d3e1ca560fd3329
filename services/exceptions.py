"""
services/exceptions.py
----------------------
Errors raised by the billing and reminder scheduling code.
"""


class SchedulingError(Exception):
    """Base class for billing-schedule errors."""


class InvalidBillingDataError(SchedulingError, ValueError):
    """A subscription field is outside the range its billing cycle allows."""


class UnknownBillingCycleError(SchedulingError, ValueError):
    """A billing cycle value is not part of the BillingCycle enumeration."""
