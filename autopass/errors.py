"""
autopass Errors

Failures that stop an invocation. Negative verification results are not
errors and never appear here; they come back through the normal return
channel.
"""

from typing import Optional


class AutopassError(Exception):
    """Base class for all autopass failures."""


class NotAuthorized(AutopassError):
    """Raised when a direct call comes from neither the account nor the registry."""

    def __init__(self, account: str, caller: str):
        self.account = account
        self.caller = caller
        super().__init__(f"Caller {caller} is not authorized for account {account}")


class ReentrantCall(AutopassError):
    """Raised when execute_plan is entered while another execution is in flight."""

    def __init__(self):
        super().__init__("Reentrant call rejected")


class PayloadDecodeError(AutopassError, ValueError):
    """Raised when an install or uninstall payload cannot be decoded."""


# =============================================================================
# Plan preconditions
# =============================================================================

class PlanError(AutopassError):
    """Base class for plan precondition failures. No state changes on raise."""

    def __init__(self, message: str, plan_id: Optional[int] = None):
        self.plan_id = plan_id
        super().__init__(message)


class InvalidAmount(PlanError):
    def __init__(self, amount: int):
        self.amount = amount
        super().__init__(f"Invalid amount: {amount}")


class InvalidInterval(PlanError):
    def __init__(self, interval: int):
        self.interval = interval
        super().__init__(f"Invalid interval: {interval}")


class PlanNotFound(PlanError):
    def __init__(self, plan_id: int):
        super().__init__(f"Plan {plan_id} not found", plan_id)


class PlanInactive(PlanError):
    def __init__(self, plan_id: int):
        super().__init__(f"Plan {plan_id} is not active", plan_id)


class TooEarly(PlanError):
    """Raised when a plan is executed before its interval has elapsed."""

    def __init__(self, plan_id: int, ready_at: int, now: int):
        self.ready_at = ready_at
        self.now = now
        super().__init__(
            f"Plan {plan_id} not due until {ready_at} (now {now})", plan_id
        )


class DexNotWhitelisted(PlanError):
    def __init__(self, plan_id: int, endpoint: str):
        self.endpoint = endpoint
        super().__init__(f"Endpoint {endpoint} is not whitelisted", plan_id)


class TokenNotDeployed(PlanError):
    """Raised when a plan's token_in address holds no token contract."""

    def __init__(self, plan_id: int, token: str):
        self.token = token
        super().__init__(f"No token deployed at {token} for plan {plan_id}", plan_id)


# =============================================================================
# External calls
# =============================================================================

class Revert(AutopassError):
    """
    Raised by an endpoint or token to fail the call it is serving.

    The reason bytes are opaque and travel back to the caller unchanged.
    """

    def __init__(self, reason: bytes = b""):
        if isinstance(reason, str):
            reason = reason.encode("utf-8")
        self.reason = reason
        super().__init__(reason.decode("utf-8", errors="replace") or "reverted")


class InsufficientBalance(Revert):
    pass


class InsufficientAllowance(Revert):
    pass


class SwapFailed(AutopassError):
    """Raised when the swap endpoint call fails. Carries its reason verbatim."""

    def __init__(self, plan_id: int, endpoint: str, reason: bytes):
        self.plan_id = plan_id
        self.endpoint = endpoint
        self.reason = reason
        super().__init__(
            f"Swap call to {endpoint} for plan {plan_id} failed: {reason!r}"
        )
