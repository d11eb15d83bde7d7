"""
autopass Execution Environment

The surrounding environment that modules run inside: a clock, a table of
deployed endpoints keyed by address, and the call mechanism between them.

Calls follow account-chain semantics:
- A call to an address without code succeeds with empty return data
- An endpoint fails a call by raising; the failure comes back as a
  CallResult with success=False rather than as an exception
- Invocations are serialized; nothing here runs concurrently
"""

import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .errors import Revert

logger = logging.getLogger(__name__)

ADDRESS_PATTERN = re.compile(r'^0x[0-9a-fA-F]{40}$')

ZERO_ADDRESS = "0x" + "00" * 20


def normalize_address(value: str) -> str:
    """
    Validate and normalize an address identity.

    Returns:
        Lower-cased 0x-prefixed 20-byte hex string

    Raises:
        ValueError: If the value is not an address
    """
    if not isinstance(value, str) or not ADDRESS_PATTERN.match(value):
        raise ValueError(f"Not an address: {value!r}")
    return value.lower()


def address_from_int(value: int) -> str:
    """Build an address from its integer value (e.g. 0x100)."""
    return "0x" + value.to_bytes(20, "big").hex()


# =============================================================================
# Clocks
# =============================================================================

class Clock(ABC):
    """Source of the current time in whole seconds."""

    @abstractmethod
    def now(self) -> int:
        pass


class SystemClock(Clock):
    def now(self) -> int:
        return int(time.time())


class ManualClock(Clock):
    """Clock that only moves when told to. Used by tests and simulations."""

    def __init__(self, start: int = 0):
        self._now = start

    def now(self) -> int:
        return self._now

    def set(self, timestamp: int) -> None:
        if timestamp < self._now:
            raise ValueError("Clock cannot move backwards")
        self._now = timestamp

    def advance(self, seconds: int) -> int:
        self.set(self._now + seconds)
        return self._now


# =============================================================================
# Endpoints and calls
# =============================================================================

@dataclass(frozen=True)
class CallResult:
    """Outcome of a call: the only feedback channel from an endpoint."""
    success: bool
    return_data: bytes = b""
    error: Optional[BaseException] = None


class Endpoint(ABC):
    """Code deployed at an address that can receive opaque calls."""

    @abstractmethod
    def handle_call(self, env: "ExecutionEnvironment", sender: str, payload: bytes) -> bytes:
        """
        Serve a call.

        Returns:
            Return data

        Raises:
            Revert: To fail the call with an opaque reason
        """
        pass


class FunctionEndpoint(Endpoint):
    """Adapts a plain callable (env, sender, payload) -> bytes into an Endpoint."""

    def __init__(self, func: Callable[["ExecutionEnvironment", str, bytes], Optional[bytes]]):
        self._func = func

    def handle_call(self, env, sender, payload):
        return self._func(env, sender, payload) or b""


class ExecutionEnvironment:
    """
    In-process host for modules, tokens and external endpoints.

    Usage:
        env = ExecutionEnvironment(clock=ManualClock())
        env.deploy(dex_address, MyDex())
        result = env.call(module_address, dex_address, payload)
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()
        self._code: Dict[str, Any] = {}

    def now(self) -> int:
        return self.clock.now()

    def deploy(self, address: str, contract: Any) -> str:
        """Place a contract (endpoint, token, module) at an address."""
        address = normalize_address(address)
        self._code[address] = contract
        logger.debug("Deployed %s at %s", type(contract).__name__, address)
        return address

    def remove(self, address: str) -> None:
        self._code.pop(normalize_address(address), None)

    def code_at(self, address: str) -> Optional[Any]:
        return self._code.get(normalize_address(address))

    def has_code(self, address: str) -> bool:
        return normalize_address(address) in self._code

    def call(self, sender: str, target: str, payload: bytes) -> CallResult:
        """
        Call the endpoint at target with an opaque payload.

        Any exception raised by the endpoint becomes a failed CallResult.
        Revert reasons are passed through as return data unchanged.
        """
        contract = self.code_at(target)
        if contract is None:
            return CallResult(success=True)

        if not isinstance(contract, Endpoint):
            return CallResult(
                success=False,
                return_data=b"",
                error=TypeError(f"{target} does not accept calls"),
            )

        try:
            data = contract.handle_call(self, normalize_address(sender), bytes(payload))
        except Revert as e:
            logger.debug("Call to %s reverted: %r", target, e.reason)
            return CallResult(success=False, return_data=e.reason, error=e)
        except Exception as e:
            logger.debug("Call to %s failed: %s", target, e)
            return CallResult(success=False, return_data=str(e).encode("utf-8"), error=e)

        return CallResult(success=True, return_data=bytes(data or b""))

    def staticcall(self, target: str, payload: bytes) -> CallResult:
        """Read-only call from the zero address."""
        return self.call(ZERO_ADDRESS, target, payload)
