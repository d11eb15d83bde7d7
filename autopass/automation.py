"""
autopass Automation Module

Recurring swap plans executed through whitelisted endpoints.

Plan lifecycle:
    ACTIVE --cancel_plan--> INACTIVE (terminal)

Plan ids start at 1, grow by one per plan and are never reused; cancelled
plans stay in the table.

execute_plan enforces, in order:
1. No execution already in flight (module-wide guard, rejected not queued)
2. Plan exists and is active
3. Endpoint is whitelisted
4. Interval has elapsed since the last execution

Then it raises the token_in allowance for the endpoint by the plan amount
(allowances stack across cycles), calls the endpoint with the caller's
opaque payload, and on success records the execution time. A failed
endpoint call puts the allowance back and surfaces the endpoint's reason
unchanged.

Whitelist mutators have no access control here; gate them outside.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Set

from .environment import ExecutionEnvironment, normalize_address
from .errors import (
    DexNotWhitelisted,
    InvalidAmount,
    InvalidInterval,
    PlanInactive,
    PlanNotFound,
    ReentrantCall,
    SwapFailed,
    TokenNotDeployed,
    TooEarly,
)
from .events import DexWhitelistUpdated, PlanCancelled, PlanCreated, PlanExecuted
from .logging_config import audit_log
from .modules import AccountModule, Capability, ModuleType
from .tokens import FungibleToken

logger = logging.getLogger(__name__)


@dataclass
class Plan:
    """Recurring instruction to swap amount of token_in for token_out."""
    id: int
    token_in: str
    token_out: str
    amount: int
    interval: int
    last_execution_time: int
    active: bool = True

    @property
    def next_execution_time(self) -> int:
        return self.last_execution_time + self.interval

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "token_in": self.token_in,
            "token_out": self.token_out,
            "amount": self.amount,
            "interval": self.interval,
            "last_execution_time": self.last_execution_time,
            "next_execution_time": self.next_execution_time,
            "active": self.active,
        }


def _positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


class AutomationModule(AccountModule):
    """
    Plan scheduler and executor.

    Usage:
        automation = AutomationModule(env, module_address)
        automation.whitelist_dex(dex)
        plan_id = automation.create_plan(usdc, weth, 100, 86400)
        automation.execute_plan(plan_id, dex, payload)
    """

    NAME = "autopass.swap-automation"
    VERSION = "1.0.0"
    MODULE_TYPES = frozenset({ModuleType.EXECUTOR})
    CAPABILITIES = frozenset({Capability.MODULE, Capability.EXECUTOR})

    def __init__(self, env: ExecutionEnvironment, address: str):
        super().__init__(env, address)
        self._plans: Dict[int, Plan] = {}
        self._next_plan_id = 1
        self._whitelist: Set[str] = set()
        self._execution_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def on_install(self, caller: str, data: bytes) -> None:
        logger.info("%s installed by %s", self.module_id, normalize_address(caller))

    def on_uninstall(self, caller: str, data: bytes) -> None:
        logger.info("%s uninstalled by %s", self.module_id, normalize_address(caller))

    # ------------------------------------------------------------------
    # Plans
    # ------------------------------------------------------------------

    def create_plan(self, token_in: str, token_out: str, amount: int, interval: int) -> int:
        """
        Register a new active plan due one interval from now.

        Raises:
            InvalidAmount: amount is not a positive integer
            InvalidInterval: interval is not a positive integer
        """
        if not _positive_int(amount):
            audit_log.call_rejected("create_plan", "INVALID_AMOUNT", amount=amount)
            raise InvalidAmount(amount)
        if not _positive_int(interval):
            audit_log.call_rejected("create_plan", "INVALID_INTERVAL", interval=interval)
            raise InvalidInterval(interval)

        token_in = normalize_address(token_in)
        token_out = normalize_address(token_out)

        plan_id = self._next_plan_id
        self._next_plan_id += 1
        self._plans[plan_id] = Plan(
            id=plan_id,
            token_in=token_in,
            token_out=token_out,
            amount=amount,
            interval=interval,
            last_execution_time=self.env.now(),
        )

        self.events.emit(PlanCreated(plan_id, token_in, token_out, amount, interval))
        audit_log.plan_created(plan_id, token_in, token_out, amount, interval)
        return plan_id

    def get_plan(self, plan_id: int) -> Plan:
        plan = self._plans.get(plan_id)
        if plan is None:
            raise PlanNotFound(plan_id)
        return plan

    def plans(self, active_only: bool = False) -> List[Plan]:
        return [p for _, p in sorted(self._plans.items()) if p.active or not active_only]

    def next_execution_time(self, plan_id: int) -> int:
        return self.get_plan(plan_id).next_execution_time

    def is_due(self, plan_id: int) -> bool:
        plan = self.get_plan(plan_id)
        return plan.active and self.env.now() >= plan.next_execution_time

    def cancel_plan(self, plan_id: int) -> None:
        """
        Deactivate a plan for good.

        Raises:
            PlanNotFound: No plan with this id
            PlanInactive: Plan already cancelled
        """
        plan = self._plans.get(plan_id)
        if plan is None:
            audit_log.call_rejected("cancel_plan", "PLAN_NOT_FOUND", plan_id=plan_id)
            raise PlanNotFound(plan_id)
        if not plan.active:
            audit_log.call_rejected("cancel_plan", "PLAN_INACTIVE", plan_id=plan_id)
            raise PlanInactive(plan_id)

        plan.active = False
        self.events.emit(PlanCancelled(plan_id))
        audit_log.plan_cancelled(plan_id)

    # ------------------------------------------------------------------
    # Whitelist
    # ------------------------------------------------------------------

    def whitelist_dex(self, endpoint: str) -> None:
        endpoint = normalize_address(endpoint)
        self._whitelist.add(endpoint)
        self.events.emit(DexWhitelistUpdated(endpoint, True))
        audit_log.dex_whitelist_updated(endpoint, True)

    def unwhitelist_dex(self, endpoint: str) -> None:
        endpoint = normalize_address(endpoint)
        self._whitelist.discard(endpoint)
        self.events.emit(DexWhitelistUpdated(endpoint, False))
        audit_log.dex_whitelist_updated(endpoint, False)

    def is_whitelisted(self, endpoint: str) -> bool:
        return normalize_address(endpoint) in self._whitelist

    @property
    def whitelist(self) -> List[str]:
        return sorted(self._whitelist)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    @contextmanager
    def _non_reentrant(self) -> Iterator[None]:
        if not self._execution_lock.acquire(blocking=False):
            audit_log.security_event("reentrant_execute_plan", severity="high")
            raise ReentrantCall()
        try:
            yield
        finally:
            self._execution_lock.release()

    def _token(self, plan: Plan) -> FungibleToken:
        token = self.env.code_at(plan.token_in)
        if not isinstance(token, FungibleToken):
            audit_log.call_rejected("execute_plan", "TOKEN_NOT_DEPLOYED", plan_id=plan.id, token=plan.token_in)
            raise TokenNotDeployed(plan.id, plan.token_in)
        return token

    def execute_plan(self, plan_id: int, endpoint: str, payload: bytes) -> bytes:
        """
        Run one cycle of a plan through a whitelisted endpoint.

        Args:
            plan_id: Plan to execute
            endpoint: Swap endpoint address
            payload: Opaque call data passed to the endpoint unchanged

        Returns:
            The endpoint's return data

        Raises:
            ReentrantCall: An execution is already in flight
            PlanInactive: Plan unknown or cancelled
            DexNotWhitelisted: Endpoint not whitelisted
            TooEarly: Interval not yet elapsed
            TokenNotDeployed: token_in has no token contract
            SwapFailed: Endpoint call failed (reason carried verbatim)
        """
        with self._non_reentrant():
            plan = self._plans.get(plan_id)
            if plan is None or not plan.active:
                audit_log.call_rejected("execute_plan", "PLAN_INACTIVE", plan_id=plan_id)
                raise PlanInactive(plan_id)

            endpoint = normalize_address(endpoint)
            if endpoint not in self._whitelist:
                audit_log.call_rejected("execute_plan", "DEX_NOT_WHITELISTED", plan_id=plan_id, endpoint=endpoint)
                raise DexNotWhitelisted(plan_id, endpoint)

            now = self.env.now()
            if now < plan.next_execution_time:
                audit_log.call_rejected("execute_plan", "TOO_EARLY", plan_id=plan_id, ready_at=plan.next_execution_time)
                raise TooEarly(plan_id, plan.next_execution_time, now)

            token = self._token(plan)
            previous_allowance = token.allowance(self.address, endpoint)
            token.increase_allowance(self.address, endpoint, plan.amount)

            result = self.env.call(self.address, endpoint, payload)
            if not result.success:
                token.approve(self.address, endpoint, previous_allowance)
                audit_log.call_rejected(
                    "execute_plan",
                    "SWAP_FAILED",
                    plan_id=plan_id,
                    endpoint=endpoint,
                    revert_reason=result.return_data.hex(),
                )
                raise SwapFailed(plan_id, endpoint, result.return_data) from result.error

            executed_at = self.env.now()
            plan.last_execution_time = max(plan.last_execution_time, executed_at)

            self.events.emit(PlanExecuted(plan_id, endpoint, plan.last_execution_time))
            audit_log.plan_executed(plan_id, endpoint, plan.last_execution_time)
            return result.return_data
