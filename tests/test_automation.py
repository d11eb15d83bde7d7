"""
Automation module tests.

Critical invariants tested:
    ONE EXECUTION IN FLIGHT AT A TIME
    ONLY WHITELISTED ENDPOINTS EVER RECEIVE SWAP CALLS
"""

import unittest

from autopass import (
    AutomationModule,
    Capability,
    DexNotWhitelisted,
    DexWhitelistUpdated,
    Endpoint,
    ExecutionEnvironment,
    InMemoryToken,
    InvalidAmount,
    InvalidInterval,
    ManualClock,
    ModuleType,
    PlanCancelled,
    PlanCreated,
    PlanExecuted,
    PlanInactive,
    PlanNotFound,
    ReentrantCall,
    Revert,
    SwapFailed,
    TokenNotDeployed,
    TooEarly,
)

from tests.vectors import addr

DAY = 86400

MODULE = addr(0xA0002)
USDC = addr(0x1001)
WETH = addr(0x1002)
DEX = addr(0xD001)
OTHER_DEX = addr(0xD002)
EMPTY_DEX = addr(0xD003)


class SwapDex(Endpoint):
    """Pulls token_in from the caller and pays out token_out one to one."""

    def __init__(self, token_in: InMemoryToken, token_out: InMemoryToken, address: str):
        self.token_in = token_in
        self.token_out = token_out
        self.address = address
        self.payloads = []

    def handle_call(self, env, sender, payload):
        self.payloads.append(payload)
        amount = int.from_bytes(payload, "big") if payload else 0
        self.token_in.transfer_from(self.address, sender, self.address, amount)
        self.token_out.transfer(self.address, sender, amount)
        return b"swapped"


class RevertingDex(Endpoint):
    def __init__(self, reason: bytes):
        self.reason = reason

    def handle_call(self, env, sender, payload):
        raise Revert(self.reason)


class ReentrantDex(Endpoint):
    """Tries to execute a plan from inside the swap call."""

    def __init__(self, automation: AutomationModule, plan_id: int):
        self.automation = automation
        self.plan_id = plan_id
        self.rejections = []

    def handle_call(self, env, sender, payload):
        try:
            self.automation.execute_plan(self.plan_id, DEX, b"")
        except ReentrantCall as e:
            self.rejections.append(e)
        return b"outer"


class AutomationTestCase(unittest.TestCase):

    def setUp(self):
        self.clock = ManualClock(0)
        self.env = ExecutionEnvironment(clock=self.clock)
        self.usdc = InMemoryToken("USDC")
        self.weth = InMemoryToken("WETH")
        self.env.deploy(USDC, self.usdc)
        self.env.deploy(WETH, self.weth)

        self.dex = SwapDex(self.usdc, self.weth, DEX)
        self.env.deploy(DEX, self.dex)

        self.automation = AutomationModule(self.env, MODULE)
        self.env.deploy(MODULE, self.automation)
        self.automation.whitelist_dex(DEX)

        self.usdc.mint(MODULE, 1000)
        self.weth.mint(DEX, 1000)

    def amount_payload(self, amount: int) -> bytes:
        return amount.to_bytes(32, "big")


class TestPlanLifecycle(AutomationTestCase):

    def test_concrete_lifecycle(self):
        plan_id = self.automation.create_plan(USDC, WETH, 100, DAY)
        self.assertEqual(plan_id, 1)
        self.assertEqual(self.automation.get_plan(1).last_execution_time, 0)

        self.automation.cancel_plan(1)
        self.assertEqual(self.automation.create_plan(USDC, WETH, 100, DAY), 2)

        self.clock.set(DAY - 1)
        with self.assertRaises(TooEarly) as ctx:
            self.automation.execute_plan(2, DEX, self.amount_payload(100))
        self.assertEqual(ctx.exception.ready_at, DAY)

        self.clock.set(DAY)
        self.assertEqual(self.automation.execute_plan(2, DEX, self.amount_payload(100)), b"swapped")
        self.assertEqual(self.automation.get_plan(2).last_execution_time, DAY)

        with self.assertRaises(TooEarly):
            self.automation.execute_plan(2, DEX, self.amount_payload(100))

        self.assertEqual(self.usdc.balance_of(MODULE), 900)
        self.assertEqual(self.weth.balance_of(MODULE), 100)

    def test_ids_never_reused(self):
        ids = [self.automation.create_plan(USDC, WETH, 1, 1) for _ in range(3)]
        self.automation.cancel_plan(ids[-1])
        self.assertEqual(self.automation.create_plan(USDC, WETH, 1, 1), 4)
        self.assertEqual([p.id for p in self.automation.plans()], [1, 2, 3, 4])
        self.assertEqual([p.id for p in self.automation.plans(active_only=True)], [1, 2, 4])

    def test_invalid_amount(self):
        for amount in (0, -5, True, 1.5):
            with self.assertRaises(InvalidAmount):
                self.automation.create_plan(USDC, WETH, amount, DAY)
        self.assertEqual(self.automation.plans(), [])

    def test_invalid_interval(self):
        with self.assertRaises(InvalidInterval):
            self.automation.create_plan(USDC, WETH, 100, 0)
        with self.assertRaises(InvalidInterval):
            self.automation.create_plan(USDC, WETH, 100, -DAY)

    def test_create_moves_no_tokens(self):
        self.automation.create_plan(USDC, WETH, 100, DAY)
        self.assertEqual(self.usdc.allowance(MODULE, DEX), 0)
        self.assertEqual(self.usdc.balance_of(MODULE), 1000)

    def test_schedule_queries(self):
        plan_id = self.automation.create_plan(USDC, WETH, 100, DAY)
        self.assertEqual(self.automation.next_execution_time(plan_id), DAY)
        self.assertFalse(self.automation.is_due(plan_id))
        self.clock.advance(DAY)
        self.assertTrue(self.automation.is_due(plan_id))
        self.automation.cancel_plan(plan_id)
        self.assertFalse(self.automation.is_due(plan_id))

    def test_get_unknown_plan(self):
        with self.assertRaises(PlanNotFound):
            self.automation.get_plan(42)


class TestCancel(AutomationTestCase):

    def test_cancel_unknown(self):
        with self.assertRaises(PlanNotFound):
            self.automation.cancel_plan(7)

    def test_cancel_twice(self):
        plan_id = self.automation.create_plan(USDC, WETH, 100, DAY)
        self.automation.cancel_plan(plan_id)
        with self.assertRaises(PlanInactive):
            self.automation.cancel_plan(plan_id)

    def test_cancelled_plan_cannot_execute(self):
        plan_id = self.automation.create_plan(USDC, WETH, 100, DAY)
        self.automation.cancel_plan(plan_id)
        self.clock.advance(DAY)
        with self.assertRaises(PlanInactive):
            self.automation.execute_plan(plan_id, DEX, self.amount_payload(100))
        self.assertEqual(self.dex.payloads, [])


class TestExecutionPreconditions(AutomationTestCase):

    def test_unknown_plan_is_inactive(self):
        with self.assertRaises(PlanInactive):
            self.automation.execute_plan(99, DEX, b"")

    def test_not_whitelisted_regardless_of_timing(self):
        plan_id = self.automation.create_plan(USDC, WETH, 100, DAY)
        # not yet due
        with self.assertRaises(DexNotWhitelisted):
            self.automation.execute_plan(plan_id, OTHER_DEX, b"")
        self.clock.advance(DAY)
        with self.assertRaises(DexNotWhitelisted) as ctx:
            self.automation.execute_plan(plan_id, OTHER_DEX, b"")
        self.assertEqual(ctx.exception.endpoint, OTHER_DEX)
        self.assertEqual(self.usdc.allowance(MODULE, OTHER_DEX), 0)

    def test_unwhitelisted_endpoint_rejected(self):
        plan_id = self.automation.create_plan(USDC, WETH, 100, DAY)
        self.automation.unwhitelist_dex(DEX)
        self.clock.advance(DAY)
        with self.assertRaises(DexNotWhitelisted):
            self.automation.execute_plan(plan_id, DEX, self.amount_payload(100))
        self.assertFalse(self.automation.is_whitelisted(DEX))

    def test_rejection_leaves_state(self):
        plan_id = self.automation.create_plan(USDC, WETH, 100, DAY)
        events_before = len(self.automation.events)
        with self.assertRaises(TooEarly):
            self.automation.execute_plan(plan_id, DEX, b"")
        self.assertEqual(len(self.automation.events), events_before)
        self.assertEqual(self.automation.get_plan(plan_id).last_execution_time, 0)


class TestAllowance(AutomationTestCase):

    def test_allowance_stacks_across_cycles(self):
        self.automation.whitelist_dex(EMPTY_DEX)
        plan_id = self.automation.create_plan(USDC, WETH, 100, DAY)

        for cycle in (1, 2, 3):
            self.clock.advance(DAY)
            self.assertEqual(self.automation.execute_plan(plan_id, EMPTY_DEX, b""), b"")
            self.assertEqual(self.usdc.allowance(MODULE, EMPTY_DEX), 100 * cycle)

    def test_allowance_consumed_by_endpoint(self):
        plan_id = self.automation.create_plan(USDC, WETH, 100, DAY)
        self.clock.advance(DAY)
        self.automation.execute_plan(plan_id, DEX, self.amount_payload(60))
        self.assertEqual(self.usdc.allowance(MODULE, DEX), 40)
        self.assertEqual(self.dex.payloads, [self.amount_payload(60)])

    def test_token_in_without_code(self):
        missing = addr(0x9999)
        plan_id = self.automation.create_plan(missing, WETH, 100, DAY)
        self.clock.advance(DAY)
        with self.assertRaises(TokenNotDeployed) as ctx:
            self.automation.execute_plan(plan_id, DEX, b"")
        self.assertEqual((ctx.exception.plan_id, ctx.exception.token), (plan_id, missing))
        self.assertEqual(self.automation.get_plan(plan_id).last_execution_time, 0)
        self.assertEqual(self.dex.payloads, [])

        # guard released
        other = self.automation.create_plan(USDC, WETH, 100, DAY)
        self.clock.advance(DAY)
        self.assertEqual(self.automation.execute_plan(other, DEX, self.amount_payload(100)), b"swapped")


class TestSwapFailure(AutomationTestCase):

    def setUp(self):
        super().setUp()
        self.reason = bytes.fromhex("08c379a0") + b"slippage exceeded"
        self.bad_dex = addr(0xD0BAD)
        self.env.deploy(self.bad_dex, RevertingDex(self.reason))
        self.automation.whitelist_dex(self.bad_dex)
        self.plan_id = self.automation.create_plan(USDC, WETH, 100, DAY)
        self.usdc.approve(MODULE, self.bad_dex, 25)
        self.clock.advance(DAY)

    def test_reason_propagates_verbatim(self):
        with self.assertRaises(SwapFailed) as ctx:
            self.automation.execute_plan(self.plan_id, self.bad_dex, b"\x01")
        self.assertEqual(ctx.exception.reason, self.reason)
        self.assertIsInstance(ctx.exception.__cause__, Revert)

    def test_state_untouched(self):
        with self.assertRaises(SwapFailed):
            self.automation.execute_plan(self.plan_id, self.bad_dex, b"\x01")
        self.assertEqual(self.automation.get_plan(self.plan_id).last_execution_time, 0)
        self.assertEqual(self.usdc.allowance(MODULE, self.bad_dex), 25)
        self.assertEqual(self.automation.events.of_type(PlanExecuted), [])

    def test_plan_still_executable(self):
        with self.assertRaises(SwapFailed):
            self.automation.execute_plan(self.plan_id, self.bad_dex, b"")
        self.automation.execute_plan(self.plan_id, DEX, self.amount_payload(100))
        self.assertEqual(self.automation.get_plan(self.plan_id).last_execution_time, DAY)

    def test_endpoint_error_becomes_swap_failure(self):
        # SwapDex reverts through the token ledger when the allowance is short
        with self.assertRaises(SwapFailed) as ctx:
            self.automation.execute_plan(self.plan_id, DEX, self.amount_payload(500))
        self.assertEqual(ctx.exception.reason, b"insufficient allowance")
        self.assertEqual(self.usdc.allowance(MODULE, DEX), 0)


class TestReentrancy(AutomationTestCase):

    def test_nested_execution_rejected(self):
        first = self.automation.create_plan(USDC, WETH, 100, DAY)
        second = self.automation.create_plan(USDC, WETH, 50, DAY)

        reentrant_address = addr(0xD0E)
        reentrant = ReentrantDex(self.automation, second)
        self.env.deploy(reentrant_address, reentrant)
        self.automation.whitelist_dex(reentrant_address)

        self.clock.advance(DAY)
        self.assertEqual(self.automation.execute_plan(first, reentrant_address, b""), b"outer")

        self.assertEqual(len(reentrant.rejections), 1)
        self.assertEqual(self.automation.get_plan(first).last_execution_time, DAY)
        self.assertEqual(self.automation.get_plan(second).last_execution_time, 0)

    def test_nested_execution_of_same_plan_rejected(self):
        plan_id = self.automation.create_plan(USDC, WETH, 100, DAY)

        reentrant_address = addr(0xD0F)
        reentrant = ReentrantDex(self.automation, plan_id)
        self.env.deploy(reentrant_address, reentrant)
        self.automation.whitelist_dex(reentrant_address)

        self.clock.advance(DAY)
        self.assertEqual(self.automation.execute_plan(plan_id, reentrant_address, b""), b"outer")

        self.assertEqual(len(reentrant.rejections), 1)
        self.assertEqual(self.automation.get_plan(plan_id).last_execution_time, DAY)
        self.assertEqual(len(self.automation.events.of_type(PlanExecuted)), 1)

    def test_guard_released_after_failure(self):
        plan_id = self.automation.create_plan(USDC, WETH, 100, DAY)
        with self.assertRaises(TooEarly):
            self.automation.execute_plan(plan_id, DEX, b"")
        self.clock.advance(DAY)
        self.automation.execute_plan(plan_id, DEX, self.amount_payload(100))


class TestEventsAndIntrospection(AutomationTestCase):

    def test_event_sequence(self):
        plan_id = self.automation.create_plan(USDC, WETH, 100, DAY)
        self.clock.advance(DAY)
        self.automation.execute_plan(plan_id, DEX, self.amount_payload(100))
        self.automation.cancel_plan(plan_id)

        kinds = [type(e) for e in self.automation.events.all()]
        self.assertEqual(
            kinds, [DexWhitelistUpdated, PlanCreated, PlanExecuted, PlanCancelled]
        )
        executed = self.automation.events.of_type(PlanExecuted)[0]
        self.assertEqual((executed.plan_id, executed.endpoint, executed.executed_at), (1, DEX, DAY))
        self.assertEqual(executed.to_dict()["event"], "PlanExecuted")

    def test_whitelist_listing(self):
        self.automation.whitelist_dex(OTHER_DEX.upper().replace("0X", "0x"))
        self.assertEqual(self.automation.whitelist, sorted([DEX, OTHER_DEX]))
        self.assertTrue(self.automation.is_whitelisted(OTHER_DEX))

    def test_capabilities(self):
        self.assertTrue(self.automation.is_module_type(ModuleType.EXECUTOR))
        self.assertFalse(self.automation.is_module_type(ModuleType.VALIDATOR))
        self.assertTrue(self.automation.supports_capability(Capability.EXECUTOR))
        self.assertTrue(self.automation.supports_capability("module"))
        self.assertFalse(self.automation.supports_capability(Capability.SIGNATURE_VALIDATION))
        self.assertEqual(self.automation.module_id, "autopass.swap-automation@1.0.0")

    def test_install_hooks_are_stateless(self):
        self.automation.on_install(MODULE, b"")
        self.automation.on_uninstall(MODULE, b"\x00")
        self.assertEqual(self.automation.plans(), [])


if __name__ == "__main__":
    unittest.main()
