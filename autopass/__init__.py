"""
autopass: Passkey Authentication and Swap Automation Modules

Version: 1.0.0

Two independent modules for a modular smart account:

- CredentialRegistry binds a secp256r1 (P256) public key per
  (namespace, account) and answers signature, batched-operation and
  direct-call checks.
- AutomationModule stores recurring swap plans and executes them through
  whitelisted endpoints, one execution at a time.

Signature checks run through a two-tier pipeline: a native verification
endpoint at a well-known address when one is deployed, the pure-Python
curve primitive otherwise. Both give identical verdicts.

Usage:
    from autopass import (
        ExecutionEnvironment,
        ManualClock,
        NativeP256Verifier,
        CredentialRegistry,
        AutomationModule,
        PublicKey,
    )
    from autopass.config import P256_VERIFIER_ADDRESS

    env = ExecutionEnvironment(clock=ManualClock())
    env.deploy(P256_VERIFIER_ADDRESS, NativeP256Verifier())

    registry = CredentialRegistry(env, registry_address)
    registry.install(account, 0, PublicKey(x, y))
    registry.validate_signature(account, 0, digest, signature)

    automation = AutomationModule(env, automation_address)
    automation.whitelist_dex(dex)
    plan_id = automation.create_plan(token_a, token_b, 100, 86400)
    automation.execute_plan(plan_id, dex, payload)
"""

__version__ = "1.0.0"
__license__ = "Apache-2.0"

# Curve primitive
from .curve import is_valid_point, verify

# Keys and encoding
from .keys import PublicKey
from .encoding import (
    encode_signature,
    decode_signature,
    encode_install_data,
    decode_install_data,
    encode_uninstall_data,
    decode_uninstall_data,
)

# Environment
from .environment import (
    ExecutionEnvironment,
    Endpoint,
    FunctionEndpoint,
    CallResult,
    Clock,
    SystemClock,
    ManualClock,
    normalize_address,
    address_from_int,
    ZERO_ADDRESS,
)

# Verification pipeline
from .verifier import (
    P256Verifier,
    VerificationBackend,
    SoftwareBackend,
    PrecompileBackend,
    detect_backend,
    message_hash,
    verify_signature,
)
from .precompile import NativeP256Verifier, native_verify

# Tokens
from .tokens import FungibleToken, InMemoryToken

# Modules
from .modules import AccountModule, ModuleType, Capability
from .registry import (
    CredentialRegistry,
    UserOperation,
    ValidationCode,
    ERC1271_MAGIC_VALUE,
    ERC1271_INVALID,
)
from .automation import AutomationModule, Plan

# Events
from .events import (
    Event,
    EventLog,
    CredentialChanged,
    PlanCreated,
    PlanExecuted,
    PlanCancelled,
    DexWhitelistUpdated,
)

# Errors
from .errors import (
    AutopassError,
    NotAuthorized,
    ReentrantCall,
    PayloadDecodeError,
    PlanError,
    InvalidAmount,
    InvalidInterval,
    PlanNotFound,
    PlanInactive,
    TooEarly,
    DexNotWhitelisted,
    TokenNotDeployed,
    Revert,
    InsufficientBalance,
    InsufficientAllowance,
    SwapFailed,
)


__all__ = [
    "__version__",

    # Curve
    "is_valid_point",
    "verify",

    # Keys and encoding
    "PublicKey",
    "encode_signature",
    "decode_signature",
    "encode_install_data",
    "decode_install_data",
    "encode_uninstall_data",
    "decode_uninstall_data",

    # Environment
    "ExecutionEnvironment",
    "Endpoint",
    "FunctionEndpoint",
    "CallResult",
    "Clock",
    "SystemClock",
    "ManualClock",
    "normalize_address",
    "address_from_int",
    "ZERO_ADDRESS",

    # Verification
    "P256Verifier",
    "VerificationBackend",
    "SoftwareBackend",
    "PrecompileBackend",
    "detect_backend",
    "message_hash",
    "verify_signature",
    "NativeP256Verifier",
    "native_verify",

    # Tokens
    "FungibleToken",
    "InMemoryToken",

    # Modules
    "AccountModule",
    "ModuleType",
    "Capability",
    "CredentialRegistry",
    "UserOperation",
    "ValidationCode",
    "ERC1271_MAGIC_VALUE",
    "ERC1271_INVALID",
    "AutomationModule",
    "Plan",

    # Events
    "Event",
    "EventLog",
    "CredentialChanged",
    "PlanCreated",
    "PlanExecuted",
    "PlanCancelled",
    "DexWhitelistUpdated",

    # Errors
    "AutopassError",
    "NotAuthorized",
    "ReentrantCall",
    "PayloadDecodeError",
    "PlanError",
    "InvalidAmount",
    "InvalidInterval",
    "PlanNotFound",
    "PlanInactive",
    "TooEarly",
    "DexNotWhitelisted",
    "TokenNotDeployed",
    "Revert",
    "InsufficientBalance",
    "InsufficientAllowance",
    "SwapFailed",
]
