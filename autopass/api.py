"""
autopass HTTP service.

Hosts one in-process environment with a credential registry and an
automation module. The invoking identity for self-scoped credential calls
comes from the X-Caller header; whitelist changes require X-Admin-Token.

Run with any ASGI server using the factory, e.g.:
    uvicorn --factory autopass.api:create_app
"""

import hmac
import logging
import threading
from typing import List, Optional

from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse

from . import config
from .automation import AutomationModule, Plan
from .environment import ExecutionEnvironment
from .errors import (
    AutopassError,
    InvalidAmount,
    InvalidInterval,
    NotAuthorized,
    PayloadDecodeError,
    PlanNotFound,
    SwapFailed,
    TokenNotDeployed,
)
from .logging_config import audit_log, set_request_id
from .models import (
    CreatePlanRequest,
    CreatePlanResponse,
    CredentialResponse,
    ExecutePlanRequest,
    ExecutePlanResponse,
    InstallRequest,
    KeyModel,
    ModuleInfo,
    PlanResponse,
    SignedDigest,
    ValidateSignatureResponse,
    VerifyRequest,
    VerifyResponse,
    parse_hex,
)
from .modules import AccountModule
from .precompile import NativeP256Verifier
from .registry import ERC1271_MAGIC_VALUE, CredentialRegistry

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    NotAuthorized: 403,
    PlanNotFound: 404,
    InvalidAmount: 422,
    InvalidInterval: 422,
    PayloadDecodeError: 422,
    TokenNotDeployed: 409,
    SwapFailed: 502,
}


def status_for(error: AutopassError) -> int:
    for error_type, status in ERROR_STATUS.items():
        if isinstance(error, error_type):
            return status
    return 409


def _plan_response(plan: Plan) -> PlanResponse:
    return PlanResponse(**plan.to_dict())


def _module_info(module: AccountModule) -> ModuleInfo:
    return ModuleInfo(
        module_id=module.module_id,
        address=module.address,
        module_types=sorted(int(t) for t in module.MODULE_TYPES),
        capabilities=sorted(c.value for c in module.CAPABILITIES),
    )


def build_environment(env: Optional[ExecutionEnvironment] = None) -> ExecutionEnvironment:
    env = env or ExecutionEnvironment()
    if config.DEPLOY_NATIVE_VERIFIER and not env.has_code(config.P256_VERIFIER_ADDRESS):
        env.deploy(config.P256_VERIFIER_ADDRESS, NativeP256Verifier())
    return env


def create_app(
    env: Optional[ExecutionEnvironment] = None,
    admin_token: Optional[str] = None
) -> FastAPI:
    """
    Build the service around an environment.

    The service is the host that serializes invocations: sync routes run in
    a threadpool, so every route that reads or writes module state holds
    one app-wide lock for its whole body. An endpoint called from inside
    execute_plan never goes back through HTTP, so nested calls still reach
    the module's own re-entrancy guard.

    Args:
        env: Environment to host (a fresh one with the native verifier if None)
        admin_token: Token for whitelist changes (default from config; empty disables them)
    """
    env = build_environment(env)
    registry = CredentialRegistry(env, config.REGISTRY_ADDRESS)
    automation = AutomationModule(env, config.AUTOMATION_ADDRESS)
    env.deploy(registry.address, registry)
    env.deploy(automation.address, automation)
    token = config.ADMIN_TOKEN if admin_token is None else admin_token
    invocation_lock = threading.Lock()

    app = FastAPI(title="autopass")
    app.state.env = env
    app.state.registry = registry
    app.state.automation = automation
    app.state.invocation_lock = invocation_lock

    @app.middleware("http")
    async def _request_id(request: Request, call_next):
        request_id = set_request_id(request.headers.get("X-Request-ID"))
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(AutopassError)
    async def _domain_error(request: Request, exc: AutopassError):
        return JSONResponse(
            status_code=status_for(exc),
            content={"detail": {"error": type(exc).__name__, "message": str(exc)}},
        )

    @app.exception_handler(ValueError)
    async def _bad_value(request: Request, exc: ValueError):
        return JSONResponse(
            status_code=422,
            content={"detail": {"error": "ValueError", "message": str(exc)}},
        )

    def require_admin(supplied: Optional[str]) -> None:
        if not token or not supplied or not hmac.compare_digest(token, supplied):
            audit_log.security_event("whitelist_admin_denied", severity="high")
            raise HTTPException(403, "ADMIN_TOKEN_REQUIRED")

    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "verifier_backend": registry.verifier.backend.name,
            "time": env.now(),
        }

    @app.get("/modules", response_model=List[ModuleInfo])
    def modules():
        return [_module_info(registry), _module_info(automation)]

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    @app.post("/verify", response_model=VerifyResponse)
    def verify(req: VerifyRequest):
        # Stateless: no module state involved
        valid = registry.verifier.verify_signature(
            parse_hex(req.digest), parse_hex(req.signature), req.key.to_public_key()
        )
        return VerifyResponse(valid=valid, backend=registry.verifier.backend.name)

    @app.get("/credentials/{account}/{namespace_id}", response_model=CredentialResponse)
    def get_credential(account: str, namespace_id: int):
        with invocation_lock:
            key = registry.credential_of(namespace_id, account)
        return CredentialResponse(
            account=account.lower(),
            namespace_id=namespace_id,
            key=KeyModel.from_public_key(key) if key else None,
        )

    @app.put("/credentials/{namespace_id}", response_model=CredentialResponse)
    def install_credential(namespace_id: int, req: InstallRequest, x_caller: str = Header(...)):
        with invocation_lock:
            registry.install(x_caller, namespace_id, req.key.to_public_key())
        return CredentialResponse(account=x_caller.lower(), namespace_id=namespace_id, key=req.key)

    @app.delete("/credentials/{namespace_id}", response_model=CredentialResponse)
    def uninstall_credential(namespace_id: int, x_caller: str = Header(...)):
        with invocation_lock:
            registry.uninstall(x_caller, namespace_id)
        return CredentialResponse(account=x_caller.lower(), namespace_id=namespace_id)

    @app.post("/credentials/{account}/{namespace_id}/validate", response_model=ValidateSignatureResponse)
    def validate_signature(account: str, namespace_id: int, req: SignedDigest):
        with invocation_lock:
            result = registry.validate_signature(
                account, namespace_id, parse_hex(req.digest), parse_hex(req.signature)
            )
        return ValidateSignatureResponse(
            result="0x" + result.hex(),
            valid=result == ERC1271_MAGIC_VALUE,
        )

    # ------------------------------------------------------------------
    # Plans
    # ------------------------------------------------------------------

    @app.post("/plans", response_model=CreatePlanResponse, status_code=201)
    def create_plan(req: CreatePlanRequest):
        with invocation_lock:
            plan_id = automation.create_plan(req.token_in, req.token_out, req.amount, req.interval)
        return CreatePlanResponse(plan_id=plan_id)

    @app.get("/plans", response_model=List[PlanResponse])
    def list_plans(active_only: bool = False):
        with invocation_lock:
            return [_plan_response(p) for p in automation.plans(active_only=active_only)]

    @app.get("/plans/{plan_id}", response_model=PlanResponse)
    def get_plan(plan_id: int):
        with invocation_lock:
            return _plan_response(automation.get_plan(plan_id))

    @app.post("/plans/{plan_id}/execute", response_model=ExecutePlanResponse)
    def execute_plan(plan_id: int, req: ExecutePlanRequest):
        payload = parse_hex(req.payload)
        with invocation_lock:
            data = automation.execute_plan(plan_id, req.endpoint, payload)
            executed_at = automation.get_plan(plan_id).last_execution_time
        return ExecutePlanResponse(
            plan_id=plan_id,
            return_data="0x" + data.hex(),
            last_execution_time=executed_at,
        )

    @app.post("/plans/{plan_id}/cancel", response_model=PlanResponse)
    def cancel_plan(plan_id: int):
        with invocation_lock:
            automation.cancel_plan(plan_id)
            return _plan_response(automation.get_plan(plan_id))

    # ------------------------------------------------------------------
    # Whitelist
    # ------------------------------------------------------------------

    @app.get("/dexes", response_model=List[str])
    def list_dexes():
        with invocation_lock:
            return automation.whitelist

    @app.put("/dexes/{endpoint}")
    def whitelist_dex(endpoint: str, x_admin_token: Optional[str] = Header(None)):
        require_admin(x_admin_token)
        with invocation_lock:
            automation.whitelist_dex(endpoint)
        return {"endpoint": endpoint.lower(), "whitelisted": True}

    @app.delete("/dexes/{endpoint}")
    def unwhitelist_dex(endpoint: str, x_admin_token: Optional[str] = Header(None)):
        require_admin(x_admin_token)
        with invocation_lock:
            automation.unwhitelist_dex(endpoint)
        return {"endpoint": endpoint.lower(), "whitelisted": False}

    return app
