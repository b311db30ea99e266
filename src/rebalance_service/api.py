"""
HTTP API for the portfolio rebalancer

All responses use the envelope {success, data} or {success: false, message, code}.
"""
import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, List, Optional

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from wallet_connector_base import (
    WalletModel,
    RebalancerError,
    InputValidationError,
    NotFoundError,
    PlanAlreadyFinalizedError,
    QuoteExpiredError,
    ConfirmationTimeoutError,
    UpstreamUnavailableError,
    BalanceFetchError,
    StoreError,
)
from rebalance_engine import TargetAllocationInput
from .container import ServiceContainer
from .context import set_current_owner, set_current_request, clear_context
from . import __version__

logger = logging.getLogger(__name__)


# Request models
class ConnectRequest(WalletModel):
    public_key: str

class TargetRow(WalletModel):
    token_id: str
    symbol: str
    target_percentage: float
    threshold: Optional[float] = None

class SetTargetsRequest(WalletModel):
    owner_id: str
    targets: List[TargetRow]

class OwnerRequest(WalletModel):
    owner_id: str

class PlanRequest(WalletModel):
    owner_id: str
    plan_id: str

class ConfirmRequest(WalletModel):
    owner_id: str
    tx_signature: str
    plan_id: str
    swap_index: Optional[int] = None


# (exception type, status code, error code, message returned for server-side failures)
_ERROR_MAP = [
    (InputValidationError, 400, "INVALID_INPUT", None),
    (NotFoundError, 404, "NOT_FOUND", None),
    (PlanAlreadyFinalizedError, 400, "PLAN_FINALIZED", None),
    (QuoteExpiredError, 400, "QUOTE_EXPIRED", None),
    (ConfirmationTimeoutError, 400, "CONFIRMATION_FAILED", None),
    (BalanceFetchError, 500, "UPSTREAM_UNAVAILABLE", "Failed to fetch portfolio"),
    (UpstreamUnavailableError, 500, "UPSTREAM_UNAVAILABLE", "Upstream service unavailable"),
    (StoreError, 500, "STORE_ERROR", "Internal server error"),
]


def _serialize(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", by_alias=True)
    if isinstance(data, list):
        return [_serialize(item) for item in data]
    if isinstance(data, dict):
        return {key: _serialize(value) for key, value in data.items()}
    return data


def ok(data: Any) -> dict:
    return {"success": True, "data": _serialize(data)}


def error_response(status_code: int, code: str, message: str,
                   detail: Optional[str] = None, data: Any = None) -> JSONResponse:
    content = {"success": False, "message": message, "code": code}
    if detail is not None:
        content["error"] = detail
    if data is not None:
        content["data"] = _serialize(data)
    return JSONResponse(status_code=status_code, content=content)


def create_app(container: ServiceContainer) -> FastAPI:
    """Build the FastAPI application around a wired service container"""
    config = container.app_config()
    development = config.api.environment == "development"

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        sweep_service = container.sweep_service()
        await sweep_service.start()
        logger.info(f"Rebalancer API v{__version__} started ({config.api.environment})")
        try:
            yield
        finally:
            await sweep_service.stop()
            await container.store().close()
            logger.info("Rebalancer API stopped")

    app = FastAPI(
        title="Solana Portfolio Rebalancer",
        description="Target-allocation tracking and swap planning for Solana wallets",
        version=__version__,
        lifespan=lifespan
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        set_current_request(request_id)
        try:
            response = await call_next(request)
        finally:
            clear_context()
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(RebalancerError)
    async def rebalancer_error_handler(request: Request, exc: RebalancerError):
        for error_type, status_code, code, server_message in _ERROR_MAP:
            if isinstance(exc, error_type):
                break
        else:
            status_code, code, server_message = 500, "INTERNAL_ERROR", "Internal server error"

        if status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
            return error_response(status_code, code, server_message,
                                  detail=str(exc) if development else None)

        logger.info(f"{request.method} {request.url.path} rejected: {exc}")
        return error_response(status_code, code, str(exc))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = "; ".join(
            f"{'.'.join(str(p) for p in e.get('loc', ()) if p != 'body')}: {e.get('msg')}" for e in errors
        ) or "Invalid request"
        return error_response(400, "INVALID_INPUT", message)

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return error_response(500, "INTERNAL_ERROR", "Internal server error",
                              detail=str(exc) if development else None)

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    # Portfolio
    @app.post("/portfolio/connect")
    async def connect_wallet(body: ConnectRequest):
        set_current_owner(body.public_key)
        snapshot = await container.portfolio_service().connect(body.public_key)
        return ok({"publicKey": body.public_key, "portfolio": snapshot})

    @app.post("/portfolio/target")
    async def set_target_allocation(body: SetTargetsRequest):
        set_current_owner(body.owner_id)
        targets = [
            TargetAllocationInput(
                token_id=row.token_id,
                symbol=row.symbol,
                target_percentage=row.target_percentage,
                threshold_percentage=row.threshold
            )
            for row in body.targets
        ]
        saved = await container.target_service().save_targets(body.owner_id, targets)
        return ok(saved)

    @app.get("/portfolio/target/{owner_id}")
    async def get_target_allocation(owner_id: str):
        set_current_owner(owner_id)
        return ok(await container.target_service().get_targets(owner_id))

    @app.get("/portfolio/transactions/{owner_id}")
    async def get_transaction_history(owner_id: str):
        set_current_owner(owner_id)
        return ok(await container.portfolio_service().get_transaction_log(owner_id))

    @app.get("/portfolio/{owner_id}")
    async def get_portfolio(owner_id: str):
        set_current_owner(owner_id)
        return ok(await container.portfolio_service().get_portfolio(owner_id))

    # Rebalancing
    @app.get("/rebalance/check/{owner_id}")
    async def check_rebalance(owner_id: str):
        set_current_owner(owner_id)
        return ok(await container.portfolio_service().check_rebalance(owner_id))

    @app.post("/rebalance/plan")
    async def create_rebalance_plan(body: OwnerRequest):
        set_current_owner(body.owner_id)
        return ok(await container.planner().create_plan(body.owner_id))

    @app.get("/rebalance/plan/{plan_id}")
    async def get_rebalance_plan(plan_id: str, owner_id: str = Query(..., alias="ownerId")):
        set_current_owner(owner_id)
        return ok(await container.coordinator().get_plan(plan_id, owner_id))

    @app.post("/rebalance/execute")
    async def execute_rebalance(body: PlanRequest):
        set_current_owner(body.owner_id)
        instructions = await container.coordinator().prepare_execution(body.plan_id, body.owner_id)
        return ok({"planId": body.plan_id, "instructions": instructions})

    @app.post("/rebalance/confirm")
    async def confirm_transaction(body: ConfirmRequest):
        set_current_owner(body.owner_id)
        result = await container.coordinator().confirm_swap(
            body.plan_id, body.tx_signature, owner_id=body.owner_id, swap_index=body.swap_index
        )
        if result.outcome == 'failed':
            return error_response(400, "CONFIRMATION_FAILED", "Transaction failed", data=result)
        if result.outcome == 'timeout':
            return error_response(400, "CONFIRMATION_FAILED", "Transaction not confirmed in time", data=result)
        return ok(result)

    @app.post("/rebalance/finalize")
    async def finalize_rebalance(body: PlanRequest):
        set_current_owner(body.owner_id)
        return ok(await container.coordinator().finalize_plan(body.plan_id, body.owner_id))

    @app.post("/rebalance/abort")
    async def abort_rebalance(body: PlanRequest):
        set_current_owner(body.owner_id)
        return ok(await container.coordinator().abort_plan(body.plan_id, body.owner_id))

    return app
