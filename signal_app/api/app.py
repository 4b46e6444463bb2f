"""HTTP API consumed by the mini-app client."""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import structlog
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse

from ..engine import SignalEngine
from ..errors import InsufficientEnergyError, RedemptionError
from ..state.models import SignalStatus

logger = structlog.get_logger(__name__)


def current_user_id(x_user_id: Optional[str] = Header(default=None)) -> int:
    """
    Resolve the calling user.

    The authenticating gateway in front of this service sets ``X-User-Id``;
    deployments with in-process auth replace this dependency through
    ``app.dependency_overrides``.
    """
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        return int(x_user_id)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid user identity") from None


def create_app(engine: SignalEngine, manage_engine: bool = False) -> FastAPI:
    """
    Build the FastAPI application around an engine.

    Args:
        engine: Engine whose services back the routes
        manage_engine: Start and stop the engine with the app lifecycle
    """
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if manage_engine:
            engine.start()
        try:
            yield
        finally:
            if manage_engine:
                engine.stop()

    app = FastAPI(title="Signal engine", version="0.1.0", lifespan=lifespan)
    app.state.engine = engine
    status_cache_seconds = engine.config.api.status_cache_seconds

    @app.exception_handler(RedemptionError)
    async def redemption_error_handler(request: Request, exc: RedemptionError) -> JSONResponse:
        status_code = 403 if isinstance(exc, InsufficientEnergyError) else 404
        logger.debug("Request rejected", code=exc.code, path=request.url.path)
        return JSONResponse(
            status_code=status_code,
            content={"detail": str(exc), "code": exc.code},
        )

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {"status": "ok", "stats": engine.get_stats()}

    @app.get("/signals/status")
    def signal_status(
        response: Response,
        user_id: int = Depends(current_user_id),
    ) -> dict[str, Any]:
        response.headers["Cache-Control"] = f"public, max-age={status_cache_seconds}"
        return engine.redemption.status(user_id).to_dict()

    @app.post("/signals/claim/{signal_id}")
    def claim_signal(
        signal_id: int,
        user_id: int = Depends(current_user_id),
    ) -> dict[str, Any]:
        return engine.redemption.claim(user_id, signal_id).to_dict()

    @app.post("/signals/clear-request")
    def clear_request(
        user_id: int = Depends(current_user_id),
    ) -> dict[str, Any]:
        engine.redemption.clear_request(user_id)
        return {"message": "Signal request cleared"}

    @app.get("/signals")
    def list_signals(
        page: int = Query(default=1, ge=1),
        limit: int = Query(default=10, ge=1, le=100),
        status: Optional[SignalStatus] = None,
        user_id: int = Depends(current_user_id),
    ) -> dict[str, Any]:
        signals, total = engine.signal_store.list_history(
            page=page, limit=limit, status=status, user_id=user_id
        )
        return {"data": [signal.to_dict() for signal in signals], "total": total}

    return app
