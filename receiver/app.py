# receiver/app.py
import time
from contextlib import asynccontextmanager
from typing import Optional

# Load .env BEFORE any receiver imports (they read env vars at import time)
from dotenv import load_dotenv
load_dotenv()

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from receiver import monitoring
from receiver.config import Settings
from receiver.errors import E_INTERNAL, ClientInputError, ReceiverError
from receiver.ingest import ingest, utcnow
from receiver.stores import StoreRegistry

router = APIRouter()


class PongResponse(BaseModel):
    ping: str


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------
@router.put("/{database_name}/{table_name}", status_code=201)
async def create_data(database_name: str, table_name: str, request: Request):
    """
    PUT /{database_name}/{table_name}
    Body: any JSON document, stored as-is (after json() normalization).
    curl -i -X PUT -d '{"curl test": true}' http://localhost:8888/database/test
    """
    timestamp = utcnow()
    body = await request.body()
    registry: StoreRegistry = request.app.state.registry
    context = {"database": database_name, "table": table_name}
    try:
        # storage calls block; keep them off the event loop
        await run_in_threadpool(ingest, registry, database_name, table_name, body, timestamp)
    except ClientInputError as e:
        monitoring.inc_ingest_error(e.error_code)
        monitoring.logger.warning("Rejected ingest request: %s", e.message, extra={**context, "error_code": e.error_code})
        return JSONResponse(status_code=e.status_code, content=e.to_response())
    except ReceiverError as e:
        monitoring.inc_ingest_error(e.error_code)
        monitoring.logger.error(
            "Ingest failed: %s", e.message, exc_info=True, extra={**context, "error_code": e.error_code}
        )
        return JSONResponse(status_code=e.status_code, content=e.to_response())
    except Exception as e:
        monitoring.inc_ingest_error(E_INTERNAL)
        monitoring.logger.exception("Unexpected error in create_data handler", extra=context)
        return JSONResponse(
            status_code=500,
            content={
                "status": "error",
                "error_code": E_INTERNAL,
                "message": "Internal server error",
                "details": {"exception": type(e).__name__},
            },
        )
    return Response(status_code=201)


@router.get("/ping", response_model=PongResponse)
async def ping():
    return PongResponse(ping="pong")


@router.get("/metrics")
async def metrics():
    if not monitoring.PROMETHEUS_ENABLED:
        return PlainTextResponse("Prometheus disabled", status_code=404)
    payload, content_type = monitoring.prometheus_metrics_response()
    return Response(content=payload, media_type=content_type)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the ASGI app. `settings` is shared read-only by every request."""
    settings = settings or Settings.from_env()
    monitoring.configure_logging(settings.log_level_number)
    registry = StoreRegistry(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        monitoring.logger.info("Starting data receiver", extra={"database_files": settings.database_files})
        yield
        registry.dispose()

    app = FastAPI(title="Data Receiver", lifespan=lifespan)
    app.state.settings = settings
    app.state.registry = registry

    # -----------------------------------------------------------------------
    # Metrics middleware
    # -----------------------------------------------------------------------
    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        start = time.time()
        method = request.method
        status = "500"
        try:
            response = await call_next(request)
            status = str(response.status_code)
            return response
        except Exception:
            monitoring.logger.exception("Unhandled exception in request", extra={"path": request.url.path})
            raise
        finally:
            # label by route template so caller-chosen names don't explode cardinality
            route = request.scope.get("route")
            endpoint = getattr(route, "path", "unmatched")
            monitoring.observe_request(start, endpoint, method, status)

    app.include_router(router)
    return app


app = create_app()
