import os

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from timeclock.application import get_payroll_service
from timeclock.core.logging import configure_logging, get_logger
from timeclock.core.policy import load_policy
from timeclock.infrastructure import StoreError, configure_annotation_client
from timeclock.infrastructure.llm import ChatCompletionsAnnotationClient
from timeclock.routes import payroll
from timeclock.workers.enrichment import get_enrichment_worker

logger = get_logger(__name__)


def create_app() -> FastAPI:
    configure_logging(
        "timeclock-payroll",
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        json_logs=os.getenv("LOG_JSON", "true").lower() != "false",
    )

    app = FastAPI(title="Time & Attendance Payroll API", version="0.1.0")

    get_payroll_service().configure(
        load_policy(),
        max_workers=int(os.getenv("PAYROLL_MAX_WORKERS") or 1),
    )

    annotation_timeout = float(os.getenv("ANNOTATION_TIMEOUT") or 20)
    get_enrichment_worker().configure(timeout=annotation_timeout)

    api_key = os.getenv("ANNOTATION_API_KEY")
    if api_key:
        client = ChatCompletionsAnnotationClient(
            api_key,
            api_base=os.getenv("ANNOTATION_API_BASE") or "https://api.lovable.dev/v1",
            model=os.getenv("ANNOTATION_MODEL") or "google/gemini-2.5-flash",
            timeout=annotation_timeout,
        )
        configure_annotation_client(client)

    origins_env = os.getenv("API_CORS_ORIGINS", "")
    origins = [origin.strip() for origin in origins_env.split(",") if origin.strip()]
    if not origins:
        origins = ["http://localhost:3000", "http://127.0.0.1:3000"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
        logger.error("payroll_store_failed", path=request.url.path, error_message=str(exc))
        return JSONResponse(status_code=500, content={"error": str(exc)})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "payroll_request_failed",
            path=request.url.path,
            error_type=type(exc).__name__,
            error_message=str(exc),
        )
        return JSONResponse(status_code=500, content={"error": str(exc) or type(exc).__name__})

    app.include_router(payroll.router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        """Provide a lightweight landing page for container checks."""
        return JSONResponse(
            {
                "message": "Time & Attendance Payroll API",
                "docs": "/docs",
                "run": "/api/payroll/run",
            }
        )

    return app


app = create_app()
