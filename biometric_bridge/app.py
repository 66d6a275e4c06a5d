import json
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import ValidationError

from biometric_bridge.appcontext import AppContext
from biometric_bridge.schemas.biometric_models import (
    CaptureRequest,
    CaptureResult,
    FailureSource,
    HealthResponse,
    RDServiceHealth,
)
from biometric_bridge.services.normalizer import CAPTURE_TIMEOUT, DRIVER_UNREACHABLE
from biometric_bridge.utils.config import Config
from biometric_bridge.utils.errors import UnknownModality
from biometric_bridge.utils.logging_utils import get_custom_logger
from biometric_bridge.utils.middlewares import LoggingMiddleware
from biometric_bridge.utils.pid_options import CaptureOptions
from biometric_bridge.utils.profiles import Modality

PHOTOGRAPH_UNSUPPORTED = 998


def get_context(request: Request) -> AppContext:
    return request.app.state.ctx


def capture_status_code(result: CaptureResult) -> int:
    """200 for success and device-reported failures, 503/408 for absent/slow driver."""
    if result.success or result.source == FailureSource.DEVICE:
        return 200
    if result.error_code == DRIVER_UNREACHABLE:
        return 503
    if result.error_code == CAPTURE_TIMEOUT:
        return 408
    return 500


async def read_capture_request(request: Request) -> CaptureRequest:
    """Capture overrides come from the query string (GET) or a JSON body (POST)."""
    raw = dict(request.query_params)
    if request.method == "POST":
        body = await request.body()
        if body.strip():
            try:
                payload = json.loads(body)
            except json.JSONDecodeError as e:
                raise RequestValidationError(
                    [{"type": "json_invalid", "loc": ("body",), "msg": str(e), "input": None}]
                )
            if not isinstance(payload, dict):
                raise RequestValidationError(
                    [{"type": "dict_type", "loc": ("body",),
                      "msg": "Request body must be a JSON object", "input": None}]
                )
            raw.update(payload)
    # "?timeout=" means "use the profile default"
    raw = {k: v for k, v in raw.items() if not (isinstance(v, str) and not v.strip())}
    try:
        return CaptureRequest.model_validate(raw)
    except ValidationError as e:
        raise RequestValidationError(e.errors(include_url=False, include_context=False))


def to_capture_options(request: CaptureRequest) -> CaptureOptions:
    return CaptureOptions(
        timeout_ms=request.timeout,
        post_capture_timeout_ms=request.post_capture_timeout,
        page_count=request.page_count,
        device_auth_key=request.auth_key,
        device_auth_hash=request.auth_hash,
    )


async def run_capture(modality: Modality, request: Request, ctx: AppContext) -> JSONResponse:
    capture_request = await read_capture_request(request)
    result = await ctx.rdservice.capture(modality, to_capture_options(capture_request))
    return JSONResponse(
        status_code=capture_status_code(result),
        content=result.model_dump(mode="json", by_alias=True),
    )


def create_app(config: Config = None, context: AppContext = None) -> FastAPI:
    config = config or Config()
    logger = get_custom_logger(
        config.LOG_FILE, level=config.LOG_LEVEL, log_dir=config.LOG_DIR
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Open the driver transport for the lifetime of the app"""
        ctx = context or AppContext(config)
        try:
            await ctx.initialize()
            app.state.ctx = ctx
            logger.info(f"{config.SERVICE_NAME} started on {config.BRIDGE_HOST}:{config.BRIDGE_PORT}")
        except Exception as e:
            logger.error(f"Failed to start application: {e}")
            raise e
        yield
        logger.info("Shutting down Context")
        await ctx.cleanup()
        logger.info("Graceful shutdown completed succesfully")

    app = FastAPI(
        title="Biometric Bridge API",
        description="Local bridge between browser clients and the RDService biometric device driver",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(LoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.exception_handler(UnknownModality)
    async def unknown_modality_handler(request: Request, exc: UnknownModality):
        return JSONResponse(status_code=404, content={"success": False, "error": str(exc)})

    @app.api_route("/api/captureFingerprint", methods=["GET", "POST"])
    async def capture_fingerprint(request: Request, ctx: AppContext = Depends(get_context)):
        """Capture a fingerprint/thumb impression"""
        return await run_capture(Modality.FINGERPRINT, request, ctx)

    @app.api_route("/api/captureIris", methods=["GET", "POST"])
    async def capture_iris(request: Request, ctx: AppContext = Depends(get_context)):
        """Capture an iris scan of both eyes"""
        return await run_capture(Modality.IRIS, request, ctx)

    @app.api_route("/api/capturePhotograph", methods=["GET", "POST"])
    async def capture_photograph(request: Request, ctx: AppContext = Depends(get_context)):
        """Capture a face photograph"""
        if not config.PHOTOGRAPH_CAPTURE_ENABLED:
            return JSONResponse(
                status_code=400,
                content={
                    "success": False,
                    "errorCode": PHOTOGRAPH_UNSUPPORTED,
                    "errorMessage": "Photograph capture not supported - no face capture device is configured",
                    "qScore": 0,
                    "type": Modality.PHOTOGRAPH.value,
                    "templates": None,
                    "deviceInfo": None,
                    "timestamp": datetime.now(UTC).isoformat(),
                    "availableCaptureMethods": [Modality.FINGERPRINT.value, Modality.IRIS.value],
                },
            )
        return await run_capture(Modality.PHOTOGRAPH, request, ctx)

    @app.get("/api/deviceInfo")
    async def device_info(ctx: AppContext = Depends(get_context)):
        """Parsed device information reported by RDService"""
        info = await ctx.rdservice.get_device_info()
        return JSONResponse(status_code=200 if info["success"] else 500, content=info)

    @app.get("/health", response_model=HealthResponse, response_model_by_alias=True)
    async def health_check(ctx: AppContext = Depends(get_context)):
        """Bridge health with RDService connectivity and per-device status"""
        status, devices = await ctx.rdservice.health_probe()
        return HealthResponse(
            status="ok",
            service=config.SERVICE_NAME,
            timestamp=datetime.now(UTC).isoformat(),
            rdservice=RDServiceHealth(
                connected=status.connected,
                url=status.endpoint_used or ctx.rdservice.info_endpoint,
                response_time=status.response_time_ms,
                error=status.error,
            ),
            devices=devices,
        )

    @app.get("/api/rdservice/status")
    async def rdservice_status(ctx: AppContext = Depends(get_context)):
        """Raw RDService connectivity check"""
        status = await ctx.rdservice.check_connection()
        body = {
            "connected": status.connected,
            "rdserviceUrl": status.endpoint_used or ctx.rdservice.info_endpoint,
        }
        if status.connected:
            body["response"] = status.raw_response
        else:
            body["error"] = status.error
        return body

    @app.get("/", include_in_schema=False)
    async def redirect_to_docs():
        return RedirectResponse(url="/docs")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = Config()
    uvicorn.run(
        "biometric_bridge.app:app",
        host=settings.BRIDGE_HOST,
        port=settings.BRIDGE_PORT,
        reload=False,
    )
