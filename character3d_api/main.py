import logging
from datetime import datetime, timezone
from pathlib import Path

import httpx
from fastapi import APIRouter, Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from character3d_api.config import Settings
from character3d_api.encoding import DEFAULT_PROMPT, build_generation_request, decode_data_url, read_upload_file
from character3d_api.errors import MSG_MISSING_FIELDS, MSG_TOO_LARGE, InputValidationError
from character3d_api.observability import BodySizeLimitMiddleware, RequestLoggingMiddleware, configure_logging
from character3d_api.renderer import render_page
from character3d_api.results import FAILURE_INPUT, Failure
from character3d_api.schemas import GenerationRequest, GenerationResponse, HealthResponse
from character3d_api.services.generation_service import run_generation, to_response

ROOT_DIR = Path(__file__).resolve().parent.parent
FRONTEND_DIR = ROOT_DIR / "frontend"
STATIC_DIR = FRONTEND_DIR / "static"

logger = logging.getLogger(__name__)
router = APIRouter()


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_provider_transport(request: Request) -> httpx.AsyncBaseTransport | None:
    return request.app.state.provider_transport


@router.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    timestamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return HealthResponse(status="OK", timestamp=timestamp)


@router.get("/", include_in_schema=False)
def index_page() -> FileResponse:
    return FileResponse(FRONTEND_DIR / "index.html")


@router.post("/api/generate-3d", response_model=GenerationResponse)
async def generate_3d(
    payload: GenerationRequest,
    settings: Settings = Depends(get_settings),
    transport: httpx.AsyncBaseTransport | None = Depends(get_provider_transport),
) -> JSONResponse:
    return await _generate_json(payload, settings, transport)


@router.post("/api/search-similar", response_model=GenerationResponse)
async def search_similar(
    payload: GenerationRequest,
    settings: Settings = Depends(get_settings),
    transport: httpx.AsyncBaseTransport | None = Depends(get_provider_transport),
) -> JSONResponse:
    return await _generate_json(payload.model_copy(update={"mode": "search"}), settings, transport)


@router.post("/generate", response_class=HTMLResponse)
async def generate_page(
    image: UploadFile | None = File(None),
    prompt: str | None = Form(None),
    settings: Settings = Depends(get_settings),
    transport: httpx.AsyncBaseTransport | None = Depends(get_provider_transport),
) -> HTMLResponse:
    try:
        upload = await read_upload_file(image, max_bytes=settings.max_image_bytes)
        request = build_generation_request(
            upload,
            prompt=(prompt or "").strip() or DEFAULT_PROMPT,
            max_bytes=settings.max_image_bytes,
        )
    except InputValidationError as exc:
        return HTMLResponse(render_page(Failure(reason=exc.message, origin=FAILURE_INPUT)), status_code=_validation_status(exc))

    result = await run_generation(request, settings, transport=transport)
    _, status_code = to_response(result)
    return HTMLResponse(render_page(result), status_code=status_code)


async def _generate_json(
    payload: GenerationRequest,
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None,
) -> JSONResponse:
    if not payload.image or not payload.prompt or not payload.prompt.strip():
        return _error_response(400, MSG_MISSING_FIELDS)

    try:
        decode_data_url(payload.image, max_bytes=settings.max_image_bytes)
    except InputValidationError as exc:
        return _error_response(_validation_status(exc), exc.message)

    result = await run_generation(payload, settings, transport=transport)
    search_query = payload.prompt if payload.mode == "search" else None
    response, status_code = to_response(result, search_query=search_query)
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(response.model_dump(by_alias=True, exclude_none=True)),
    )


def _validation_status(exc: InputValidationError) -> int:
    return 413 if exc.message == MSG_TOO_LARGE else 400


def _error_response(status_code: int, error: str, details=None) -> JSONResponse:
    content = {"success": False, "resultType": "failure", "error": error}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error_response(400, "Invalid request body", details=jsonable_encoder(exc.errors()))


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    return _error_response(500, "Internal server error")


def create_app(
    settings: Settings | None = None,
    provider_transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings)

    app = FastAPI(title="3D Character Generator API", version="0.1.0")
    app.state.settings = settings
    app.state.provider_transport = provider_transport

    app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.max_request_bytes)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins),
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)

    if STATIC_DIR.is_dir():
        app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")
    app.include_router(router)

    logger.info(
        "app configured: model=%s base_url=%s origins=%s credential=%s",
        settings.model,
        settings.api_base_url,
        ",".join(settings.allowed_origins),
        "set" if settings.api_configured else "missing",
    )
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=app.state.settings.host, port=app.state.settings.port)
