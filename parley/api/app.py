"""
FastAPI development server for the translation API.

Speaks the same wire protocol as the production backend (session cookie
from GET /session, JSON POSTs under /api/translate) so the client can be
run and tested end to end against a scripted engine.

Run:
    parley serve
    # or
    uvicorn parley.api.app:create_app --factory --reload
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import BaseModel, ValidationError

from parley.api.engine import TranslationEngine, TranslationEngineError, create_engine
from parley.api.stores import Clock, ContextStore, RateLimiter, SessionStore
from parley.config import Settings, get_settings
from parley.core.models import (
    IdentifyRequest,
    IdentifyResponse,
    ImproveRequest,
    ImproveResponse,
    PreviewRequest,
    PreviewResponse,
    StartRequest,
    StartResponse,
)
from parley.core.utils import random_token
from parley.i18n.languages import is_valid_language_tag

logger = logging.getLogger(__name__)

RequestT = TypeVar("RequestT", bound=BaseModel)


# =============================================================================
# App State
# =============================================================================


class AppState:
    """Server state - built once per app."""

    def __init__(
        self,
        settings: Settings,
        engine: TranslationEngine,
        clock: Clock | None = None,
    ):
        self.settings = settings
        self.engine = engine

        clock_kwargs = {"clock": clock} if clock else {}
        self.sessions = SessionStore(settings.session_ttl_seconds, **clock_kwargs)
        self.contexts = ContextStore(
            settings.context_ttl_seconds, on_expire=engine.discard, **clock_kwargs
        )

        self.session_limiter: RateLimiter | None = None
        self.api_limiter: RateLimiter | None = None
        if settings.rate_limiting_enabled:
            self.session_limiter = RateLimiter(settings.session_rate_limit, **clock_kwargs)
            self.api_limiter = RateLimiter(settings.api_rate_limit, **clock_kwargs)


def get_state(request: Request) -> AppState:
    return request.app.state.parley


# =============================================================================
# Errors
# =============================================================================


class RequestRejected(Exception):
    """Stop handling a request and answer with `status_code`."""

    def __init__(self, status_code: int, message: str | None = None):
        super().__init__(message or str(status_code))
        self.status_code = status_code
        self.message = message


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


async def handle_rejection(request: Request, exc: RequestRejected) -> Response:
    if exc.message is None:
        return Response(status_code=exc.status_code)
    return error_response(exc.status_code, exc.message)


# =============================================================================
# Dependencies
# =============================================================================


def _client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _check_rate(limiter: RateLimiter | None, request: Request) -> None:
    if limiter is not None and not limiter.hit(_client_key(request)):
        raise RequestRejected(429, "rate limit exceeded")


def limit_api(request: Request, state: AppState = Depends(get_state)) -> None:
    _check_rate(state.api_limiter, request)


def require_session(request: Request, state: AppState = Depends(get_state)) -> str:
    """Return the caller's live session token, or reject with a bare 401."""
    token = request.cookies.get(state.settings.session_cookie_name)
    if not token or not state.sessions.touch(token):
        raise RequestRejected(401)
    return token


async def bind(request: Request, model: type[RequestT]) -> RequestT:
    """Parse the JSON body into `model`; every string field is required."""
    try:
        body = await request.json()
        parsed = model.model_validate(body)
    except (ValueError, ValidationError):
        raise RequestRejected(400, "invalid request")

    if any(isinstance(v, str) and not v for v in parsed.model_dump().values()):
        raise RequestRejected(400, "invalid request")
    return parsed


def require_tag(tag: str) -> None:
    if not is_valid_language_tag(tag):
        raise RequestRejected(400, "invalid language tag")


def wire(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(by_alias=True)


# =============================================================================
# Routes
# =============================================================================


def issue_session(request: Request, response: Response, state: AppState) -> str:
    """Make sure the response leaves the client holding a live session cookie."""
    settings = state.settings
    token = request.cookies.get(settings.session_cookie_name)
    if token and state.sessions.exists(token):
        return token

    token = random_token()
    state.sessions.put(token)
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.session_ttl_seconds,
        path="/",
        secure=settings.cookie_secure,
        httponly=True,
        samesite="lax",
    )
    logger.debug("Issued new session")
    return token


async def get_session(request: Request, state: AppState = Depends(get_state)) -> Response:
    _check_rate(state.session_limiter, request)
    response = PlainTextResponse("OK")
    issue_session(request, response, state)
    return response


translate_router = APIRouter(
    prefix="/api/translate",
    dependencies=[Depends(limit_api)],
)


@translate_router.post("/start")
async def start_translation(
    request: Request,
    session: str = Depends(require_session),
    state: AppState = Depends(get_state),
):
    req = await bind(request, StartRequest)
    require_tag(req.lang)

    try:
        source_lang = await state.engine.identify(req.source)
        context_id, result = await state.engine.new_translation(req.source, req.lang)
    except TranslationEngineError as e:
        return error_response(500, str(e))

    state.contexts.put(session, context_id)
    return wire(StartResponse(context_id=context_id, result=result, source_lang=source_lang))


@translate_router.post("/improve")
async def improve_translation(
    request: Request,
    session: str = Depends(require_session),
    state: AppState = Depends(get_state),
):
    req = await bind(request, ImproveRequest)

    if not state.contexts.exists(session, req.context_id):
        if state.contexts.was_expired(session, req.context_id):
            return error_response(410, "context expired")
        return error_response(404, "context not found")

    try:
        result = await state.engine.improve(req.context_id, req.feedback)
    except TranslationEngineError as e:
        return error_response(500, str(e))

    state.contexts.touch(session, req.context_id)
    return wire(ImproveResponse(result=result))


@translate_router.post("/preview")
async def preview_translation(
    request: Request,
    session: str = Depends(require_session),
    state: AppState = Depends(get_state),
):
    req = await bind(request, PreviewRequest)
    require_tag(req.lang)

    try:
        result = await state.engine.preview(req.source, req.lang)
    except TranslationEngineError as e:
        return error_response(500, str(e))

    return wire(PreviewResponse(result=result))


@translate_router.post("/identify")
async def identify_language(
    request: Request,
    session: str = Depends(require_session),
    state: AppState = Depends(get_state),
):
    req = await bind(request, IdentifyRequest)

    try:
        lang = await state.engine.identify(req.source)
    except TranslationEngineError as e:
        return error_response(500, str(e))

    return wire(IdentifyResponse(lang=lang))


# =============================================================================
# App Setup
# =============================================================================


def create_app(
    settings: Settings | None = None,
    engine: TranslationEngine | None = None,
    clock: Clock | None = None,
) -> FastAPI:
    """
    Build the dev server.

    Args:
        settings: Defaults to `get_settings()`
        engine: Defaults to the engine named in settings
        clock: Monotonic time source for session/context TTLs and rate limits
    """
    settings = settings or get_settings()
    engine = engine or create_engine(settings.engine, delay=settings.mock_delay_seconds)

    app = FastAPI(
        title="Parley Dev API",
        description="Session-authenticated translation API backed by a scripted engine",
        version="0.1.0",
    )
    app.state.parley = AppState(settings, engine, clock)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestRejected, handle_rejection)

    app.add_api_route("/session", get_session, methods=["GET"])
    app.include_router(translate_router)

    if settings.rate_limiting_enabled:
        logger.info("Rate limiting enabled")
    else:
        logger.info("Rate limiting disabled")
    logger.info(f"Dev API ready ({settings.environment}, engine={settings.engine})")

    return app
