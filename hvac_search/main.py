"""FastAPI application entry point."""

import uuid
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import Cookie, Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hvac_search.config import get_settings
from hvac_search.errors import SearchError
from hvac_search.logging_config import (
    clear_request_id,
    format_cause_chain,
    get_logger,
    mask_secret,
    set_request_id,
    setup_logging,
    truncate,
)
from hvac_search.models.auth import Principal
from hvac_search.models.error import ErrorDebug, ErrorResponse
from hvac_search.models.query import SearchRequest, SearchResponse
from hvac_search.services.auth_service import (
    Authenticator,
    StaticSessionAuthenticator,
    demo_principal,
    require_tenant_access,
)
from hvac_search.services.search_service import SearchService

# Setup logging configuration
setup_logging()
logger = get_logger(__name__)

# Load and validate configuration at startup
settings = get_settings()

# Global service instances
search_service: SearchService | None = None
authenticator: Authenticator = StaticSessionAuthenticator(
    principal=demo_principal(
        email=settings.demo_user_email,
        role=settings.demo_user_role,
        opco_code=settings.demo_opco_code,
    ),
    session_token=settings.demo_session_token,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - startup and shutdown."""
    # Startup
    global search_service

    logger.info("Starting HVAC Records Search...")
    logger.info(
        f"Configuration: model={settings.openai_model}, "
        f"embedding_model={settings.openai_embedding_model}, "
        f"collection={settings.collection_name}, security_policy={settings.security_policy}"
    )

    search_service = SearchService()

    logger.info("HVAC Records Search started successfully")

    yield

    # Shutdown
    logger.info("Shutting down HVAC Records Search...")

    if search_service:
        await search_service.close()

    logger.info("HVAC Records Search shut down successfully")


app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    description="Natural-language search over HVAC business records with charts and summaries",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify allowed origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error_response(
    request: Request,
    status_code: int,
    error: str,
    detail: str,
    debug: ErrorDebug | None = None,
) -> JSONResponse:
    request_id = getattr(request.state, "request_id", str(uuid.uuid4()))
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(
            error=error,
            detail=detail,
            debug=debug,
            timestamp=datetime.now(UTC),
            request_id=request_id,
        ).model_dump(mode="json", exclude_none=True),
    )


# Request ID and error handling middleware
@app.middleware("http")
async def request_middleware(request: Request, call_next):
    """Add request ID tracking and error handling."""
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    # Set request ID in logging context
    set_request_id(request_id)

    try:
        logger.info(f"Request started: {request.method} {request.url.path}")
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        logger.info(
            f"Request completed: {request.method} {request.url.path} - Status: {response.status_code}"
        )
        return response
    except Exception as e:
        logger.error(
            f"Unhandled exception: {format_cause_chain(e)}",
            exc_info=True,
            extra={"path": request.url.path},
        )

        return _error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal server error",
            truncate(str(e)),
            ErrorDebug(cause_class=type(e).__name__, cause_message=truncate(str(e))),
        )
    finally:
        # Clear request ID from context
        clear_request_id()


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle request body validation errors as 400."""
    errors = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        errors.append(f"{field}: {error['msg']}")

    detail = "; ".join(errors)

    logger.warning(
        f"Validation error: {detail}",
        extra={"path": request.url.path},
    )

    return _error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        "Invalid request",
        detail,
        ErrorDebug(operation="validate_request", cause_class="RequestValidationError", cause_message=truncate(detail)),
    )


@app.exception_handler(SearchError)
async def search_exception_handler(request: Request, exc: SearchError):
    """Translate typed pipeline errors to their HTTP status."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"{type(exc).__name__} [{exc.status_code}] during {exc.operation or 'search'}: "
        f"{format_cause_chain(exc)}",
        extra={"path": request.url.path},
    )

    debug = exc.to_debug()
    return _error_response(
        request,
        exc.status_code,
        exc.title,
        exc.message,
        ErrorDebug(
            operation=debug["operation"],
            cause_class=debug["cause_class"],
            cause_message=truncate(debug["cause_message"]),
        ),
    )


# Dependencies


def get_search_service() -> SearchService:
    """Return the service created at startup."""
    if not search_service:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Search service not initialized",
        )
    return search_service


def get_authenticator() -> Authenticator:
    return authenticator


def get_principal(
    session: str | None = Cookie(default=None),
    authorization: str | None = Header(default=None),
    auth: Authenticator = Depends(get_authenticator),
) -> Principal:
    """Resolve the caller from the session cookie or a bearer token."""
    token = session
    if not token and authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
    principal = auth.authenticate(token)
    return require_tenant_access(principal)


# API Endpoints


@app.get("/health")
async def health_check():
    """Health check endpoint.

    Returns:
        dict: Service status and configured models
    """
    return {
        "status": "healthy",
        "service": "HVAC Records Search",
        "version": settings.api_version,
        "models": {
            "chat": settings.openai_model,
            "embedding": settings.openai_embedding_model,
            "embedding_dimension": settings.embedding_dimension,
        },
        "security_policy": settings.security_policy,
    }


@app.post(
    "/api/v1/search",
    response_model=SearchResponse,
    response_model_exclude_none=True,
    summary="Search HVAC business records",
    description="Submit a natural-language question and receive a summary, sources and charts.",
)
async def search_records(
    request: SearchRequest,
    principal: Principal = Depends(get_principal),
    service: SearchService = Depends(get_search_service),
) -> SearchResponse:
    """Run the search pipeline for an authenticated user.

    Args:
        request: Query text and optional result ceiling
        principal: Authenticated user
        service: Search service

    Returns:
        SearchResponse with answer, sources and optional visualization
    """
    logger.info(f"Processing search for {principal.email}: '{request.query[:100]}'")

    response = await service.search(request, principal)
    logger.info(
        f"Search completed in {response.processing_time:.2f}s "
        f"with {len(response.sources)} sources"
    )
    return response


@app.get(
    "/api/v1/debug/vector-store",
    summary="Vector store diagnostics",
    description="Collection, record count, dimension check, and masked key diagnostics.",
)
async def debug_vector_store(
    principal: Principal = Depends(get_principal),
    service: SearchService = Depends(get_search_service),
):
    """Report vector store and credential diagnostics without exposing secrets."""
    vector_store = await service.vector_store.describe()
    return {
        "vector_store": vector_store,
        "embedding_model": settings.openai_embedding_model,
        "openai_api_key": mask_secret(settings.openai_api_key),
    }
