"""
FastAPI application for LexAccess.

Serves the auth, profile, verification and access-grant API, and the page
routes that sit behind the route gate.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from lexaccess.access import AccessGrantLedger
from lexaccess.auth import (
    AuthContext,
    DocumentInput,
    PageRedirect,
    PasswordHasher,
    SessionManager,
    TokenCodec,
    VerificationService,
    auth_router,
    evaluate_verification,
    require_payment_service,
    require_session,
    require_verified_page,
)
from lexaccess.config import Settings, configure_logging, get_settings
from lexaccess.core.errors import ConfigurationError, LexAccessError
from lexaccess.core.models import ProfileResponse
from lexaccess.gate import RouteGate, RouteGateMiddleware, load_route_policy
from lexaccess.integrations.sentry import capture_exception, init_sentry
from lexaccess.services import PaymentConfirmation, ProfileService, confirm_payment
from lexaccess.services.payments import ConsultationStatus, ConsultationType, PaymentStatus
from lexaccess.storage import create_sql_storage

logger = logging.getLogger(__name__)


# =============================================================================
# Request Models
# =============================================================================


class GrantAccessRequest(BaseModel):
    consultationId: str = ""
    clientId: str = ""
    advocateId: str = ""
    accessType: str = ""
    paymentId: str = ""


class UpdateProfileRequest(BaseModel):
    """Partial profile update; only the fields sent are applied."""

    model_config = ConfigDict(populate_by_name=True)

    first_name: str | None = Field(default=None, alias="firstName")
    last_name: str | None = Field(default=None, alias="lastName")
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    role: str | None = None
    password: str | None = None


class VerificationProfileData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    first_name: str | None = Field(default=None, alias="firstName")
    last_name: str | None = Field(default=None, alias="lastName")
    phone: str | None = None
    address: str | None = None


class CompleteVerificationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    profile_data: VerificationProfileData = Field(default_factory=VerificationProfileData, alias="profileData")
    documents: list[DocumentInput] = Field(default_factory=list)


class PaymentConfirmRequest(BaseModel):
    paymentId: str
    consultationId: str
    clientId: str
    advocateId: str
    consultationType: ConsultationType
    paymentStatus: PaymentStatus
    consultationStatus: ConsultationStatus


# =============================================================================
# App Factory
# =============================================================================


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the application.

    Services are wired in the lifespan, so a missing signing key stops the
    app at startup rather than failing on the first request.
    """
    settings = settings or get_settings()
    policy = load_route_policy(settings.route_policy_path or None)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings)
        init_sentry(settings)

        try:
            codec = TokenCodec.from_settings(settings)
        except ConfigurationError as e:
            logger.critical(f"Cannot start: {e.detail}")
            raise

        storage = create_sql_storage(settings.database_url, echo=settings.database_echo)
        await storage.database.connect()

        hasher = PasswordHasher(rounds=settings.bcrypt_rounds)

        app.state.settings = settings
        app.state.storage = storage
        app.state.token_codec = codec
        app.state.route_gate = RouteGate(policy, codec, sign_in_path=settings.sign_in_path)
        app.state.sessions = SessionManager(storage.profiles, codec, hasher, settings)
        app.state.ledger = AccessGrantLedger(
            storage.grants,
            window=timedelta(hours=settings.access_grant_hours),
        )
        app.state.verification = VerificationService(storage.profiles)
        app.state.profiles = ProfileService(storage.profiles, hasher)

        logger.info(f"LexAccess API starting in {settings.environment} mode")

        yield

        await storage.database.close()
        logger.info("LexAccess API shutting down")

    app = FastAPI(
        title="LexAccess API",
        description="Sessions, identity verification and paid consultation access",
        version="0.1.0",
        lifespan=lifespan,
    )

    # CORS wraps the gate so preflight requests are never redirected
    app.add_middleware(RouteGateMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_error_handlers(app)
    app.include_router(auth_router)
    _register_api_routes(app)
    _register_pages(app)

    return app


# =============================================================================
# Error Handling
# =============================================================================


def _register_error_handlers(app: FastAPI) -> None:

    @app.exception_handler(LexAccessError)
    async def lexaccess_error_handler(request: Request, exc: LexAccessError):
        if isinstance(exc, ConfigurationError):
            logger.error(f"Configuration error on {request.url.path}: {exc.detail}")
            capture_exception(exc, path=request.url.path)
        elif exc.status_code >= 500:
            logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.detail}")
        else:
            logger.info(f"{type(exc).__name__} on {request.url.path}: {exc.detail}")
        return JSONResponse({"error": exc.public_message}, status_code=exc.status_code)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(PageRedirect)
    async def page_redirect_handler(request: Request, exc: PageRedirect):
        return RedirectResponse(exc.location, status_code=303)


# =============================================================================
# API Routes
# =============================================================================


def _require_same_principal(ctx: AuthContext, client_id: str) -> None:
    if client_id and ctx.user_id != client_id:
        raise HTTPException(status_code=403, detail="Forbidden")


def _register_api_routes(app: FastAPI) -> None:

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": "lexaccess-api"}

    # -------------------------------------------------------------------------
    # Profile
    # -------------------------------------------------------------------------

    @app.get("/api/user/profile")
    async def get_profile(request: Request, ctx: AuthContext = Depends(require_session)):
        profile = await request.app.state.profiles.get(ctx.user_id)
        documents = await request.app.state.storage.profiles.list_documents(ctx.user_id)
        return {
            "success": True,
            "profile": ProfileResponse.from_profile(profile).model_dump(mode="json"),
            "verification": evaluate_verification(profile, len(documents)).model_dump(mode="json"),
        }

    @app.put("/api/user/profile")
    async def update_profile(
        data: UpdateProfileRequest,
        request: Request,
        ctx: AuthContext = Depends(require_session),
    ):
        changes = data.model_dump(exclude_unset=True)
        result = await request.app.state.profiles.update(ctx.user_id, changes)
        return {
            "success": True,
            "profile": ProfileResponse.from_profile(result.profile).model_dump(mode="json"),
            "vkycReset": result.vkyc_reset,
            "message": result.message,
        }

    # -------------------------------------------------------------------------
    # Verification
    # -------------------------------------------------------------------------

    @app.get("/api/vkyc/status")
    async def verification_status(request: Request, ctx: AuthContext = Depends(require_session)):
        state = await request.app.state.verification.status(ctx.user_id)
        return state.model_dump(mode="json")

    @app.post("/api/vkyc/complete")
    async def complete_verification(
        data: CompleteVerificationRequest,
        request: Request,
        ctx: AuthContext = Depends(require_session),
    ):
        state = await request.app.state.verification.complete(
            ctx.user_id,
            profile_data=data.profile_data.model_dump(exclude_unset=True),
            documents=data.documents,
        )
        return {"success": True, "message": "VKYC completed successfully", "verification": state.model_dump(mode="json")}

    # -------------------------------------------------------------------------
    # Access grants
    # -------------------------------------------------------------------------

    # Grants are written by the payment service, never by the client itself
    @app.post("/api/access/grant", dependencies=[Depends(require_payment_service)])
    async def grant_access(data: GrantAccessRequest, request: Request):
        ledger: AccessGrantLedger = request.app.state.ledger
        result = await ledger.grant(
            consultation_id=data.consultationId,
            client_id=data.clientId,
            advocate_id=data.advocateId,
            access_kind=data.accessType,
            payment_id=data.paymentId,
        )
        return {
            "success": True,
            "grant": result.grant.model_dump(mode="json", by_alias=True),
            "alreadyGranted": result.already_granted,
            "message": result.message,
        }

    @app.get("/api/access/grant")
    async def check_access(
        request: Request,
        consultationId: str = "",
        clientId: str = "",
        ctx: AuthContext = Depends(require_session),
    ):
        _require_same_principal(ctx, clientId)
        ledger: AccessGrantLedger = request.app.state.ledger
        result = await ledger.check_access(consultationId, clientId)
        return result.to_response()

    @app.post("/api/payment/confirm", dependencies=[Depends(require_payment_service)])
    async def payment_confirm(data: PaymentConfirmRequest, request: Request):
        result = await confirm_payment(
            request.app.state.ledger,
            PaymentConfirmation(
                payment_id=data.paymentId,
                consultation_id=data.consultationId,
                client_id=data.clientId,
                advocate_id=data.advocateId,
                consultation_type=data.consultationType,
                payment_status=data.paymentStatus,
                consultation_status=data.consultationStatus,
            ),
        )
        return {
            "success": True,
            "grant": result.grant.model_dump(mode="json", by_alias=True),
            "alreadyGranted": result.already_granted,
            "message": result.message,
        }


# =============================================================================
# Pages
# =============================================================================

FEATURE_PAGES = {
    "/chatbot": "Legal Assistant",
    "/library": "Legal Library",
    "/consult": "Consultations",
    "/document-processor": "Document Processor",
    "/publish-report": "Publish Report",
    "/profile": "Profile",
}


def _page(title: str) -> HTMLResponse:
    return HTMLResponse(f"<!doctype html><title>{title}</title><h1>{title}</h1>")


def _feature_page(title: str):
    async def feature_page(ctx: AuthContext = Depends(require_verified_page)):
        return _page(title)

    return feature_page


def _register_pages(app: FastAPI) -> None:

    @app.get("/", response_class=HTMLResponse)
    async def home_page():
        return _page("LexAccess")

    @app.get("/auth", response_class=HTMLResponse)
    async def sign_in_page():
        return _page("Sign in")

    @app.get("/vkyc", response_class=HTMLResponse)
    async def verification_page():
        return _page("Identity Verification")

    for path, title in FEATURE_PAGES.items():
        app.add_api_route(path, _feature_page(title), methods=["GET"], response_class=HTMLResponse)


app = create_app()
