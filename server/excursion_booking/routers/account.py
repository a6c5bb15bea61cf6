"""Account router: client, guide and tour operator onboarding."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from ..core.dependencies import get_account_service, get_current_user, get_email_client
from ..schemas.auth import CurrentUser
from ..schemas.common import SuccessResponse
from ..schemas.partner import (
    EmailDispatchResponse,
    Guide,
    PasswordResetRequest,
    RegisterGuideRequest,
    RegisterTourOperatorRequest,
    TourOperator,
)
from ..services.account_service import AccountService
from ..services.email_client import EmailClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/account", tags=["account"])

ACCOUNT_SERVICE_DEPENDENCY = Depends(get_account_service)
EMAIL_DEPENDENCY = Depends(get_email_client)
USER_DEPENDENCY = Depends(get_current_user)


@router.post("/register-client", response_model=SuccessResponse)
async def register_client(
    accounts: AccountService = ACCOUNT_SERVICE_DEPENDENCY,
    user: CurrentUser = USER_DEPENDENCY
) -> JSONResponse:
    """Create the caller's client profile; the welcome email goes out on first registration."""
    profile = await accounts.register_client(user)

    return JSONResponse(
        status_code=200,
        content=SuccessResponse(message=f"Bienvenue {profile.full_name} !").model_dump(mode="json")
    )


@router.post("/register-guide", response_model=Guide)
async def register_guide(
    request: RegisterGuideRequest,
    accounts: AccountService = ACCOUNT_SERVICE_DEPENDENCY,
    user: CurrentUser = USER_DEPENDENCY
) -> JSONResponse:
    guide = await accounts.register_guide(user, request)

    return JSONResponse(
        status_code=201,
        content=Guide.model_validate(guide).model_dump(mode="json")
    )


@router.post("/register-tour-operator", response_model=TourOperator)
async def register_tour_operator(
    request: RegisterTourOperatorRequest,
    accounts: AccountService = ACCOUNT_SERVICE_DEPENDENCY,
    user: CurrentUser = USER_DEPENDENCY
) -> JSONResponse:
    operator = await accounts.register_tour_operator(user, request)

    return JSONResponse(
        status_code=201,
        content=TourOperator.model_validate(operator).model_dump(mode="json")
    )


@router.post("/password-reset", response_model=EmailDispatchResponse)
async def password_reset(
    request: PasswordResetRequest,
    email_client: EmailClient = EMAIL_DEPENDENCY
) -> JSONResponse:
    """Email a password-reset link built from a token issued by the identity provider."""
    sent = await email_client.send_password_reset(request.email, request.reset_token)

    logger.info("Password reset email requested", extra={"email": request.email, "sent": sent})

    return JSONResponse(
        status_code=200,
        content=EmailDispatchResponse(sent=sent).model_dump(mode="json")
    )
