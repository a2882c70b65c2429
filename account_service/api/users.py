"""
Account endpoints: signup, login, logout, current user, subscription and
avatar updates, and email verification.
"""
from fastapi import APIRouter, Depends, File, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from ..core.database import get_db
from ..models.user import User
from ..schemas.user_schemas import (
    ApiResponse,
    AvatarData,
    LoginData,
    LoginRequest,
    ResendVerificationRequest,
    SignupRequest,
    SubscriptionUpdateRequest,
    UserPublic,
)
from ..services.account_service import AccountService
from ..services.avatar_service import IAvatarStorage
from .deps import get_account_service, get_avatar_storage, get_current_user

logger = structlog.get_logger()
router = APIRouter(prefix="/users", tags=["users"])

ERROR_RESPONSES = {
    400: {"model": ApiResponse[None]},
    401: {"model": ApiResponse[None]},
    404: {"model": ApiResponse[None]},
    409: {"model": ApiResponse[None]},
}


def _success(data=None, message=None, code: int = status.HTTP_200_OK, label: str = "success"):
    return {"status": label, "code": code, "data": data, "message": message}


@router.post(
    "/signup",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[UserPublic],
    response_model_exclude_none=True,
    responses=ERROR_RESPONSES,
)
async def signup(
    payload: SignupRequest,
    db: AsyncSession = Depends(get_db),
    account_service: AccountService = Depends(get_account_service),
):
    """
    Register a new account.

    The account stays unverified until the emailed link is followed.
    """
    data = await account_service.signup(
        db,
        email=payload.email,
        password=payload.password,
        subscription=payload.subscription,
        name=payload.name,
    )
    return _success(data, code=status.HTTP_201_CREATED, label="created")


@router.post(
    "/login",
    response_model=ApiResponse[LoginData],
    response_model_exclude_none=True,
    responses=ERROR_RESPONSES,
)
async def login(
    payload: LoginRequest,
    db: AsyncSession = Depends(get_db),
    account_service: AccountService = Depends(get_account_service),
):
    """Exchange email and password for a session token."""
    data = await account_service.login(db, email=payload.email, password=payload.password)
    return _success(data)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT, responses=ERROR_RESPONSES)
async def logout(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    account_service: AccountService = Depends(get_account_service),
):
    await account_service.logout(db, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/current",
    response_model=ApiResponse[UserPublic],
    response_model_exclude_none=True,
    responses=ERROR_RESPONSES,
)
async def get_current(
    current_user: User = Depends(get_current_user),
    account_service: AccountService = Depends(get_account_service),
):
    return _success(account_service.get_current(current_user))


@router.patch(
    "/",
    response_model=ApiResponse[UserPublic],
    response_model_exclude_none=True,
    responses=ERROR_RESPONSES,
)
async def update_subscription(
    payload: SubscriptionUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    account_service: AccountService = Depends(get_account_service),
):
    data = await account_service.update_subscription(db, current_user.id, payload.subscription)
    return _success(data)


@router.patch(
    "/avatars",
    response_model=ApiResponse[AvatarData],
    response_model_exclude_none=True,
    responses=ERROR_RESPONSES,
)
async def update_avatar(
    avatar: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    account_service: AccountService = Depends(get_account_service),
    avatar_storage: IAvatarStorage = Depends(get_avatar_storage),
):
    # One byte past the limit is enough to reject an oversized upload
    content = await avatar.read(avatar_storage.max_bytes + 1)
    data = await account_service.update_avatar(
        db,
        current_user,
        filename=avatar.filename,
        content=content,
        content_type=avatar.content_type,
    )
    return _success(data)


@router.get(
    "/verify/{token}",
    response_model=ApiResponse[None],
    response_model_exclude_none=True,
    responses=ERROR_RESPONSES,
)
async def verify_email(
    token: str,
    db: AsyncSession = Depends(get_db),
    account_service: AccountService = Depends(get_account_service),
):
    """Consume a verification token. The link stops working after first use."""
    await account_service.verify_email(db, token)
    return _success(message="Verification successful")


@router.post(
    "/verify/{token}/resend",
    response_model=ApiResponse[None],
    response_model_exclude_none=True,
    responses=ERROR_RESPONSES,
)
async def resend_verification_by_token(
    token: str,
    db: AsyncSession = Depends(get_db),
    account_service: AccountService = Depends(get_account_service),
):
    await account_service.resend_verification_by_token(db, token)
    return _success(message="Verification email sent")


@router.post(
    "/verify",
    response_model=ApiResponse[None],
    response_model_exclude_none=True,
    responses=ERROR_RESPONSES,
)
async def resend_verification(
    payload: ResendVerificationRequest,
    db: AsyncSession = Depends(get_db),
    account_service: AccountService = Depends(get_account_service),
):
    """Re-send the verification email to an unverified account."""
    await account_service.resend_verification(db, payload.email)
    return _success(message="Verification email sent")
