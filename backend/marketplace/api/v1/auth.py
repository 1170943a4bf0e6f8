"""
Authentication API endpoints
"""
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.api.deps import get_current_user
from marketplace.core.security import create_access_token
from marketplace.database import get_db
from marketplace.models.user import User
from marketplace.schemas.user import (
    ForgotPasswordRequest,
    MessageResponse,
    OAuth2Token,
    ResetPasswordRequest,
    Token,
    User as UserSchema,
    UserCreate,
    UserLogin,
    VerifyEmailRequest,
)
from marketplace.services.notifications import NotificationDispatcher, get_notification_dispatcher
from marketplace.services.users import UserService


router = APIRouter()


def _issue_access_token(user: User) -> str:
    # role is a hint for clients only; the server re-reads it per request
    return create_access_token(data={"sub": str(user.id), "role": user.role.value})


@router.post("/register", response_model=UserSchema, status_code=status.HTTP_201_CREATED)
async def register(
    user_in: UserCreate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> User:
    """
    Register a new user

    The account starts unverified; a verification link is emailed.

    Raises:
        ConflictError: If the email is already registered
    """
    service = UserService(db)
    user = await service.register(user_in.email, user_in.password, user_in.full_name)

    notification = await service.request_email_verification(user)
    if notification:
        background_tasks.add_task(dispatcher.dispatch, notification)
    return user


@router.post("/login", response_model=Token)
async def login(
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db),
) -> Token:
    """
    JSON login for the frontend

    Raises:
        UnauthenticatedError: If credentials are invalid
    """
    user = await UserService(db).authenticate(credentials.email, credentials.password)
    return Token(token=_issue_access_token(user), token_type="bearer")


@router.post("/token", response_model=OAuth2Token)
async def login_for_access_token(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    db: AsyncSession = Depends(get_db),
) -> OAuth2Token:
    """OAuth2 compatible token login (username is the email)"""
    user = await UserService(db).authenticate(form_data.username, form_data.password)
    return OAuth2Token(access_token=_issue_access_token(user), token_type="bearer")


@router.get("/me", response_model=UserSchema)
async def get_current_user_info(
    current_user: User = Depends(get_current_user),
) -> User:
    return current_user


@router.post("/request-email-verify", response_model=MessageResponse)
async def request_email_verify(
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> MessageResponse:
    notification = await UserService(db).request_email_verification(current_user)
    if notification is None:
        return MessageResponse(message="Email already verified")

    background_tasks.add_task(dispatcher.dispatch, notification)
    return MessageResponse(message="Verification email sent")


@router.post("/verify-email", response_model=UserSchema)
async def verify_email(
    body: VerifyEmailRequest,
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Consume an email verification token

    Raises:
        ValidationError: Unknown, expired or already used token
    """
    return await UserService(db).verify_email(body.token)


@router.post("/password/forgot", response_model=MessageResponse)
async def forgot_password(
    body: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> MessageResponse:
    """Always answers the same way so account existence isn't disclosed"""
    notification = await UserService(db).request_password_reset(body.email)
    if notification:
        background_tasks.add_task(dispatcher.dispatch, notification)
    return MessageResponse(message="If that account exists, a reset link has been sent")


@router.post("/password/reset", response_model=MessageResponse)
async def reset_password(
    body: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    await UserService(db).reset_password(body.token, body.password)
    return MessageResponse(message="Password updated")
