from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, ConfigDict, Field

from src.repurposing.config import settings
from src.repurposing.domain.models.translation import Translation
from src.repurposing.domain.models.translator_user import TranslatorRole, TranslatorUser
from src.repurposing.errors import PipelineError, ValidationError, to_http_exception
from src.repurposing.security import (
    ensure_is_admin,
    ensure_is_reviewer_or_admin,
    get_current_translator,
    get_optional_translator,
)
from src.repurposing.services.audit.service import audit_service
from src.repurposing.services.settings.service import settings_service
from src.repurposing.services.translations.service import review_engine
from src.repurposing.services.translators.service import translator_auth_service

router = APIRouter(prefix="/translate", tags=["translator-portal"])


class LoginRequest(BaseModel):
    username: str
    password: str


class TranslatorProfile(BaseModel):
    id: UUID
    username: str
    display_name: str
    role: TranslatorRole
    languages: List[str]


class SessionResponse(BaseModel):
    user: TranslatorProfile
    portal_open: bool


class PortalEditRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    edited_body: str = Field(alias="editedBody")
    editor_notes: Optional[str] = Field(default=None, alias="editorNotes")


class PortalReviewRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: str
    reviewer_notes: Optional[str] = Field(default=None, alias="reviewerNotes")
    edited_body: Optional[str] = Field(default=None, alias="editedBody")


class RegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    username: Optional[str] = None
    password: Optional[str] = None
    display_name: Optional[str] = Field(default=None, alias="displayName")
    role: Optional[str] = None
    languages: Optional[List[str]] = None


class RegisterResponse(BaseModel):
    success: bool
    user: TranslatorProfile


class TranslatorAccount(TranslatorProfile):
    is_active: bool
    last_login_at: Optional[datetime] = None
    created_at: datetime


class UserListResponse(BaseModel):
    users: List[TranslatorAccount]


class UpdateUserRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    is_active: Optional[bool] = Field(default=None, alias="isActive")
    role: Optional[str] = None
    display_name: Optional[str] = Field(default=None, alias="displayName")
    languages: Optional[List[str]] = None


def _profile(user: TranslatorUser) -> TranslatorProfile:
    return TranslatorProfile(
        id=user.id,
        username=user.username,
        display_name=user.display_name,
        role=user.role,
        languages=user.languages,
    )


def _account(user: TranslatorUser) -> TranslatorAccount:
    return TranslatorAccount(
        **_profile(user).model_dump(),
        is_active=user.is_active,
        last_login_at=user.last_login_at,
        created_at=user.created_at,
    )


@router.post("/auth/login", response_model=SessionResponse)
async def login(request: LoginRequest, response: Response) -> SessionResponse:
    try:
        user = translator_auth_service.authenticate(request.username, request.password)
    except PipelineError as exc:
        raise to_http_exception(exc) from exc

    response.set_cookie(
        key=settings.translator_cookie_name,
        value=translator_auth_service.issue_token(user),
        max_age=settings.translator_token_expire_minutes * 60,
        httponly=True,
        secure=settings.translator_cookie_secure,
        samesite="lax",
        path="/",
    )
    audit_service.log_event(
        action="login",
        resource_type="translator_user",
        resource_id=str(user.id),
        subject=f"translator:{user.username}",
    )
    return SessionResponse(user=_profile(user), portal_open=settings_service.is_portal_open())


@router.post("/auth/logout")
async def logout(response: Response) -> dict:
    response.delete_cookie(key=settings.translator_cookie_name, path="/")
    return {"success": True}


@router.get("/auth/me", response_model=SessionResponse)
async def me(user: TranslatorUser = Depends(get_current_translator)) -> SessionResponse:
    return SessionResponse(user=_profile(user), portal_open=settings_service.is_portal_open())


@router.post("/auth/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest, admin: TranslatorUser = Depends(get_current_translator)) -> RegisterResponse:
    """Create a portal account. Admins only."""

    ensure_is_admin(admin)
    try:
        if not request.username or not request.password or not request.display_name:
            raise ValidationError("username, password, and displayName are required")
        user = translator_auth_service.register(
            username=request.username,
            password=request.password,
            display_name=request.display_name,
            role=request.role,
            languages=request.languages,
        )
    except PipelineError as exc:
        raise to_http_exception(exc) from exc
    return RegisterResponse(success=True, user=_profile(user))


@router.get("/users", response_model=UserListResponse)
async def list_users(admin: TranslatorUser = Depends(get_current_translator)) -> UserListResponse:
    ensure_is_admin(admin)
    return UserListResponse(users=[_account(user) for user in translator_auth_service.list_users()])


@router.patch("/users/{user_id}", response_model=TranslatorAccount)
async def update_user(
    user_id: UUID,
    request: UpdateUserRequest,
    admin: TranslatorUser = Depends(get_current_translator),
) -> TranslatorAccount:
    """Activate or deactivate an account, or change its role, name or languages."""

    ensure_is_admin(admin)
    try:
        user = translator_auth_service.update_user(
            user_id,
            is_active=request.is_active,
            role=request.role,
            display_name=request.display_name,
            languages=request.languages,
        )
    except PipelineError as exc:
        raise to_http_exception(exc) from exc
    return _account(user)


@router.post("/{translation_id}/submit-edit", response_model=Translation)
async def submit_edit(
    translation_id: UUID,
    request: PortalEditRequest,
    user: Optional[TranslatorUser] = Depends(get_optional_translator),
) -> Translation:
    """Submit an edited body from the portal.

    Anonymous edits are accepted while the portal is open; otherwise a
    logged-in translator is required.
    """

    try:
        return review_engine.submit_portal_edit(
            translation_id,
            edited_body=request.edited_body,
            editor_notes=request.editor_notes,
            editor=user,
            portal_open=settings_service.is_portal_open(),
        )
    except PipelineError as exc:
        raise to_http_exception(exc) from exc


@router.post("/{translation_id}/submit-review", response_model=Translation)
async def submit_review(
    translation_id: UUID,
    request: PortalReviewRequest,
    user: TranslatorUser = Depends(get_current_translator),
) -> Translation:
    ensure_is_reviewer_or_admin(user)
    try:
        return review_engine.submit_review(
            translation_id,
            request.action,
            reviewer_notes=request.reviewer_notes,
            edited_body=request.edited_body,
            reviewer=user.username,
        )
    except PipelineError as exc:
        raise to_http_exception(exc) from exc
