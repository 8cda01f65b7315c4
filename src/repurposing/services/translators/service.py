from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Union
from uuid import UUID, uuid4

import bcrypt
from jose import JWTError, jwt

from src.repurposing.config import settings
from src.repurposing.domain.models.translator_user import TranslatorRole, TranslatorUser
from src.repurposing.errors import AuthenticationError, Conflict, NotFound, ValidationError
from src.repurposing.infra.db import inmemory as repos
from src.repurposing.services.audit.service import audit_service

logger = logging.getLogger("pipeline.translators")


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def normalize_username(username: Optional[str]) -> str:
    return (username or "").strip().lower()


def parse_role(role: Union[str, TranslatorRole, None]) -> TranslatorRole:
    if role is None or role == "":
        return TranslatorRole.TRANSLATOR
    try:
        return TranslatorRole(role)
    except ValueError:
        valid = ", ".join(r.value for r in TranslatorRole)
        raise ValidationError(f"Invalid role. Must be one of: {valid}") from None


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against a bcrypt hash."""
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # Malformed stored hash.
        return False


class TranslatorAuthService:
    """Accounts and cookie sessions for the translator portal.

    Sessions are HS256 JWTs carrying the user id, username and role. The token
    alone is not trusted: every request re-reads the user so deactivated
    accounts lose access immediately.
    """

    def register(
        self,
        *,
        username: Optional[str],
        password: Optional[str],
        display_name: Optional[str] = None,
        role: Union[str, TranslatorRole, None] = TranslatorRole.TRANSLATOR,
        languages: Optional[List[str]] = None,
    ) -> TranslatorUser:
        username = normalize_username(username)
        if not username or not password:
            raise ValidationError("username and password are required")
        role = parse_role(role)
        if repos.translator_user_repository.get_by_username(username) is not None:
            raise Conflict("Username already exists")

        user = TranslatorUser(
            id=uuid4(),
            username=username,
            display_name=display_name or username,
            role=role,
            languages=list(languages or []),
            password_hash=hash_password(password),
            created_at=datetime.now(timezone.utc),
        )
        repos.translator_user_repository.add(user)
        audit_service.log_event(
            action="register",
            resource_type="translator_user",
            resource_id=str(user.id),
            extra={"role": user.role.value},
        )
        return user

    def list_users(self) -> List[TranslatorUser]:
        return repos.translator_user_repository.list_all()

    def update_user(
        self,
        user_id: UUID,
        *,
        is_active: Optional[bool] = None,
        role: Union[str, TranslatorRole, None] = None,
        display_name: Optional[str] = None,
        languages: Optional[List[str]] = None,
    ) -> TranslatorUser:
        user = repos.translator_user_repository.get(user_id)
        if user is None:
            raise NotFound("User not found")

        if is_active is not None:
            user.is_active = is_active
        if role is not None:
            user.role = parse_role(role)
        if display_name is not None:
            if not display_name.strip():
                raise ValidationError("displayName must not be empty")
            user.display_name = display_name.strip()
        if languages is not None:
            user.languages = list(languages)
        repos.translator_user_repository.save(user)
        audit_service.log_event(
            action="update",
            resource_type="translator_user",
            resource_id=str(user.id),
            extra={"is_active": user.is_active, "role": user.role.value},
        )
        return user

    def ensure_admin(self, username: Optional[str], password: Optional[str]) -> Optional[TranslatorUser]:
        """Create the first portal admin unless that username already exists.

        Accounts can only be created by an admin, so a fresh deployment gets
        its first one from TRANSLATOR_ADMIN_USERNAME / TRANSLATOR_ADMIN_PASSWORD.
        """

        username = normalize_username(username)
        if not username or not password:
            return None
        if repos.translator_user_repository.get_by_username(username) is not None:
            return None
        user = self.register(username=username, password=password, role=TranslatorRole.ADMIN)
        logger.info("Created portal admin %s", user.username)
        return user

    def authenticate(self, username: str, password: str) -> TranslatorUser:
        user = repos.translator_user_repository.get_by_username(normalize_username(username))
        if user is None or not verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid username or password")
        if not user.is_active:
            raise AuthenticationError("Account is deactivated")

        user.last_login_at = datetime.now(timezone.utc)
        repos.translator_user_repository.save(user)
        logger.info("Translator %s logged in", user.username)
        return user

    def issue_token(self, user: TranslatorUser, *, now: Optional[datetime] = None) -> str:
        now = now or datetime.now(timezone.utc)
        payload: Dict[str, Any] = {
            "sub": str(user.id),
            "username": user.username,
            "role": user.role.value,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(minutes=settings.translator_token_expire_minutes)).timestamp()),
        }
        return jwt.encode(payload, settings.translator_jwt_secret, algorithm=settings.translator_jwt_algorithm)

    def resolve_token(self, token: Optional[str]) -> Optional[TranslatorUser]:
        """Return the active user behind a session token, or None."""

        if not token:
            return None
        try:
            payload = jwt.decode(
                token,
                settings.translator_jwt_secret,
                algorithms=[settings.translator_jwt_algorithm],
            )
        except JWTError:
            return None

        try:
            user_id = UUID(str(payload.get("sub")))
        except ValueError:
            return None

        user = repos.translator_user_repository.get(user_id)
        if user is None or not user.is_active:
            return None
        return user


translator_auth_service = TranslatorAuthService()
