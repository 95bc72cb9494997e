"""
User accounts: registration, login, profile, avatar and password reset.

This is also the credential store the invitation manager consults to
resolve an invitee's email to a user id.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from pathlib import PurePosixPath

from email_validator import EmailNotValidError, validate_email

from puretome.auth.jwt import hash_password, verify_password
from puretome.config import Settings
from puretome.core.errors import ConflictError, NotFoundError, ParameterError, ValidationError
from puretome.core.models import PublicUser, User, UserRole
from puretome.core.utils import generate_id, generate_token, normalize_email, utc_now
from puretome.integrations.email import EmailService
from puretome.storage.base import Collections, ContentStorage, DuplicateKeyError, MetadataStorage

logger = logging.getLogger(__name__)

SELF_SERVICE_ROLES = (UserRole.AUTHOR, UserRole.AGENT, UserRole.PUBLISHER)


class UserService:
    """Account operations backed by the metadata store."""

    def __init__(
        self,
        metadata: MetadataStorage,
        content: ContentStorage,
        email_service: EmailService,
        settings: Settings,
    ):
        self.metadata = metadata
        self.content = content
        self.email_service = email_service
        self.settings = settings

    # =========================================================================
    # Lookups
    # =========================================================================

    async def get(self, user_id: str | None) -> User | None:
        if not user_id:
            return None
        data = await self.metadata.get(Collections.USERS, user_id)
        return User.model_validate(data) if data else None

    async def find_by_email(self, email: str | None) -> User | None:
        if not email:
            return None
        data = await self.metadata.find_one(Collections.USERS, {"email": normalize_email(email)})
        return User.model_validate(data) if data else None

    async def get_public(self, user_id: str | None) -> PublicUser | None:
        user = await self.get(user_id)
        return self.public(user) if user else None

    @staticmethod
    def public(user: User) -> PublicUser:
        return PublicUser.from_user(user)

    async def _save(self, user: User) -> None:
        user.touch()
        await self.metadata.save(Collections.USERS, user.id, user.to_record())

    # =========================================================================
    # Registration & Login
    # =========================================================================

    def _check_password(self, password) -> None:
        if not isinstance(password, str) or len(password) < self.settings.password_min_length:
            raise ValidationError(
                f"Password must be at least {self.settings.password_min_length} characters long.",
                {"password": "too short"},
            )

    async def register(
        self,
        name,
        email,
        password,
        role: UserRole | str | None = None,
    ) -> User:
        """
        Create an account.

        Raises ValidationError for bad input and ConflictError when the
        email is taken. Admin accounts cannot be self-registered.
        """
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Full name is required.", {"name": "required"})

        if not isinstance(email, str):
            raise ValidationError("Invalid email format.", {"email": "invalid"})
        email = email.strip()
        try:
            validate_email(email, check_deliverability=False)
        except EmailNotValidError:
            raise ValidationError("Invalid email format.", {"email": "invalid"})

        self._check_password(password)

        try:
            role = UserRole(role) if role else UserRole.AUTHOR
        except ValueError:
            raise ValidationError("Invalid role.", {"role": "invalid"})
        if role not in SELF_SERVICE_ROLES:
            raise ValidationError("Invalid role.", {"role": "invalid"})

        if await self.find_by_email(email):
            raise ConflictError("Email already registered.")

        user = User(
            name=name.strip(),
            email=email,
            password_hash=hash_password(password),
            role=role,
        )
        try:
            await self.metadata.insert(Collections.USERS, user.id, user.to_record())
        except DuplicateKeyError:
            raise ConflictError("Email already registered.")

        logger.info(f"Registered user {user.id} ({user.role.value})")

        try:
            await self.email_service.send_welcome(user.email, user.name)
        except Exception:
            logger.exception(f"Welcome email to {user.email} failed")

        return user

    async def authenticate(self, email, password) -> User | None:
        """The user for these credentials, or None."""
        if not isinstance(email, str) or not isinstance(password, str):
            return None
        user = await self.find_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            return None
        return user

    # =========================================================================
    # Profile
    # =========================================================================

    async def update_profile(
        self,
        user_id: str,
        name: str | None = None,
        bio: str | None = None,
    ) -> User:
        user = await self.get(user_id)
        if user is None:
            raise NotFoundError("User not found")

        if name is not None:
            if not name.strip():
                raise ValidationError("Full name is required.", {"name": "required"})
            user.name = name.strip()
        if bio is not None:
            user.bio = bio

        await self._save(user)
        return user

    async def set_avatar(
        self,
        user_id: str,
        filename: str,
        data: bytes,
        content_type: str,
    ) -> User:
        """Upload a new avatar and drop the previous one."""
        user = await self.get(user_id)
        if user is None:
            raise NotFoundError("User not found")

        folder = f"avatars/{user.id}"
        previous = user.avatar
        user.avatar = await upload_image(self.content, folder, filename, data, content_type)
        await self._save(user)

        await delete_blob(self.content, previous, folder)
        return user

    # =========================================================================
    # Password Reset
    # =========================================================================

    async def create_password_reset(self, email) -> str | None:
        """
        Store a reset token on the account and email the link.

        Returns None for unknown emails; callers answer identically either
        way so accounts cannot be enumerated.
        """
        if not isinstance(email, str):
            raise ValidationError("Valid email is required.", {"email": "invalid"})
        email = email.strip()
        try:
            validate_email(email, check_deliverability=False)
        except EmailNotValidError:
            raise ValidationError("Valid email is required.", {"email": "invalid"})

        user = await self.find_by_email(email)
        if user is None:
            logger.info("Password reset requested for unknown email")
            return None

        token = generate_token()
        user.reset_password_token = token
        user.reset_password_expires = utc_now() + timedelta(
            hours=self.settings.password_reset_expire_hours
        )
        await self._save(user)

        try:
            await self.email_service.send_password_reset(user.email, token)
        except Exception:
            logger.exception(f"Password reset email to {user.email} failed")

        return token

    async def reset_password(self, token, password) -> User:
        if not isinstance(token, str) or not token:
            raise ParameterError("Reset token is required.")
        self._check_password(password)

        data = await self.metadata.find_one(Collections.USERS, {"reset_password_token": token})
        user = User.model_validate(data) if data else None
        if (
            user is None
            or user.reset_password_expires is None
            or user.reset_password_expires <= utc_now()
        ):
            raise ParameterError("Invalid or expired token")

        user.password_hash = hash_password(password)
        user.reset_password_token = None
        user.reset_password_expires = None
        await self._save(user)

        logger.info(f"Password reset for user {user.id}")
        return user


# =============================================================================
# Blob helpers (shared with memoir cover images)
# =============================================================================


async def upload_image(
    content: ContentStorage,
    folder: str,
    filename: str | None,
    data: bytes,
    content_type: str | None,
) -> str:
    """Store an uploaded image under ``folder`` with a fresh name; return its URL."""
    if not content_type or not content_type.startswith("image/"):
        raise ValidationError("Only image uploads are allowed.", {"file": "not an image"})
    if not data:
        raise ValidationError("Uploaded file is empty.", {"file": "empty"})

    suffix = PurePosixPath(filename or "").suffix.lower()
    key = f"{folder}/{generate_id('img')}{suffix}"
    return await content.put(key, data, content_type)


async def delete_blob(content: ContentStorage, url: str | None, folder: str) -> None:
    """
    Best-effort removal of a previously uploaded blob.

    Only keys inside ``folder`` are removed. Stored URLs can be edited by
    their owner, so anything pointing elsewhere is left alone.
    """
    if not url:
        return
    key = content.key_for_url(url)
    if key is None:
        return
    parts = PurePosixPath(key).parts
    if ".." in parts or not key.startswith(f"{folder}/"):
        logger.warning(f"Not deleting {key}: outside {folder}")
        return
    try:
        await content.delete(key)
    except (OSError, ValueError) as e:
        logger.warning(f"Could not delete old upload {key}: {e}")
