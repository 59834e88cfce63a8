"""
JWT access tokens for authentication.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError

from taskgate.config import get_settings


class AccessTokenPayload(BaseModel):
    """JWT access token payload."""

    sub: str  # User ID
    email: str
    username: str
    role: Optional[str] = None
    organization_id: Optional[str] = None
    exp: datetime
    iat: datetime
    jti: str


class AccessToken(BaseModel):
    """Issued bearer token."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int  # Seconds until the token expires


class JWTManager:
    """
    JWT token creation and verification.

    Tokens identify the user only; role and permissions are always re-read
    from the database on each request, so the ``role`` claim is informational.
    """

    def __init__(
        self,
        secret_key: Optional[str] = None,
        algorithm: Optional[str] = None,
        access_token_expire_minutes: Optional[int] = None,
    ):
        settings = get_settings()
        self.secret_key = secret_key or settings.secret_key
        self.algorithm = algorithm or settings.algorithm
        self.access_token_expire_minutes = (
            access_token_expire_minutes or settings.access_token_expire_minutes
        )

    def create_access_token(
        self,
        user_id: uuid.UUID,
        email: str,
        username: str,
        role: Optional[str] = None,
        organization_id: Optional[uuid.UUID] = None,
        expires_delta: Optional[timedelta] = None,
    ) -> AccessToken:
        """
        Create a new access token.

        Args:
            user_id: User's unique identifier
            email: User's email
            username: User's username
            role: Role kind at issue time
            organization_id: User's organization
            expires_delta: Optional custom expiration time

        Returns:
            AccessToken with the encoded JWT and its lifetime
        """
        now = datetime.now(timezone.utc)
        lifetime = expires_delta or timedelta(minutes=self.access_token_expire_minutes)

        payload = {
            "sub": str(user_id),
            "email": email,
            "username": username,
            "role": role,
            "organization_id": str(organization_id) if organization_id else None,
            "exp": now + lifetime,
            "iat": now,
            "jti": str(uuid.uuid4()),
            "type": "access",
        }

        token = jwt.encode(payload, self.secret_key, algorithm=self.algorithm)
        return AccessToken(access_token=token, expires_in=int(lifetime.total_seconds()))

    def verify_access_token(self, token: str) -> Optional[AccessTokenPayload]:
        """
        Verify and decode an access token.

        Returns:
            AccessTokenPayload if valid, None otherwise
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
            )
        except JWTError:
            return None

        if payload.get("type") != "access":
            return None

        try:
            return AccessTokenPayload(
                sub=payload["sub"],
                email=payload["email"],
                username=payload["username"],
                role=payload.get("role"),
                organization_id=payload.get("organization_id"),
                exp=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
                iat=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                jti=payload["jti"],
            )
        except (KeyError, TypeError, ValidationError):
            return None
