"""
Identity Core - Authentication and user management.
"""

from taskgate.kernel.identity.password import PasswordHasher, verify_password, hash_password
from taskgate.kernel.identity.jwt import JWTManager, AccessToken, AccessTokenPayload
from taskgate.kernel.identity.identity_service import IdentityService, DuplicateUserError

__all__ = [
    "PasswordHasher",
    "verify_password",
    "hash_password",
    "JWTManager",
    "AccessToken",
    "AccessTokenPayload",
    "IdentityService",
    "DuplicateUserError",
]
