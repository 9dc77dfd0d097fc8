"""JWT verification utilities.

Access tokens are HS256 signed with a shared secret and carry the caller's
application role either in ``app_metadata.role`` or in the top level
``role`` claim.
"""

import jwt

from labforms.core.config import settings
from labforms.schemas.auth import JWTClaims
from labforms.utils.logging import get_logger

LOGGER = get_logger(__name__)


class JWTVerifier:
    """JWT verifier for HS256 access tokens."""

    def __init__(self, jwt_secret: str, audience: str = "authenticated"):
        """Initialize JWT verifier.

        Args:
            jwt_secret: Shared secret used to sign tokens
            audience: Expected ``aud`` claim
        """
        self.jwt_secret = jwt_secret
        self.audience = audience

    async def verify_token(self, token: str) -> JWTClaims:
        """Verify and decode a JWT token.

        Args:
            token: JWT access token from Authorization header

        Returns:
            Decoded and validated JWT claims

        Raises:
            jwt.InvalidTokenError: If token is invalid or expired
        """
        if not self.jwt_secret:
            raise jwt.InvalidTokenError("JWT_SECRET is not configured")

        try:
            payload = jwt.decode(
                token,
                self.jwt_secret,
                algorithms=["HS256"],
                audience=self.audience,
                options={
                    "verify_exp": True,
                    "verify_iat": True,
                    "require": ["sub", "email", "exp", "iat"]
                }
            )
            claims = JWTClaims(**payload)

            LOGGER.debug(f"Successfully verified token for user: {claims.sub}")
            return claims

        except jwt.ExpiredSignatureError as e:
            LOGGER.warning(f"Token expired: {e}")
            raise jwt.InvalidTokenError("Token has expired") from e
        except jwt.InvalidSignatureError as e:
            LOGGER.warning(f"Invalid signature: {e}")
            raise jwt.InvalidTokenError("Invalid token signature") from e
        except jwt.InvalidTokenError as e:
            LOGGER.warning(f"Invalid token: {e}")
            raise
        except ValueError as e:
            LOGGER.warning(f"Token claims failed validation: {e}")
            raise jwt.InvalidTokenError("Token claims are malformed") from e

    @staticmethod
    def application_role(claims: JWTClaims) -> str:
        """Role used for authorization decisions."""
        if claims.app_metadata and claims.app_metadata.get("role"):
            return str(claims.app_metadata["role"])
        return claims.role


# Global JWT verifier instance
jwt_verifier = JWTVerifier(
    jwt_secret=settings.auth.jwt_secret,
    audience=settings.auth.jwt_audience,
)
