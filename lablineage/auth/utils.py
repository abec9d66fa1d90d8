"""Bearer token helpers.

Tokens are issued by the identity service; this module only verifies them.
``create_access_token`` exists for tooling and tests that need a valid token.
"""

from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt
from pydantic import BaseModel

from lablineage.config import get_settings

settings = get_settings()


class TokenData(BaseModel):
    """Token payload data.

    Attributes:
        user_id: User's UUID.
        workspace_id: Workspace the token was issued for.
    """

    user_id: str
    workspace_id: str | None = None


def create_access_token(
    user_id: str,
    workspace_id: str,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token.

    Args:
        user_id: User's UUID.
        workspace_id: Workspace's UUID.
        expires_delta: Optional custom expiration time.

    Returns:
        str: Encoded JWT token.
    """
    if expires_delta:
        expire = datetime.now(UTC) + expires_delta
    else:
        expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)

    to_encode = {
        "sub": user_id,
        "workspace_id": workspace_id,
        "exp": expire,
        "type": "access",
    }

    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_access_token(token: str) -> TokenData | None:
    """Decode and validate a JWT access token.

    Args:
        token: JWT token string.

    Returns:
        TokenData | None: Token data if valid, None otherwise.
    """
    try:
        payload = jwt.decode(
            token,
            settings.secret_key,
            algorithms=[settings.algorithm],
        )
    except JWTError:
        return None

    user_id: str | None = payload.get("sub")
    if user_id is None or payload.get("type") != "access":
        return None

    return TokenData(user_id=user_id, workspace_id=payload.get("workspace_id"))
