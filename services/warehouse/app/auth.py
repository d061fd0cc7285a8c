"""
Authentication and authorization utilities for the Warehouse service.

Validates JWT tokens issued by the Users service and performs the role
checks every core operation runs before touching stock.
"""
import enum
import logging
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel

from .config import SECRET_KEY, ALGORITHM
from .exceptions import Unauthorized

logger = logging.getLogger(__name__)

# Security scheme for JWT bearer tokens
security = HTTPBearer()


class Role(str, enum.Enum):
    """Roles known to the warehouse."""
    ADMIN = "admin"
    RIDER = "rider"


class CurrentUser(BaseModel):
    """Current authenticated user information."""
    id: int
    email: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> CurrentUser:
    """
    FastAPI dependency to get the current authenticated user from JWT token.

    Args:
        credentials: HTTP Authorization credentials (injected)

    Returns:
        Current authenticated user information

    Raises:
        HTTPException: 401 if token is invalid
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(credentials.credentials, SECRET_KEY, algorithms=[ALGORITHM])
        user_id_str: str = payload.get("sub")
        email: str = payload.get("email")
        role: str = payload.get("role")

        if user_id_str is None or email is None or role is None:
            raise credentials_exception

        return CurrentUser(id=int(user_id_str), email=email, role=role)
    except (JWTError, ValueError) as e:
        logger.error(f"JWT validation error: {e}")
        raise credentials_exception


def authorize_admin(principal: CurrentUser) -> None:
    """
    Require the admin role.

    Raises:
        Unauthorized: if the principal is not an admin
    """
    if not principal.is_admin:
        raise Unauthorized("Admin privileges required")


def authorize_rider(principal: CurrentUser, rider_id: int) -> None:
    """
    Require that the principal is the rider identified by ``rider_id``.

    Raises:
        Unauthorized: if the principal is not a rider or acts for another rider
    """
    if principal.role != Role.RIDER.value:
        raise Unauthorized("Rider privileges required")
    if principal.id != rider_id:
        raise Unauthorized("Riders may only act on their own inventory")


def authorize_admin_or_self(principal: CurrentUser, rider_id: int) -> None:
    """Allow admins, or the rider reading their own data."""
    if principal.is_admin:
        return
    authorize_rider(principal, rider_id)
