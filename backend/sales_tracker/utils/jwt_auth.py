"""
Bearer-token authentication.

Tokens carry the user id plus the role and roster employee the user had
when signing in; the user row is still checked on every request so
deactivated accounts and role changes take effect before expiry.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from sales_tracker.database import get_db
from sales_tracker.config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_HOURS
from sales_tracker.models.user import User

security = HTTPBearer()


class TokenError(Exception):
    pass


def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    issued_at = datetime.now(timezone.utc)
    claims = {
        "sub": str(user.id),
        "role": user.role,
        "employee_id": user.employee_id,
        "iat": issued_at,
        "exp": issued_at + (expires_delta or timedelta(hours=ACCESS_TOKEN_EXPIRE_HOURS)),
    }
    return jwt.encode(claims, SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verified claims of a token; TokenError when invalid, expired or without subject"""
    try:
        claims = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        raise TokenError(str(e)) from e
    if not str(claims.get("sub", "")).isdigit():
        raise TokenError("token without user id")
    return claims


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Se requiere autenticación. Vuelve a iniciar sesión",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    try:
        claims = decode_access_token(credentials.credentials)
    except TokenError:
        raise _unauthorized()

    user = db.query(User).filter(User.id == int(claims["sub"])).first()
    # a role change invalidates the tokens issued before it
    if user is None or not user.is_active or user.role != claims.get("role"):
        raise _unauthorized()
    return user


async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != 'admin':
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No tienes permisos de administrador"
        )
    return current_user
