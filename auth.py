from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel
from datetime import datetime, timedelta, UTC

import config
from errors import Unauthenticated, Unauthorized
from manager import CredentialStore
from models import User

# OAuth2 scheme
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")

class TokenData(BaseModel):
    user_id: str
    role: str

def create_access_token(user: User, expires_delta: timedelta | None = None) -> str:
    """Create a JWT access token bound to a user id and role."""
    expire = datetime.now(UTC) + (expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {"sub": user.id, "role": user.role, "exp": expire}
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)

def decode_access_token(token: str) -> TokenData:
    """Validate a token's signature and expiry and return its claims."""
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except ExpiredSignatureError:
        raise Unauthenticated("Token has expired")
    except JWTError:
        raise Unauthenticated()
    user_id = payload.get("sub")
    if user_id is None:
        raise Unauthenticated()
    return TokenData(user_id=user_id, role=payload.get("role", "member"))

def get_credential_store(request: Request) -> CredentialStore:
    return request.app.state.users

def get_current_user(
    token: str = Depends(oauth2_scheme),
    users: CredentialStore = Depends(get_credential_store),
) -> User:
    """Retrieve the current authenticated user from a JWT token."""
    token_data = decode_access_token(token)
    user = users.find_by_id(token_data.user_id)
    if user is None:
        raise Unauthenticated("User not found")
    return user

def require_role(*roles: str):
    """Build a dependency that admits only users holding one of ``roles``."""
    def checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise Unauthorized(role=current_user.role)
        return current_user
    return checker

admin_required = require_role("admin")
