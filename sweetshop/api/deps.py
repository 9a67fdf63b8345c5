"""
Access gate for the API routers.

Two stages, both FastAPI dependencies that run before the route body (and so
before any service call):

1. ``get_current_user`` verifies the bearer token and yields its claims, or
   raises Unauthorized.
2. ``require_admin`` builds on stage 1 and raises Forbidden for non-admins.

An admin-only route therefore answers 401 to an anonymous caller and 403 only
to an authenticated non-admin. Neither stage touches the database: the admin
flag is trusted as issued in the token for the token's lifetime.
"""
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from sweetshop.errors import Forbidden, Unauthorized
from sweetshop.security import Principal, decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Principal:
    if credentials is None or not credentials.credentials:
        raise Unauthorized("Access denied. No token provided.")
    return decode_access_token(credentials.credentials)


def require_admin(user: Principal = Depends(get_current_user)) -> Principal:
    if not user.is_admin:
        raise Forbidden("Access denied. Admin privileges required.")
    return user
