"""
Cookie helpers for the access token.

Browsers get the token as an HttpOnly cookie; API clients use the
Authorization header instead.
"""
from typing import Optional
from fastapi import Response
from starlette.requests import Request

from marketplace.core.config import settings

ACCESS_TOKEN_COOKIE = "access_token"


def set_auth_cookie(response: Response, access_token: str) -> None:
    response.set_cookie(
        key=ACCESS_TOKEN_COOKIE,
        value=access_token,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        path="/",
    )


def clear_auth_cookie(response: Response) -> None:
    response.delete_cookie(key=ACCESS_TOKEN_COOKIE, path="/")


def get_access_token_from_cookie(request: Request) -> Optional[str]:
    """Extract access token from cookie."""
    return request.cookies.get(ACCESS_TOKEN_COOKIE)
