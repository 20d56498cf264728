"""Set and clear the httpOnly access and refresh token cookies."""

from __future__ import annotations

from fastapi import Response

from rbac.auth.middleware import ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE


def set_auth_cookies(
    response: Response,
    *,
    access_token: str,
    access_max_age: int,
    refresh_token: str | None = None,
    refresh_max_age: int = 0,
    secure: bool = False,
) -> None:
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        access_token,
        max_age=access_max_age,
        httponly=True,
        secure=secure,
        samesite="lax",
        path="/",
    )
    if refresh_token:
        response.set_cookie(
            REFRESH_TOKEN_COOKIE,
            refresh_token,
            max_age=refresh_max_age,
            httponly=True,
            secure=secure,
            samesite="lax",
            path="/",
        )


def clear_auth_cookies(response: Response, *, secure: bool = False) -> None:
    for name in (ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE):
        response.delete_cookie(name, path="/", secure=secure, httponly=True, samesite="lax")
