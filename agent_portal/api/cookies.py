"""Auth cookie issuance and clearing."""

from starlette.responses import Response

AUTH_COOKIE = "auth-token"
SESSION_COOKIE = "session-id"


def _set(response: Response, key: str, value: str, max_age: int, secure: bool) -> None:
    response.set_cookie(
        key=key,
        value=value,
        max_age=max_age,
        path="/",
        secure=secure,
        httponly=True,
        samesite="strict",
    )


def set_auth_cookies(
    response: Response,
    token: str,
    session_id: str,
    max_age: int,
    secure: bool,
) -> None:
    """Attach the auth-token and session-id cookies.

    Both are HttpOnly, Path=/, SameSite=Strict, with Secure outside
    development, and share the session lifetime as Max-Age.
    """
    _set(response, AUTH_COOKIE, token, max_age, secure)
    _set(response, SESSION_COOKIE, session_id, max_age, secure)


def clear_auth_cookies(response: Response, secure: bool) -> None:
    """Expire both auth cookies (empty value, Max-Age=0)."""
    _set(response, AUTH_COOKIE, "", 0, secure)
    _set(response, SESSION_COOKIE, "", 0, secure)
