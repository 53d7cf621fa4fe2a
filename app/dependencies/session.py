import logging
from typing import Annotated

from fastapi import Cookie, Depends, Header, Response

from app.services.session import SESSION_KEY, is_valid_session_id, new_session_id

logger = logging.getLogger(__name__)

# One year; the identifier should outlive any single room
SESSION_COOKIE_MAX_AGE = 60 * 60 * 24 * 365


async def get_session_id(
    response: Response,
    session_cookie: Annotated[str | None, Cookie(alias=SESSION_KEY)] = None,
    session_header: Annotated[str | None, Header(alias="X-Session-Id")] = None,
) -> str:
    """Resolve the caller's session identifier.

    Prefers the X-Session-Id header (non-browser clients), then the cookie.
    When neither carries a valid identifier a new one is generated and set as
    a long-lived cookie, so the browser keeps it for subsequent requests.
    """
    for candidate in (session_header, session_cookie):
        if is_valid_session_id(candidate):
            return candidate

    session_id = new_session_id()
    response.set_cookie(
        key=SESSION_KEY,
        value=session_id,
        max_age=SESSION_COOKIE_MAX_AGE,
        httponly=True,
        samesite="lax",
    )
    logger.debug("Issued new session cookie %s", session_id)
    return session_id


SessionId = Annotated[str, Depends(get_session_id)]
