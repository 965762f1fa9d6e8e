from collections.abc import Iterator
import logging

from fastapi import HTTPException, Request, status

from chatrelay.api.schemas.auth import Principal
from chatrelay.core.settings import Settings
from chatrelay.dependency_injection import get_container
from chatrelay.services.contracts import IdentityServiceProtocol

logger = logging.getLogger(__name__)


def _session_token_candidates(request: Request, cookie_name: str) -> Iterator[tuple[str, str]]:
    """Yield ``(source, token)`` pairs in priority order: bearer header, then session cookie.

    Both carry the same identity-provider JWT; absent or non-bearer values are skipped.
    """
    scheme, _, credentials = (request.headers.get("authorization") or "").partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        yield "bearer", credentials.strip()
    cookie_token = request.cookies.get(cookie_name)
    if cookie_token:
        yield "cookie", cookie_token


async def get_optional_auth_context(request: Request) -> Principal | None:
    container = get_container(request)
    identity_service = container.resolve(IdentityServiceProtocol)
    cookie_name = container.resolve(Settings).auth_cookie_name

    for source, token in _session_token_candidates(request, cookie_name):
        principal = identity_service.principal_from_token(token)
        if principal is not None:
            logger.debug("caller authenticated", extra={"user_id": principal.user_id, "token_source": source})
            return principal
        logger.debug("session token rejected", extra={"token_source": source})
    return None


async def get_required_auth_context(request: Request) -> Principal:
    principal = await get_optional_auth_context(request)
    if principal is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="authentication required")
    return principal
