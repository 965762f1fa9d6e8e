import logging
from datetime import UTC, datetime, timedelta

import jwt

from chatrelay.api.schemas.auth import Principal
from chatrelay.core.settings import Settings

logger = logging.getLogger(__name__)


class IdentityService:
    """Verifies identity-provider session tokens (signed JWTs) into principals."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def issue_access_token(self, principal: Principal) -> str:
        now = datetime.now(UTC)
        payload = {
            "sub": principal.user_id,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=self._settings.auth_access_token_ttl_seconds)).timestamp()),
        }
        if principal.session_id:
            payload["sid"] = principal.session_id
        if self._settings.auth_jwt_issuer:
            payload["iss"] = self._settings.auth_jwt_issuer
        logger.debug("issuing access token", extra={"user_id": principal.user_id})
        return jwt.encode(payload, self._settings.auth_jwt_secret, algorithm=self._settings.auth_jwt_algorithm)

    def principal_from_token(self, token: str | None) -> Principal | None:
        if not token:
            return None
        try:
            payload = jwt.decode(
                token,
                self._settings.auth_jwt_secret,
                algorithms=[self._settings.auth_jwt_algorithm],
                issuer=self._settings.auth_jwt_issuer,
                options={"require": ["sub", "exp"]},
            )
        except jwt.PyJWTError:
            logger.info("session token validation failed")
            return None
        return Principal(user_id=str(payload["sub"]), session_id=payload.get("sid"))
