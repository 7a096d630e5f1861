from __future__ import annotations

import asyncio
import logging

import jwt
from jwt import PyJWKClient

from marketplace_chat.application.dto.principal import Principal
from marketplace_chat.application.exceptions import InvalidCredentialError
from marketplace_chat.infrastructure.auth.claims import principal_from_claims

logger = logging.getLogger(__name__)


class JWKSVerifier:
    """Verify JWTs using a remote JWKS endpoint."""

    def __init__(self, jwks_url: str, user_claim: str = "userId") -> None:
        self._jwks_url = jwks_url
        self._jwk_client = PyJWKClient(jwks_url)
        self._user_claim = user_claim

    async def verify(self, token: str) -> Principal:
        try:
            # PyJWKClient fetches over blocking HTTP
            signing_key = await asyncio.to_thread(
                self._jwk_client.get_signing_key_from_jwt, token,
            )
            payload = jwt.decode(
                token,
                signing_key.key,
                algorithms=["RS256", "ES256"],
            )
        except jwt.PyJWTError as exc:
            logger.debug("JWKS verification failed against %s", self._jwks_url)
            raise InvalidCredentialError() from exc
        return principal_from_claims(payload, self._user_claim)
