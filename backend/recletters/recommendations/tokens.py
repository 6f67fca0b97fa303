"""Secure access tokens for recommenders.

A token is bound to exactly one request, issued once, and never reused. It is
the only credential an external recommender ever presents.
"""

import logging
import secrets
from datetime import timedelta
from uuid import UUID

from sqlalchemy.orm import Session

from .errors import ConflictError, ExpiredError, NotFoundError
from .models import RecommendationRequest
from .timeutils import Clock, as_utc, utcnow

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32  # 256 bits of randomness


def generate_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


class TokenService:
    def __init__(self, db: Session, clock: Clock = utcnow) -> None:
        self._db = db
        self._clock = clock

    def issue(self, request_id: UUID, ttl: timedelta) -> str:
        """Issue the request's token, valid until now + ttl.

        The write only succeeds while no token is set, so a second call for
        the same request raises ConflictError instead of rotating the link.
        Uniqueness across requests is enforced by the unique index.
        """
        expires_at = self._clock() + ttl
        token = generate_token()
        updated = (
            self._db.query(RecommendationRequest)
            .filter(
                RecommendationRequest.id == request_id,
                RecommendationRequest.secure_token.is_(None),
            )
            .update(
                {"secure_token": token, "token_expires_at": expires_at},
                synchronize_session=False,
            )
        )
        if not updated:
            exists = self._db.query(RecommendationRequest.id).filter(RecommendationRequest.id == request_id).first()
            if exists is None:
                raise NotFoundError(f"Recommendation request {request_id} not found")
            raise ConflictError(f"Token already issued for request {request_id}")

        self._refresh(request_id)
        logger.info("Issued token for request %s (expires %s)", request_id, expires_at.isoformat())
        return token

    def resolve(self, token: str) -> UUID:
        """Map a token to its request id. Read-only: never extends expiry."""
        if not token:
            raise NotFoundError("Empty token")
        row = (
            self._db.query(RecommendationRequest.id, RecommendationRequest.token_expires_at)
            .filter(RecommendationRequest.secure_token == token)
            .first()
        )
        if row is None:
            raise NotFoundError("Unknown recommendation token")
        request_id, expires_at = row
        if expires_at is None or self._clock() > as_utc(expires_at):
            raise ExpiredError(f"Token for request {request_id} expired")
        return request_id

    def _refresh(self, request_id: UUID) -> None:
        request = self._db.get(RecommendationRequest, request_id)
        if request is not None:
            self._db.refresh(request)
