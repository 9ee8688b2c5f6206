from typing import Optional

from structlog import get_logger

from credo.core.exceptions import InvalidRefreshTokenError, InvalidTokenError
from credo.domain.entities.refresh_token import RevocationReason
from credo.domain.services.auth.refresh_token_store import RefreshTokenStore
from credo.domain.services.auth.token import TokenService
from credo.domain.value_objects.tokens import SessionMeta, TokenPair

logger = get_logger(__name__)


class SessionService:
    """Login, refresh and logout on top of the token service and token store.

    Every refresh token is in one of these states: ``active``, ``rotated``
    (replaced by a newer token), ``revoked`` (logout or password change) or
    ``expired``. Only ``active`` tokens can be exchanged, and each exchange
    moves the presented token to ``rotated`` before the new pair exists, so a
    refresh token is single use.

    Security Features:
        - Refresh tokens are stored hashed and matched by hash verification.
        - Rotation revokes conditionally: of several concurrent refreshes of
          the same token only the one whose revocation takes effect gets a
          new pair.
        - Optional reuse detection: presenting a token that was already
          rotated revokes every session of the user.
        - Callers only ever see InvalidRefreshTokenError; why a token was
          rejected is never disclosed.

    Attributes:
        token_service (TokenService): Signs and verifies tokens.
        token_store (RefreshTokenStore): Persists refresh-token records.
        reuse_detection (bool): Revoke the token family on replay.
    """

    def __init__(
        self,
        token_service: TokenService,
        token_store: RefreshTokenStore,
        reuse_detection: bool = False,
    ):
        self.token_service = token_service
        self.token_store = token_store
        self.reuse_detection = reuse_detection

    async def create_session(
        self, user_id: str, email: str, meta: Optional[SessionMeta] = None
    ) -> TokenPair:
        """Mints a token pair and persists the refresh token as active.

        Args:
            user_id: The authenticated user.
            email: The user's email, carried in the tokens.
            meta: Request metadata recorded with the refresh token.

        Returns:
            TokenPair: The new tokens.

        Raises:
            DatabaseError: If the refresh token cannot be persisted; no tokens
                are returned in that case.
        """
        pair = self.token_service.sign_token_pair(user_id, email)
        await self.token_store.save(
            user_id, pair.refresh_token, meta, pair.refresh_expires_at, pair.refresh_jti
        )
        await logger.ainfo("Session created", user_id=user_id, jti=pair.refresh_jti)
        return pair

    async def refresh_session(
        self, raw_refresh_token: str, meta: Optional[SessionMeta] = None
    ) -> TokenPair:
        """Exchanges an active refresh token for a new pair.

        Steps:
        1. Verify the token's signature and claims.
        2. Find the user's active record matching the token.
        3. Revoke that record (reason ``rotated``), conditional on it still
           being active.
        4. Mint and persist a new pair.

        If step 4 fails the old token stays revoked and the error propagates;
        the user has to log in again.

        Args:
            raw_refresh_token: The presented refresh token.
            meta: Request metadata recorded with the new refresh token.

        Returns:
            TokenPair: The new tokens.

        Raises:
            InvalidRefreshTokenError: If the token is invalid, expired,
                revoked, already rotated, or lost a concurrent rotation.
        """
        try:
            claims = self.token_service.verify_refresh(raw_refresh_token)
        except InvalidTokenError as e:
            raise InvalidRefreshTokenError() from e

        record = await self.token_store.find_active_match(
            claims.subject_id, raw_refresh_token, record_id=claims.jti
        )
        if record is None:
            if self.reuse_detection:
                await self._contain_reuse(claims.subject_id, claims.jti, raw_refresh_token)
            logger.info("Refresh rejected: no active token matched", user_id=claims.subject_id)
            raise InvalidRefreshTokenError()

        if not await self.token_store.revoke(record.id, RevocationReason.ROTATED):
            logger.warning(
                "Refresh rejected: token rotated concurrently", user_id=claims.subject_id, jti=record.id
            )
            raise InvalidRefreshTokenError()

        pair = await self.create_session(claims.subject_id, claims.email, meta)
        await logger.ainfo(
            "Session refreshed", user_id=claims.subject_id, rotated_jti=record.id, jti=pair.refresh_jti
        )
        return pair

    async def _contain_reuse(self, user_id: str, jti: str, raw_token: str) -> None:
        record = await self.token_store.find_revoked_match(user_id, jti, raw_token)
        if record is None or record.revoked_reason != RevocationReason.ROTATED.value:
            return
        revoked = await self.token_store.revoke_all(user_id, RevocationReason.REUSE_DETECTED)
        await logger.awarning(
            "Rotated refresh token replayed; all sessions revoked",
            user_id=user_id,
            jti=jti,
            sessions_revoked=revoked,
        )

    async def terminate_session(self, user_id: str) -> int:
        """Revokes every active refresh token of the user (logout everywhere).

        Returns:
            int: The number of sessions revoked.
        """
        revoked = await self.token_store.revoke_all(user_id, RevocationReason.LOGOUT)
        await logger.ainfo("Sessions terminated", user_id=user_id, count=revoked)
        return revoked

    async def terminate_specific_session(self, record_id: str) -> bool:
        """Revokes a single refresh token by its ``jti``.

        Returns:
            bool: True if the session was active and is now revoked.
        """
        return await self.token_store.revoke(record_id, RevocationReason.LOGOUT)
