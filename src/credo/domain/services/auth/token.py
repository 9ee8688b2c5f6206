import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Mapping

from jwt import PyJWTError, decode as jwt_decode, encode as jwt_encode
from structlog import get_logger

from credo.core.exceptions import InvalidTokenError
from credo.domain.value_objects.tokens import AccessClaims, RefreshClaims, TokenPair

logger = get_logger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"
REQUIRED_CLAIMS = ["sub", "email", "iat", "exp", "jti", "iss", "aud"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Service for signing and verifying JWT access and refresh tokens.

    Access and refresh tokens are signed with HMAC under two distinct secrets
    and carry distinct lifetimes. Both carry ``sub``, ``email``, ``iat``,
    ``exp``, ``jti``, issuer and audience, plus a ``type`` claim so that one
    kind can never be accepted as the other.

    Verification fails closed: a malformed, expired, mis-keyed, wrong-type or
    claim-incomplete token raises :class:`InvalidTokenError` and no partial
    payload is ever returned.

    The service is stateless; persistence of refresh tokens belongs to
    :class:`~credo.domain.services.auth.refresh_token_store.RefreshTokenStore`.

    Attributes:
        access_lifetime (timedelta): Lifetime of access tokens.
        refresh_lifetime (timedelta): Lifetime of refresh tokens.
        reset_lifetime (timedelta): Lifetime of password reset links.
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_lifetime: timedelta,
        refresh_lifetime: timedelta,
        reset_lifetime: timedelta,
        issuer: str = "credo",
        audience: str = "credo:api",
        algorithm: str = "HS256",
        leeway_seconds: int = 0,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._access_secret = access_secret
        self._refresh_secret = refresh_secret
        self.access_lifetime = access_lifetime
        self.refresh_lifetime = refresh_lifetime
        self.reset_lifetime = reset_lifetime
        self.issuer = issuer
        self.audience = audience
        self.algorithm = algorithm
        self.leeway = timedelta(seconds=leeway_seconds)
        self._clock = clock

    @classmethod
    def from_settings(cls, settings) -> "TokenService":
        return cls(
            access_secret=settings.JWT_ACCESS_SECRET.get_secret_value(),
            refresh_secret=settings.JWT_REFRESH_SECRET.get_secret_value(),
            access_lifetime=settings.access_token_lifetime,
            refresh_lifetime=settings.refresh_token_lifetime,
            reset_lifetime=settings.password_reset_lifetime,
            issuer=settings.JWT_ISSUER,
            audience=settings.JWT_AUDIENCE,
            algorithm=settings.JWT_ALGORITHM,
            leeway_seconds=settings.JWT_LEEWAY_SECONDS,
        )

    def _encode(
        self, user_id: str, email: str, token_type: str, lifetime: timedelta, secret: str, jti: str
    ) -> tuple[str, datetime]:
        issued_at = self._clock()
        expires_at = issued_at + lifetime
        payload = {
            "sub": str(user_id),
            "email": email,
            "type": token_type,
            "iss": self.issuer,
            "aud": self.audience,
            "iat": issued_at,
            "exp": expires_at,
            "jti": jti,
        }
        return jwt_encode(payload, secret, algorithm=self.algorithm), expires_at

    def sign_token_pair(self, user_id: str, email: str) -> TokenPair:
        """Signs a new access/refresh token pair.

        Each token gets its own random ``jti``. The refresh ``jti`` doubles as
        the id of the record that will store the token's hash.

        Args:
            user_id: The subject.
            email: The subject's email, carried as a claim.

        Returns:
            TokenPair: Both tokens plus the refresh ``jti`` and expiry.
        """
        access_token, _ = self._encode(
            user_id, email, ACCESS_TOKEN_TYPE, self.access_lifetime, self._access_secret, uuid.uuid4().hex
        )
        refresh_jti = uuid.uuid4().hex
        refresh_token, refresh_expires_at = self._encode(
            user_id, email, REFRESH_TOKEN_TYPE, self.refresh_lifetime, self._refresh_secret, refresh_jti
        )
        logger.debug("Token pair signed", user_id=user_id, jti=refresh_jti)
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            refresh_jti=refresh_jti,
            refresh_expires_at=refresh_expires_at,
        )

    def _decode(self, raw_token: str, secret: str, expected_type: str) -> Dict[str, Any]:
        if not isinstance(raw_token, str) or not raw_token:
            raise InvalidTokenError()
        try:
            payload: Mapping[str, Any] = jwt_decode(
                raw_token,
                secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                audience=self.audience,
                leeway=self.leeway,
                options={"require": REQUIRED_CLAIMS},
            )
        except PyJWTError as e:
            logger.info("JWT validation failed", token_type=expected_type, error_type=type(e).__name__)
            raise InvalidTokenError() from e

        if payload.get("type") != expected_type:
            logger.warning("JWT of unexpected type presented", token_type=expected_type)
            raise InvalidTokenError()
        for claim in ("sub", "email", "jti"):
            if not isinstance(payload.get(claim), str) or not payload[claim]:
                raise InvalidTokenError()
        return dict(payload)

    def verify_refresh(self, raw_token: str) -> RefreshClaims:
        """Verifies a refresh token's signature, expiry and claims.

        Args:
            raw_token: The encoded refresh token.

        Returns:
            RefreshClaims: The subject id, email and ``jti``.

        Raises:
            InvalidTokenError: If the token is not a valid refresh token.
        """
        payload = self._decode(raw_token, self._refresh_secret, REFRESH_TOKEN_TYPE)
        return RefreshClaims(subject_id=payload["sub"], email=payload["email"], jti=payload["jti"])

    def verify_access(self, raw_token: str) -> AccessClaims:
        """Verifies an access token's signature, expiry and claims.

        Raises:
            InvalidTokenError: If the token is not a valid access token.
        """
        payload = self._decode(raw_token, self._access_secret, ACCESS_TOKEN_TYPE)
        return AccessClaims(
            subject_id=payload["sub"],
            email=payload["email"],
            jti=payload["jti"],
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )

    def refresh_expiry_instant(self) -> datetime:
        """Returns when a refresh token signed now would expire."""
        return self._clock() + self.refresh_lifetime

    def reset_expiry_instant(self) -> datetime:
        """Returns when a password reset link issued now would expire."""
        return self._clock() + self.reset_lifetime

    @staticmethod
    def generate_opaque_secret(byte_length: int = 32) -> str:
        """Returns ``byte_length`` random bytes from the CSPRNG, hex-encoded."""
        return secrets.token_hex(byte_length)
