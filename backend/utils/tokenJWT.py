# utils/tokenJWT.py
import logging
from calendar import timegm
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional, Tuple

from jose import jwt, JWTError

from config import settings
from models.users import RoleName, User
from utils.keys import KeyProvider, get_key_provider

logger = logging.getLogger(__name__)

ALGORITHM = "RS256"


# Claims recovered from a verified token
@dataclass(frozen=True)
class TokenClaims:
    username: Optional[str]
    user_id: Optional[str]
    roles: Tuple[str, ...] = field(default_factory=tuple)
    lab_code: Optional[str] = None


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime


class TokenIssuer:
    """Signs access tokens for fully loaded users."""

    def __init__(self, keys: KeyProvider, issuer: str, expiration_minutes: int):
        if expiration_minutes < 1:
            raise ValueError("expiration_minutes must be at least 1")
        self._private_pem = keys.private_pem
        self._issuer = issuer
        self._ttl = timedelta(minutes=expiration_minutes)

    def build_claims(self, user: User, now: datetime) -> dict:
        roles = user.role_names
        claims = {
            "iss": self._issuer,
            "sub": user.username,
            "iat": now,
            "exp": now + self._ttl,
            "userId": str(user.external_id),
            "roles": roles,
        }
        # Exact, case-sensitive match on the sorted names
        if RoleName.LAB_TECH.value in roles:
            claims["labCode"] = user.lab_code
        return claims

    def issue(self, user: User) -> IssuedToken:
        # Whole seconds, so expires_at equals the exp claim inside the token
        now = datetime.now(timezone.utc).replace(microsecond=0)
        claims = self.build_claims(user, now)
        expires_at = claims["exp"]
        # jose rewrites datetime claims to epoch seconds in place
        token = jwt.encode(claims, self._private_pem, algorithm=ALGORITHM, headers={"typ": "JWT"})
        return IssuedToken(token=token, expires_at=expires_at)


class TokenVerifier:
    """
    Checks a compact token and returns its claims, or None.

    Gates, in order: well-formed header with typ JWT, RS256 signature against
    the configured public key, issuer (when one is expected), expiry strictly
    in the future. Nothing here raises: every failure collapses to None.
    """

    def __init__(self, public_pem: str, expected_issuer: Optional[str] = None, leeway_seconds: int = 0):
        self._public_pem = public_pem
        self._expected_issuer = expected_issuer or None
        self._leeway = leeway_seconds

    def verify(self, token: str) -> Optional[TokenClaims]:
        try:
            header = jwt.get_unverified_header(token)
            if header.get("typ") != "JWT":
                logger.debug("Rejected token: header typ is not JWT")
                return None

            payload = jwt.decode(
                token,
                self._public_pem,
                algorithms=[ALGORITHM],
                issuer=self._expected_issuer,
                options={
                    "verify_aud": False,
                    "verify_iss": self._expected_issuer is not None,
                    "require_exp": True,
                    "leeway": self._leeway,
                },
            )

            exp = payload.get("exp")
            now = timegm(datetime.now(timezone.utc).utctimetuple())
            if not isinstance(exp, (int, float)) or exp + self._leeway <= now:
                logger.debug("Rejected token: missing or past expiry")
                return None

            roles = payload.get("roles")
            if roles is None:
                roles = []
            if not isinstance(roles, list):
                logger.debug("Rejected token: roles claim is not a list")
                return None

            return TokenClaims(
                username=payload.get("sub"),
                user_id=_str_or_none(payload.get("userId")),
                roles=tuple(str(r) for r in roles),
                lab_code=_str_or_none(payload.get("labCode")),
            )
        except JWTError as e:
            logger.debug(f"Rejected token: {e}")
            return None
        except Exception:
            # Fail closed on anything unexpected
            logger.debug("Rejected token: unexpected error during verification", exc_info=True)
            return None


def _str_or_none(value) -> Optional[str]:
    return None if value is None else str(value)


@lru_cache()
def get_token_issuer() -> TokenIssuer:
    return TokenIssuer(get_key_provider(), settings.JWT_ISSUER, settings.JWT_EXPIRATION_MINUTES)


@lru_cache()
def get_token_verifier() -> TokenVerifier:
    return TokenVerifier(
        get_key_provider().public_pem,
        expected_issuer=settings.JWT_ISSUER,
        leeway_seconds=settings.JWT_ALLOWED_SKEW_SECONDS,
    )
