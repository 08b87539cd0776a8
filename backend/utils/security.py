# backend/utils/security.py
"""
Authorization gate.

JWTAuthMiddleware runs the token verifier on every request carrying
"Authorization: Bearer <token>" and stores the resulting Principal on
request.state. It never rejects anything: a missing or bad token just leaves
the request anonymous. Route dependencies (get_current_principal,
role_required) decide between 401 and 403.
"""
from dataclasses import dataclass
from typing import Callable, FrozenSet, Optional

from fastapi import Depends, HTTPException, Request, status
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from models.users import RoleName
from utils.tokenJWT import TokenClaims, TokenVerifier, get_token_verifier

BEARER_PREFIX = "Bearer "
AUTHORITY_PREFIX = "ROLE_"


@dataclass(frozen=True)
class Principal:
    """Identity attached to a request once its token has been verified."""
    username: str
    user_id: Optional[str]
    authorities: FrozenSet[str]  # "ROLE_ADMIN", "ROLE_LAB_TECH"
    lab_code: Optional[str] = None

    @property
    def role_names(self) -> FrozenSet[str]:
        return frozenset(a[len(AUTHORITY_PREFIX):] for a in self.authorities if a.startswith(AUTHORITY_PREFIX))

    def has_role(self, role: RoleName) -> bool:
        return AUTHORITY_PREFIX + role.value in self.authorities

    @property
    def is_admin(self) -> bool:
        return self.has_role(RoleName.ADMIN)


def principal_from_claims(claims: TokenClaims) -> Optional[Principal]:
    if not claims.username:
        return None
    return Principal(
        username=claims.username,
        user_id=claims.user_id,
        authorities=frozenset(AUTHORITY_PREFIX + r for r in claims.roles),
        lab_code=claims.lab_code,
    )


class JWTAuthMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, verifier_factory: Callable[[], TokenVerifier] = get_token_verifier):
        super().__init__(app)
        self._verifier_factory = verifier_factory

    async def dispatch(self, request: Request, call_next):
        request.state.principal = None
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith(BEARER_PREFIX):
            token = auth_header[len(BEARER_PREFIX):].strip()
            # RSA verification is CPU bound, keep it off the event loop
            claims = await run_in_threadpool(self._verifier_factory().verify, token)
            if claims is not None:
                request.state.principal = principal_from_claims(claims)
        return await call_next(request)


def get_optional_principal(request: Request) -> Optional[Principal]:
    return getattr(request.state, "principal", None)


# Any authenticated caller
def get_current_principal(principal: Optional[Principal] = Depends(get_optional_principal)) -> Principal:
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return principal


# Dependency factory for role-based access control
def role_required(*allowed_roles: RoleName):
    def _checker(principal: Principal = Depends(get_current_principal)) -> Principal:
        if allowed_roles and not any(principal.has_role(r) for r in allowed_roles):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
        return principal
    return _checker
