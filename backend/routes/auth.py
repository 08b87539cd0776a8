# backend/routes/auth.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from database import get_db
from schemas.common import ApiError
from schemas.user import LoginRequest, LoginResponse
from services import auth as auth_service
from utils.keys import get_key_provider
from utils.tokenJWT import TokenIssuer, get_token_issuer

router = APIRouter(tags=["Auth"])


# Authenticate user and issue an RS256 access token
@router.post(
    "/auth/login",
    response_model=LoginResponse,
    response_model_exclude_none=True,
    responses={401: {"model": ApiError, "description": "Invalid credentials or inactive account"}},
)
def login(
    payload: LoginRequest,
    db: Session = Depends(get_db),
    issuer: TokenIssuer = Depends(get_token_issuer),
):
    return auth_service.login(db, issuer, payload.username, payload.password)


# Public key set used by other services to verify our tokens
@router.get("/.well-known/jwks.json")
def jwks():
    return get_key_provider().jwks()
