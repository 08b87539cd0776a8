# backend/services/auth.py
import logging

from sqlalchemy.orm import Session

from models.users import RoleName, User
from schemas.user import LoginResponse
from utils.errors import UnauthorizedError
from utils.hashing import verify_password
from utils.tokenJWT import TokenIssuer

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
ACCOUNT_INACTIVE = "Account inactive"


def login(db: Session, issuer: TokenIssuer, username: str, password: str) -> LoginResponse:
    """
    Check credentials and issue an access token.

    Unknown usernames and wrong passwords share one message so the response
    does not reveal which accounts exist. A disabled account gets its own
    message, and only once the password has been checked.
    """
    user = db.query(User).filter(User.username == username).first()

    if not user or not verify_password(password, user.password_hash):
        logger.warning(f"Failed login for username {username!r}")
        raise UnauthorizedError(INVALID_CREDENTIALS)

    if not user.active:
        logger.warning(f"Login refused for inactive account {username!r}")
        raise UnauthorizedError(ACCOUNT_INACTIVE)

    issued = issuer.issue(user)
    roles = user.role_names
    logger.info(f"User {user.username} logged in with roles {roles}")

    return LoginResponse(
        token=issued.token,
        expires_at=issued.expires_at,
        user_id=str(user.external_id),
        username=user.username,
        roles=roles,
        lab_code=user.lab_code if RoleName.LAB_TECH.value in roles else None,
    )
