"""Pytest configuration and shared fixtures."""
import os
import sys
import tempfile
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwt

# Add backend root to path for imports
backend_root = Path(__file__).parent.parent
sys.path.insert(0, str(backend_root))


def generate_pem_pair(private_format=serialization.PrivateFormat.PKCS8):
    """Return (public SPKI PEM, private PEM) for a fresh 2048-bit RSA key."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = key.private_bytes(
        serialization.Encoding.PEM, private_format, serialization.NoEncryption()
    ).decode("ascii")
    public_pem = key.public_key().public_bytes(
        serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo
    ).decode("ascii")
    return public_pem, private_pem


# Settings are read once at import time, so the environment is prepared before any app module loads
PUBLIC_PEM, PRIVATE_PEM = generate_pem_pair()
_db_dir = tempfile.mkdtemp(prefix="labflow-tests-")
os.environ.update({
    "DATABASE_URL": f"sqlite:///{_db_dir}/test.db",
    "ENABLED_SERVICES": "auth,lab",
    "JWT_ISSUER": "ms-auth",
    "JWT_EXPIRATION_MINUTES": "60",
    "JWT_RSA_PUBLIC": PUBLIC_PEM,
    "JWT_RSA_PRIVATE": PRIVATE_PEM,
    "JWT_JWKS_URI": "",
    "JWT_ALLOWED_SKEW_SECONDS": "0",
    "BCRYPT_ROUNDS": "4",
    "BOOTSTRAP_ADMIN_USERNAME": "",
    "LOG_LEVEL": "WARNING",
})

from fastapi.testclient import TestClient  # noqa: E402

from database import Base, SessionLocal, engine, seed_roles  # noqa: E402
import models.users  # noqa: E402,F401
import models.laboratory  # noqa: E402,F401
import models.order  # noqa: E402,F401

DEFAULT_PASSWORD = "s3cret-pass"


@pytest.fixture(autouse=True)
def clean_db():
    # Fresh schema for every test
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_roles(db)
    finally:
        db.close()
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    from main import app

    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_user(db):
    """Factory that stores a user with the given roles and returns it."""
    from models.users import Role, User
    from utils.hashing import get_password_hash

    def _make(username, roles=("ADMIN",), lab_code=None, active=True, password=DEFAULT_PASSWORD, email=None):
        user = User(
            username=username,
            email=email or f"{username}@labflow.io",
            password_hash=get_password_hash(password),
            lab_code=lab_code,
            active=active,
            roles=db.query(Role).filter(Role.name.in_(list(roles))).all(),
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def token_for():
    from utils.tokenJWT import get_token_issuer

    def _token(user):
        return get_token_issuer().issue(user).token

    return _token


@pytest.fixture
def sign_token():
    """Sign arbitrary claims with the configured private key (or another one)."""
    def _sign(claims=None, private_pem=PRIVATE_PEM, headers=None, exp_delta=timedelta(minutes=5), **overrides):
        now = datetime.now(timezone.utc)
        payload = {
            "iss": "ms-auth",
            "sub": "someone",
            "iat": int(now.timestamp()),
            "exp": int((now + exp_delta).timestamp()),
            "userId": str(uuid.uuid4()),
            "roles": ["ADMIN"],
        }
        payload.update(claims or {})
        payload.update(overrides)
        return jwt.encode(payload, private_pem, algorithm="RS256", headers=headers)

    return _sign


@pytest.fixture
def admin_user(make_user):
    return make_user("admin")


@pytest.fixture
def admin_headers(admin_user, token_for):
    return {"Authorization": f"Bearer {token_for(admin_user)}"}


@pytest.fixture
def tech_user(make_user):
    return make_user("tech1", roles=("LAB_TECH",), lab_code="LAB01")


@pytest.fixture
def tech_headers(tech_user, token_for):
    return {"Authorization": f"Bearer {token_for(tech_user)}"}
