# backend/utils/hashing.py
import bcrypt

from config import settings

# bcrypt only ever reads the first 72 bytes of a secret
BCRYPT_MAX_BYTES = 72


def _secret(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


# Hash a plaintext password with a fresh salt
def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(_secret(password), bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)).decode("utf-8")


# Check a plaintext password against a stored bcrypt hash
def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_secret(password), password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False
