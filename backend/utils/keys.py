# backend/utils/keys.py
"""
RSA key material used to sign and verify access tokens.

The keypair is parsed once at startup and is read-only afterwards. Any problem
with the configured material raises KeyMaterialError, which is meant to stop
the process: an instance without a usable key can neither issue nor verify
tokens.
"""
import base64
import hashlib
import json
import logging
from functools import lru_cache
from typing import Optional

import httpx
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwk
from jose.exceptions import JOSEError

from config import settings

logger = logging.getLogger(__name__)


class KeyMaterialError(RuntimeError):
    pass


def normalize_pem(raw: Optional[str]) -> str:
    # Env files tend to carry quotes, trailing commas and literal "\n" sequences
    if not raw:
        return ""
    clean = raw.replace('"', "").replace(",", "")
    return clean.replace("\\n", "\n").strip()


def _b64url_uint(value: int) -> str:
    raw = value.to_bytes((value.bit_length() + 7) // 8 or 1, "big")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise KeyMaterialError(message)


class KeyProvider:
    def __init__(self, public_key: rsa.RSAPublicKey, private_key: Optional[rsa.RSAPrivateKey] = None):
        self._public_key = public_key
        self._private_key = private_key

    @classmethod
    def from_pem(cls, public_pem: str, private_pem: str) -> "KeyProvider":
        """Load a full keypair; both halves are mandatory and must match."""
        public_pem = normalize_pem(public_pem)
        private_pem = normalize_pem(private_pem)

        _require(bool(public_pem), "JWT_RSA_PUBLIC is empty or not defined")
        _require(bool(private_pem), "JWT_RSA_PRIVATE is empty or not defined")
        _require("BEGIN PRIVATE KEY" in private_pem, "JWT_RSA_PRIVATE must be an unencrypted PKCS#8 PEM (BEGIN PRIVATE KEY)")

        public_key = _load_public_key(public_pem)
        try:
            private_key = serialization.load_pem_private_key(private_pem.encode("ascii"), password=None)
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise KeyMaterialError(f"Could not parse JWT_RSA_PRIVATE: {e}") from e
        _require(isinstance(private_key, rsa.RSAPrivateKey), "JWT_RSA_PRIVATE is not an RSA key")

        derived = private_key.public_key().public_numbers()
        given = public_key.public_numbers()
        _require(
            derived.n == given.n and derived.e == given.e,
            "JWT_RSA_PUBLIC and JWT_RSA_PRIVATE do not belong to the same keypair",
        )
        return cls(public_key, private_key)

    @classmethod
    def public_only(cls, public_pem: str) -> "KeyProvider":
        public_pem = normalize_pem(public_pem)
        _require(bool(public_pem), "JWT_RSA_PUBLIC is empty or not defined")
        return cls(_load_public_key(public_pem))

    @classmethod
    def from_jwks(cls, jwks_uri: str, timeout: float = 10.0) -> "KeyProvider":
        """Fetch the signing key published by the auth service."""
        try:
            with httpx.Client(timeout=timeout) as client:
                response = client.get(jwks_uri)
                response.raise_for_status()
                document = response.json()
        except (httpx.RequestError, httpx.HTTPStatusError, ValueError) as e:
            logger.error(f"JWKS fetch from {jwks_uri} failed: {e}")
            raise KeyMaterialError(f"Could not fetch JWKS from {jwks_uri}: {e}") from e

        keys = [k for k in document.get("keys", []) if k.get("kty") == "RSA" and k.get("use", "sig") == "sig"]
        _require(bool(keys), f"JWKS at {jwks_uri} has no RSA signing key")
        try:
            pem = jwk.construct(keys[0], "RS256").to_pem().decode("ascii")
        except (JOSEError, ValueError, TypeError) as e:
            raise KeyMaterialError(f"Malformed JWK at {jwks_uri}: {e}") from e
        return cls(_load_public_key(pem))

    @property
    def can_sign(self) -> bool:
        return self._private_key is not None

    @property
    def public_pem(self) -> str:
        return self._public_key.public_bytes(
            serialization.Encoding.PEM,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode("ascii")

    @property
    def private_pem(self) -> str:
        if self._private_key is None:
            raise KeyMaterialError("No private key configured, this instance cannot sign tokens")
        return self._private_key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        ).decode("ascii")

    def public_jwk(self) -> dict:
        numbers = self._public_key.public_numbers()
        members = {"e": _b64url_uint(numbers.e), "kty": "RSA", "n": _b64url_uint(numbers.n)}
        # RFC 7638 thumbprint over the required members in lexicographic order
        digest = hashlib.sha256(json.dumps(members, separators=(",", ":"), sort_keys=True).encode("ascii")).digest()
        kid = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
        return {**members, "alg": "RS256", "use": "sig", "kid": kid}

    def jwks(self) -> dict:
        return {"keys": [self.public_jwk()]}


def _load_public_key(public_pem: str) -> rsa.RSAPublicKey:
    _require("BEGIN PUBLIC KEY" in public_pem, "JWT_RSA_PUBLIC has no BEGIN PUBLIC KEY header")
    try:
        public_key = serialization.load_pem_public_key(public_pem.encode("ascii"))
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise KeyMaterialError(f"Could not parse JWT_RSA_PUBLIC: {e}") from e
    _require(isinstance(public_key, rsa.RSAPublicKey), "JWT_RSA_PUBLIC is not an RSA key")
    return public_key


def build_key_provider(cfg=settings) -> KeyProvider:
    # The auth service signs tokens and needs both halves
    if "auth" in cfg.enabled_services:
        provider = KeyProvider.from_pem(cfg.JWT_RSA_PUBLIC, cfg.JWT_RSA_PRIVATE)
        logger.info("Loaded RSA keypair for token signing")
        return provider

    # Verifier-only deployment
    if normalize_pem(cfg.JWT_RSA_PUBLIC):
        provider = KeyProvider.public_only(cfg.JWT_RSA_PUBLIC)
        logger.info("Loaded RSA public key for token verification")
        return provider
    if cfg.JWT_JWKS_URI:
        provider = KeyProvider.from_jwks(cfg.JWT_JWKS_URI)
        logger.info(f"Loaded RSA public key from {cfg.JWT_JWKS_URI}")
        return provider
    raise KeyMaterialError("Neither JWT_RSA_PUBLIC nor JWT_JWKS_URI is configured")


@lru_cache()
def get_key_provider() -> KeyProvider:
    return build_key_provider(settings)
