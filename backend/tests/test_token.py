"""Tests for access token issuance and verification."""
import uuid
from datetime import timedelta

import pytest
from jose import jwt

from conftest import PRIVATE_PEM, PUBLIC_PEM, generate_pem_pair
from models.users import Role, User
from utils.keys import get_key_provider
from utils.tokenJWT import TokenIssuer, TokenVerifier


def _user(roles, lab_code=None, username="jdoe"):
    # Transient user, never persisted
    return User(
        username=username,
        external_id=uuid.uuid4(),
        lab_code=lab_code,
        roles=[Role(name=r) for r in roles],
    )


@pytest.fixture
def issuer():
    return TokenIssuer(get_key_provider(), "ms-auth", 60)


@pytest.fixture
def verifier():
    return TokenVerifier(PUBLIC_PEM, expected_issuer="ms-auth")


class TestTokenIssuer:
    def test_claims_carry_identity_and_sorted_roles(self, issuer):
        user = _user(["LAB_TECH", "ADMIN"], lab_code="LAB01")
        issued = issuer.issue(user)

        claims = jwt.get_unverified_claims(issued.token)
        assert claims["iss"] == "ms-auth"
        assert claims["sub"] == "jdoe"
        assert claims["userId"] == str(user.external_id)
        assert claims["roles"] == ["ADMIN", "LAB_TECH"]
        assert claims["exp"] - claims["iat"] == 3600

    def test_header_is_rs256_jwt(self, issuer):
        header = jwt.get_unverified_header(issuer.issue(_user(["ADMIN"])).token)
        assert header["alg"] == "RS256"
        assert header["typ"] == "JWT"

    def test_expires_at_matches_exp_claim(self, issuer):
        issued = issuer.issue(_user(["ADMIN"]))
        claims = jwt.get_unverified_claims(issued.token)
        assert int(issued.expires_at.timestamp()) == claims["exp"]

    @pytest.mark.parametrize("roles", [["ADMIN"], [], ["lab_tech"]])
    def test_lab_code_absent_without_lab_tech_role(self, issuer, roles):
        issued = issuer.issue(_user(roles, lab_code="LAB01"))
        assert "labCode" not in jwt.get_unverified_claims(issued.token)

    @pytest.mark.parametrize("roles", [["LAB_TECH"], ["ADMIN", "LAB_TECH"]])
    def test_lab_code_present_with_lab_tech_role(self, issuer, roles):
        issued = issuer.issue(_user(roles, lab_code="LAB07"))
        assert jwt.get_unverified_claims(issued.token)["labCode"] == "LAB07"

    def test_ttl_must_be_at_least_one_minute(self):
        with pytest.raises(ValueError):
            TokenIssuer(get_key_provider(), "ms-auth", 0)


class TestTokenVerifier:
    def test_round_trip(self, issuer, verifier):
        user = _user(["LAB_TECH"], lab_code="LAB01", username="tech1")
        claims = verifier.verify(issuer.issue(user).token)

        assert claims is not None
        assert claims.username == "tech1"
        assert claims.user_id == str(user.external_id)
        assert claims.roles == ("LAB_TECH",)
        assert claims.lab_code == "LAB01"

    def test_round_trip_without_lab_code(self, issuer, verifier):
        claims = verifier.verify(issuer.issue(_user(["ADMIN"], lab_code="LAB01")).token)
        assert claims.lab_code is None
        assert claims.roles == ("ADMIN",)

    def test_expired_token_rejected(self, verifier, sign_token):
        token = sign_token(exp_delta=timedelta(seconds=-1))
        assert verifier.verify(token) is None

    def test_leeway_accepts_recently_expired_token(self, sign_token):
        token = sign_token(exp_delta=timedelta(seconds=-5))
        lenient = TokenVerifier(PUBLIC_PEM, expected_issuer="ms-auth", leeway_seconds=60)
        assert lenient.verify(token) is not None

    def test_missing_exp_rejected(self, verifier, sign_token):
        token = sign_token()
        claims = jwt.get_unverified_claims(token)
        claims.pop("exp")
        unexpiring = jwt.encode(claims, PRIVATE_PEM, algorithm="RS256")
        assert verifier.verify(unexpiring) is None

    def test_token_signed_by_other_key_rejected(self, verifier, sign_token):
        _, other_private = generate_pem_pair()
        assert verifier.verify(sign_token(private_pem=other_private)) is None

    def test_wrong_issuer_rejected(self, verifier, sign_token):
        assert verifier.verify(sign_token(iss="someone-else")) is None

    def test_issuer_not_checked_when_none_expected(self, sign_token):
        relaxed = TokenVerifier(PUBLIC_PEM)
        assert relaxed.verify(sign_token(iss="someone-else")) is not None

    def test_header_type_must_be_jwt(self, verifier, sign_token):
        assert verifier.verify(sign_token(headers={"typ": "at+jwt"})) is None

    def test_hmac_token_rejected(self, verifier):
        forged = jwt.encode({"sub": "admin", "iss": "ms-auth", "roles": ["ADMIN"]}, "shared-secret", algorithm="HS256")
        assert verifier.verify(forged) is None

    def test_missing_roles_default_to_empty(self, verifier, sign_token):
        token = sign_token(roles=None)
        claims = verifier.verify(token)
        assert claims is not None
        assert claims.roles == ()

    def test_non_list_roles_rejected(self, verifier, sign_token):
        assert verifier.verify(sign_token(roles="ADMIN")) is None

    def test_claims_are_stringified(self, verifier, sign_token):
        claims = verifier.verify(sign_token(userId=42, labCode=7))
        assert claims.user_id == "42"
        assert claims.lab_code == "7"

    @pytest.mark.parametrize("garbage", ["", "abc", "a.b.c", "Bearer xyz"])
    def test_malformed_token_rejected(self, verifier, garbage):
        assert verifier.verify(garbage) is None
