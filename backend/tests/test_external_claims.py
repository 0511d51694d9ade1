"""
Claim extraction across Google, Azure AD B2C and Firebase claim shapes
"""
import pytest

from roomauth.core.errors import ValidationError
from roomauth.services.auth.claims import MS_OBJECT_ID_CLAIM, extract_external_claims


class TestExternalId:
    def test_oid_wins_over_sub(self):
        claims = extract_external_claims({"oid": "object-1", "sub": "subject-1"})
        assert claims.external_id == "object-1"

    def test_falls_back_to_sub(self):
        assert extract_external_claims({"sub": "subject-1"}).external_id == "subject-1"

    def test_falls_back_to_ms_object_identifier(self):
        claims = extract_external_claims({MS_OBJECT_ID_CLAIM: "ms-1", "user_id": "fb-1"})
        assert claims.external_id == "ms-1"

    def test_falls_back_to_user_id(self):
        assert extract_external_claims({"user_id": "fb-1"}).external_id == "fb-1"

    def test_missing_subject_is_validation_error(self):
        with pytest.raises(ValidationError) as exc_info:
            extract_external_claims({"email": "ann@x.com", "sub": "  "})
        assert exc_info.value.field == "external_id"


class TestEmail:
    def test_email_claim_lowercased(self):
        assert extract_external_claims({"sub": "1", "email": "Ann@X.com"}).email == "ann@x.com"

    def test_first_of_emails_list(self):
        claims = extract_external_claims({"sub": "1", "emails": ["b2c@x.com", "other@x.com"]})
        assert claims.email == "b2c@x.com"

    def test_preferred_username_only_when_it_looks_like_email(self):
        assert extract_external_claims({"sub": "1", "preferred_username": "ann@x.com"}).email == "ann@x.com"
        assert extract_external_claims({"sub": "1", "preferred_username": "ann"}).email is None

    def test_upn_last(self):
        assert extract_external_claims({"sub": "1", "upn": "ann@corp.x.com"}).email == "ann@corp.x.com"

    def test_empty_emails_list(self):
        assert extract_external_claims({"sub": "1", "emails": []}).email is None


class TestNameAndAvatar:
    def test_name_claim(self):
        assert extract_external_claims({"sub": "1", "name": "Ann Lee", "given_name": "X"}).name == "Ann Lee"

    def test_given_and_family_name(self):
        claims = extract_external_claims({"sub": "1", "given_name": "Ann", "family_name": "Lee"})
        assert claims.name == "Ann Lee"

    def test_given_name_alone(self):
        assert extract_external_claims({"sub": "1", "given_name": "Ann"}).name == "Ann"

    def test_nickname_last(self):
        assert extract_external_claims({"sub": "1", "nickname": "annie"}).name == "annie"
        assert extract_external_claims({"sub": "1"}).name is None

    @pytest.mark.parametrize("claim", ["picture", "avatar_url", "photo_url"])
    def test_avatar_claims(self, claim):
        assert extract_external_claims({"sub": "1", claim: "https://img/a.png"}).avatar_url == "https://img/a.png"


class TestProvider:
    def test_explicit_provider_lowercased(self):
        claims = extract_external_claims({"sub": "1", "idp": "facebook.com"}, provider=" Google ")
        assert claims.provider == "google"

    def test_idp_claim(self):
        assert extract_external_claims({"sub": "1", "idp": "Facebook.com"}).provider == "facebook.com"

    def test_issuer_host(self):
        claims = extract_external_claims({"sub": "1", "iss": "https://accounts.google.com"})
        assert claims.provider == "accounts.google.com"

    def test_default_provider(self):
        assert extract_external_claims({"sub": "1"}).provider == "external"
