"""
Identity reconciliation by verified phone and by external provider claims
"""
import pytest
from sqlalchemy.exc import IntegrityError

from roomauth.core.config import OtpSettings
from roomauth.core.errors import ConflictError
from roomauth.models import Identity
from roomauth.services.auth.claims import ExternalClaims
from roomauth.services.identity_reconciler import IdentityReconciler

PHONE = "+911234567890"


@pytest.fixture
def reconciler(clock):
    return IdentityReconciler(OtpSettings(), clock=clock)


def _add(db, **fields) -> Identity:
    identity = Identity(**fields)
    db.add(identity)
    db.commit()
    return identity


class TestPhoneReconciliation:
    def test_creates_phone_identity(self, reconciler, db):
        identity, is_new = reconciler.reconcile_phone(db, PHONE)

        assert is_new is True
        assert identity.phone == PHONE
        assert identity.phone_confirmed is True
        assert identity.auth_provider == "phone"
        assert identity.profile_complete is False
        assert identity.display_name == ""

    def test_returns_confirmed_owner(self, reconciler, db):
        owner = _add(db, display_name="Ann", phone=PHONE, phone_confirmed=True, auth_provider="phone")

        identity, is_new = reconciler.reconcile_phone(db, PHONE)

        assert is_new is False
        assert identity.id == owner.id

    def test_adopts_unconfirmed_legacy_record(self, reconciler, db):
        legacy = _add(db, display_name="Legacy", email="old@x.com", phone=PHONE, phone_confirmed=False)

        identity, is_new = reconciler.reconcile_phone(db, PHONE)

        assert is_new is False
        assert identity.id == legacy.id
        assert identity.phone_confirmed is True
        assert db.query(Identity).count() == 1

    def test_adoption_can_be_disabled(self, db, clock):
        reconciler = IdentityReconciler(OtpSettings(adopt_unconfirmed_phone=False), clock=clock)
        legacy = _add(db, display_name="Legacy", phone=PHONE, phone_confirmed=False)

        identity, is_new = reconciler.reconcile_phone(db, PHONE)

        assert is_new is True
        assert identity.id != legacy.id
        db.refresh(legacy)
        assert legacy.phone_confirmed is False

    def test_database_rejects_second_confirmed_owner(self, db):
        """The partial unique index, not application code, guarantees one owner per confirmed phone"""
        _add(db, phone=PHONE, phone_confirmed=True, auth_provider="phone")

        db.add(Identity(phone=PHONE, phone_confirmed=True, auth_provider="phone"))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()

        # Unconfirmed duplicates are allowed
        _add(db, phone=PHONE, phone_confirmed=False)
        assert db.query(Identity).filter(Identity.phone == PHONE).count() == 2


class TestExternalReconciliation:
    def test_creates_external_identity(self, reconciler, db):
        claims = ExternalClaims(external_id="g-1", provider="google", email="ann@x.com", name="Ann")

        identity, is_new = reconciler.reconcile_external(db, claims)

        assert is_new is True
        assert identity.auth_provider == "external"
        assert identity.external_provider == "google"
        assert identity.external_id == "g-1"
        assert identity.email == "ann@x.com"
        assert identity.email_confirmed is True
        assert identity.profile_complete is True

    def test_nameless_claims_need_profile_completion(self, reconciler, db):
        identity, _ = reconciler.reconcile_external(db, ExternalClaims(external_id="g-2", provider="google"))
        assert identity.profile_complete is False
        assert identity.email is None

    def test_same_external_id_twice_returns_same_identity(self, reconciler, db):
        claims = ExternalClaims(external_id="g-1", provider="google", email="ann@x.com", name="Ann")

        first, first_new = reconciler.reconcile_external(db, claims)
        second, second_new = reconciler.reconcile_external(db, claims)

        assert first.id == second.id
        assert (first_new, second_new) == (True, False)
        assert db.query(Identity).count() == 1

    def test_repeat_sync_updates_changed_display_fields(self, reconciler, db):
        reconciler.reconcile_external(
            db, ExternalClaims(external_id="g-1", provider="google", name="Ann", avatar_url="https://a/1.png")
        )

        identity, _ = reconciler.reconcile_external(
            db, ExternalClaims(external_id="g-1", provider="google", name="Ann Lee", avatar_url="https://a/2.png")
        )
        assert identity.display_name == "Ann Lee"
        assert identity.profile_image_url == "https://a/2.png"

        # Empty name claims never blank the stored name
        identity, _ = reconciler.reconcile_external(db, ExternalClaims(external_id="g-1", provider="google"))
        assert identity.display_name == "Ann Lee"

    def test_links_by_email(self, reconciler, db):
        existing = _add(db, display_name="Ann", email="ann@x.com", auth_provider="password", profile_complete=True)

        identity, is_new = reconciler.reconcile_external(
            db, ExternalClaims(external_id="aad-7", provider="azure_b2c", email="ann@x.com", name="Ann B")
        )

        assert is_new is False
        assert identity.id == existing.id
        assert identity.external_id == "aad-7"
        assert identity.external_provider == "azure_b2c"
        assert identity.email_confirmed is True
        assert identity.display_name == "Ann"
        assert identity.auth_provider == "password"

    def test_email_linked_to_other_external_account_conflicts(self, reconciler, db):
        _add(db, email="ann@x.com", external_provider="google", external_id="g-1", auth_provider="external")

        with pytest.raises(ConflictError):
            reconciler.reconcile_external(
                db, ExternalClaims(external_id="g-9", provider="google", email="ann@x.com")
            )
        assert db.query(Identity).count() == 1

    def test_same_subject_at_different_providers_are_distinct(self, reconciler, db):
        a, _ = reconciler.reconcile_external(db, ExternalClaims(external_id="42", provider="google"))
        b, _ = reconciler.reconcile_external(db, ExternalClaims(external_id="42", provider="azure_b2c"))
        assert a.id != b.id


def test_email_in_use_excludes_caller(reconciler, db):
    ann = _add(db, email="ann@x.com")
    assert IdentityReconciler.email_in_use(db, "ANN@x.com") is True
    assert IdentityReconciler.email_in_use(db, "ann@x.com", exclude_id=ann.id) is False
    assert IdentityReconciler.email_in_use(db, "bob@x.com") is False
