"""
Race conditions on the OTP ledger and identity creation.

Each thread uses its own session against a file-backed SQLite database, so the
unique constraints and conditional updates are exercised across connections.
"""
import threading
from typing import List

import pytest

from roomauth.core.errors import AttemptsExceededError, AuthError, CodeUsedError, ConflictError, InvalidCodeError
from roomauth.db import build_session_factory
from roomauth.models import Identity, OTPChallenge
from roomauth.services.auth.claims import ExternalClaims
from tests.helpers.auth_fakes import wrong_code

PHONE = "+911234567890"


@pytest.fixture
def race_factory(file_engine):
    return build_session_factory(file_engine)


def _run_concurrently(targets):
    barrier = threading.Barrier(len(targets))

    def _wrap(target):
        def _run():
            barrier.wait(timeout=10)
            target()
        return _run

    threads = [threading.Thread(target=_wrap(t)) for t in targets]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    assert not any(thread.is_alive() for thread in threads)


def _verify_into(services, race_factory, request_id, code, results: List, errors: List):
    def _target():
        session = race_factory()
        try:
            result = services.otp.verify_otp(session, PHONE, request_id, code)
            results.append((result.identity.id, result.is_new_user))
        except AuthError as e:
            errors.append(e)
        finally:
            session.close()
    return _target


class TestConcurrentPhoneSignup:
    def test_two_verifies_for_new_phone_create_one_identity(self, services, race_factory):
        """Two simultaneous successful verifies for a never-seen phone share one identity"""
        setup = race_factory()
        first, first_code = services.ledger.create(setup, PHONE)
        second, second_code = services.ledger.create(setup, PHONE)
        first_id, second_id = first.request_id, second.request_id
        setup.close()

        results, errors = [], []
        _run_concurrently([
            _verify_into(services, race_factory, first_id, first_code, results, errors),
            _verify_into(services, race_factory, second_id, second_code, results, errors),
        ])

        assert errors == []
        assert len(results) == 2
        assert results[0][0] == results[1][0]
        assert sorted(is_new for _, is_new in results) == [False, True]

        check = race_factory()
        try:
            assert check.query(Identity).filter(Identity.phone == PHONE).count() == 1
        finally:
            check.close()


class TestConcurrentVerifyAttempts:
    def test_attempt_count_never_exceeds_max(self, services, race_factory):
        """Parallel wrong codes stop counting at max_attempts"""
        setup = race_factory()
        challenge, code = services.ledger.create(setup, PHONE)
        request_id = challenge.request_id
        setup.close()

        results, errors = [], []
        _run_concurrently([
            _verify_into(services, race_factory, request_id, wrong_code(code), results, errors)
            for _ in range(8)
        ])

        assert results == []
        assert len(errors) == 8
        assert all(isinstance(e, (InvalidCodeError, AttemptsExceededError)) for e in errors)
        assert sum(isinstance(e, InvalidCodeError) for e in errors) == 5

        check = race_factory()
        try:
            row = check.query(OTPChallenge).filter(OTPChallenge.request_id == request_id).one()
            assert row.attempt_count == 5
            assert row.used is False
        finally:
            check.close()

    def test_correct_code_consumed_once(self, services, race_factory):
        """Two parallel verifies with the right code: one succeeds, one sees Used"""
        setup = race_factory()
        challenge, code = services.ledger.create(setup, PHONE)
        request_id = challenge.request_id
        setup.close()

        results, errors = [], []
        _run_concurrently([
            _verify_into(services, race_factory, request_id, code, results, errors)
            for _ in range(2)
        ])

        assert len(results) == 1
        assert len(errors) == 1
        assert isinstance(errors[0], CodeUsedError)


class TestConcurrentExternalSync:
    CLAIMS = ExternalClaims(external_id="g-123", provider="google", email="ann@x.com", name="Ann")

    def test_identical_claims_resolve_to_one_identity(self, services, race_factory):
        """Parallel syncs of one external account: one insert wins, the rest re-read it"""
        results, errors = [], []

        def _sync():
            session = race_factory()
            try:
                identity, is_new = services.reconciler.reconcile_external(session, self.CLAIMS)
                results.append((identity.id, is_new))
            except AuthError as e:
                errors.append(e)
            finally:
                session.close()

        _run_concurrently([_sync for _ in range(4)])

        assert errors == []
        assert len(results) == 4
        assert len({identity_id for identity_id, _ in results}) == 1
        assert sum(is_new for _, is_new in results) == 1

        check = race_factory()
        try:
            assert check.query(Identity).count() == 1
            row = check.query(Identity).one()
            assert (row.external_provider, row.external_id, row.email) == ("google", "g-123", "ann@x.com")
        finally:
            check.close()


class TestConcurrentRegistration:
    def test_same_email_registers_once(self, services, race_factory):
        """Parallel registrations for one email: one account, every other caller sees Conflict"""
        results, errors = [], []

        def _register(name):
            def _target():
                session = race_factory()
                try:
                    result = services.password.register(session, name, "a@x.com", "Secret1!")
                    results.append(result.identity.id)
                except AuthError as e:
                    errors.append(e)
                finally:
                    session.close()
            return _target

        _run_concurrently([_register(name) for name in ("Ann", "Bob", "Cid", "Dee")])

        assert len(results) == 1
        assert len(errors) == 3
        assert all(isinstance(e, ConflictError) for e in errors)

        check = race_factory()
        try:
            rows = check.query(Identity).filter(Identity.email == "a@x.com").all()
            assert [row.id for row in rows] == results
        finally:
            check.close()
