# tests/test_otp.py
"""Tests for one-time email verification codes."""

from datetime import timedelta

import pytest

from smartwill_gate.core.errors import AttemptsExceeded, CodeExpired, CodeNotFound
from smartwill_gate.services.otp import InMemoryOneTimeCodeStore
from smartwill_gate.utils.email import normalize_email

PAYLOAD = {"role": "owner", "name": "Alice", "email": "alice@example.com"}


@pytest.fixture()
def store(clock):
    return InMemoryOneTimeCodeStore(clock=clock, ttl=timedelta(minutes=15), max_attempts=3)


def test_normalize_email():
    assert normalize_email("  Alice@Example.COM ") == "alice@example.com"


class TestIssueCode:
    def test_code_is_six_digits_without_leading_zero(self, store):
        for _ in range(50):
            code = store.issue_code("alice@example.com", PAYLOAD)
            assert len(code) == 6
            assert code.isdigit()
            assert code[0] != "0"

    def test_new_code_replaces_previous_one(self, store):
        first = store.issue_code("alice@example.com", PAYLOAD)
        second = store.issue_code("Alice@example.com", PAYLOAD)

        assert len(store) == 1
        assert first != second
        with pytest.raises(CodeNotFound):
            store.verify(first)
        assert store.verify(second) == PAYLOAD

    def test_reissue_never_repeats_the_replaced_code(self, store, mocker):
        mocker.patch("smartwill_gate.services.otp.secrets.randbelow", side_effect=[5, 5, 7])

        first = store.issue_code("alice@example.com", PAYLOAD)
        second = store.issue_code("alice@example.com", PAYLOAD)

        assert first == "100005"
        assert second == "100007"
        with pytest.raises(CodeNotFound):
            store.verify(first)
        assert store.verify(second) == PAYLOAD

    def test_code_live_for_another_email_is_not_reused(self, store, mocker):
        mocker.patch("smartwill_gate.services.otp.secrets.randbelow", side_effect=[5, 5, 9])

        alice = store.issue_code("alice@example.com", PAYLOAD)
        bob = store.issue_code("bob@example.com", PAYLOAD)

        assert (alice, bob) == ("100005", "100009")
        assert len(store) == 2

    def test_gives_up_when_no_fresh_code_can_be_drawn(self, store, mocker):
        mocker.patch("smartwill_gate.services.otp.secrets.randbelow", return_value=5)
        store.issue_code("alice@example.com", PAYLOAD)

        with pytest.raises(RuntimeError):
            store.issue_code("alice@example.com", PAYLOAD)

    def test_record_is_keyed_by_normalized_email(self, store, clock):
        code = store.issue_code("Alice@Example.com", PAYLOAD)

        record = store.find_by_email("alice@example.com")
        assert record is not None
        assert record.code == code
        assert record.expires_at == clock.now + timedelta(minutes=15)
        assert record.attempts == 0
        assert not record.verified

    def test_find_by_email_returns_a_copy(self, store):
        store.issue_code("alice@example.com", PAYLOAD)
        record = store.find_by_email("alice@example.com")
        record.attempts = 99

        assert store.find_by_email("alice@example.com").attempts == 0


class TestVerify:
    def test_correct_code_returns_payload(self, store):
        code = store.issue_code("alice@example.com", PAYLOAD)

        assert store.verify(code, "alice@example.com") == PAYLOAD
        record = store.find_by_email("alice@example.com")
        assert record.verified
        assert record.attempts == 1

    def test_unknown_code_is_not_found(self, store):
        store.issue_code("alice@example.com", PAYLOAD)
        code = store.find_by_email("alice@example.com").code
        wrong = "100000" if code != "100000" else "100001"

        with pytest.raises(CodeNotFound):
            store.verify(wrong)
        assert store.find_by_email("alice@example.com").attempts == 0

    def test_all_zero_code_never_matches(self, store):
        code = store.issue_code("alice@example.com", PAYLOAD)

        with pytest.raises(CodeNotFound):
            store.verify("000000", "alice@example.com")
        assert store.verify(code) == PAYLOAD
        assert store.find_by_email("alice@example.com").attempts == 1

    def test_email_mismatch_is_not_found_and_free(self, store):
        code = store.issue_code("alice@example.com", PAYLOAD)

        with pytest.raises(CodeNotFound):
            store.verify(code, "mallory@example.com")
        assert store.find_by_email("alice@example.com").attempts == 0

    def test_expired_code_is_rejected_and_removed(self, store, clock):
        code = store.issue_code("alice@example.com", PAYLOAD)
        clock.advance(minutes=15, seconds=1)

        with pytest.raises(CodeExpired):
            store.verify(code)
        assert len(store) == 0

    def test_code_valid_at_exact_expiry(self, store, clock):
        code = store.issue_code("alice@example.com", PAYLOAD)
        clock.advance(minutes=15)

        assert store.verify(code) == PAYLOAD

    def test_fourth_attempt_is_rejected_even_with_right_code(self, store):
        code = store.issue_code("alice@example.com", PAYLOAD)
        for _ in range(3):
            assert store.verify(code) == PAYLOAD

        with pytest.raises(AttemptsExceeded):
            store.verify(code)
        assert len(store) == 0
        with pytest.raises(CodeNotFound):
            store.verify(code)

    def test_expiry_is_checked_before_attempts(self, store, clock):
        code = store.issue_code("alice@example.com", PAYLOAD)
        for _ in range(3):
            store.verify(code)
        clock.advance(minutes=16)

        with pytest.raises(CodeExpired):
            store.verify(code)

    def test_remove_discards_code(self, store):
        code = store.issue_code("alice@example.com", PAYLOAD)
        store.remove(code)
        store.remove(code)

        with pytest.raises(CodeNotFound):
            store.verify(code)


class TestPendingAndCleanup:
    def test_pending_until_verified_or_expired(self, store, clock):
        assert not store.has_pending_verification("alice@example.com")

        code = store.issue_code("alice@example.com", PAYLOAD)
        assert store.has_pending_verification("ALICE@example.com")

        store.verify(code)
        assert not store.has_pending_verification("alice@example.com")

        store.issue_code("alice@example.com", PAYLOAD)
        clock.advance(minutes=15)
        assert store.has_pending_verification("alice@example.com")
        clock.advance(seconds=1)
        assert not store.has_pending_verification("alice@example.com")

    def test_cleanup_removes_only_expired(self, store, clock):
        store.issue_code("old@example.com", PAYLOAD)
        clock.advance(minutes=10)
        store.issue_code("new@example.com", PAYLOAD)
        clock.advance(minutes=6)

        assert store.cleanup_expired() == 1
        assert store.find_by_email("old@example.com") is None
        assert store.find_by_email("new@example.com") is not None
