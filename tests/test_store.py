"""Unit tests for auth/store.py -- AccountStore queries.

Covers:
- create / get_by_id / get_by_field round trip
- find_conflicts() names every clashing field and honours exclude_id
- UNIQUE violations that bypass find_conflicts() surface as Conflict
- update_account() / delete_account() / update_last_login()
- token records: create, revoke, revoke-all, purge
"""

from datetime import datetime, timedelta, timezone

import pytest

from auth.models import AccessToken, Account
from core.errors import Conflict

from .conftest import make_account


def _future(seconds: int = 3600) -> str:
    return (datetime.now(timezone.utc) + timedelta(seconds=seconds)).isoformat()


def _past(seconds: int = 3600) -> str:
    return (datetime.now(timezone.utc) - timedelta(seconds=seconds)).isoformat()


class TestAccounts:
    def test_create_and_get(self, store):
        ana = make_account(store, "ana", phone_number="+12015550123", date_of_birth="1990-04-01")
        assert ana.id is not None
        assert ana.role == "user"
        assert ana.is_active is True
        assert ana.created_at and ana.updated_at
        assert store.get_by_field("email", "ana@example.com").id == ana.id
        assert store.get_by_field("username", "ana").id == ana.id
        assert store.get_by_field("phone_number", "+12015550123").id == ana.id

    def test_get_missing_returns_none(self, store):
        assert store.get_by_id(999) is None
        assert store.get_by_field("username", "ghost") is None

    def test_get_by_field_rejects_unknown_column(self, store):
        with pytest.raises(ValueError):
            store.get_by_field("hashed_password", "x")

    def test_list_accounts_ordered_by_id(self, store):
        make_account(store, "zed")
        make_account(store, "amy")
        assert [a.username for a in store.list_accounts()] == ["zed", "amy"]

    def test_update_account(self, store):
        ana = make_account(store, "ana")
        assert store.update_account(ana.id, full_name="Ana Lopez", is_active=False, phone_number="+447400123456")
        updated = store.get_by_id(ana.id)
        assert updated.full_name == "Ana Lopez"
        assert updated.is_active is False
        assert updated.phone_number == "+447400123456"

    def test_update_missing_account_returns_false(self, store):
        assert store.update_account(999, full_name="Nobody") is False

    def test_update_rejects_unknown_fields(self, store):
        ana = make_account(store, "ana")
        with pytest.raises(ValueError):
            store.update_account(ana.id, id=5)

    def test_update_last_login(self, store):
        ana = make_account(store, "ana")
        assert ana.last_login_at is None
        store.update_last_login(ana.id)
        assert store.get_by_id(ana.id).last_login_at is not None

    def test_delete_account_removes_tokens(self, store):
        ana = make_account(store, "ana")
        store.create_token(AccessToken(account_id=ana.id, jti="jti-ana", expires_at=_future()))
        assert store.delete_account(ana.id) is True
        assert store.get_by_id(ana.id) is None
        assert store.get_token("jti-ana") is None
        assert store.delete_account(ana.id) is False


class TestFindConflicts:
    def test_no_conflicts(self, store):
        make_account(store, "ana")
        assert store.find_conflicts(email="bob@example.com", username="bob") == []

    def test_duplicate_email(self, store):
        make_account(store, "ana")
        assert store.find_conflicts(email="ana@example.com", username="someone") == ["email"]

    def test_reports_every_field(self, store):
        make_account(store, "ana", phone_number="+12015550123")
        fields = store.find_conflicts(email="ana@example.com", username="ana", phone_number="+12015550123")
        assert fields == ["email", "username", "phone_number"]

    def test_fields_may_clash_with_different_accounts(self, store):
        make_account(store, "ana")
        make_account(store, "bob", phone_number="+447400123456")
        fields = store.find_conflicts(email="ana@example.com", username="carl", phone_number="+447400123456")
        assert fields == ["email", "phone_number"]

    def test_none_phone_is_not_checked(self, store):
        make_account(store, "ana")
        make_account(store, "bob")
        assert store.find_conflicts(email="new@example.com", username="new", phone_number=None) == []

    def test_exclude_id_skips_own_record(self, store):
        ana = make_account(store, "ana")
        assert store.find_conflicts(email="ana@example.com", username="ana", exclude_id=ana.id) == []

    def test_nothing_to_check(self, store):
        assert store.find_conflicts() == []


class TestIntegrityTranslation:
    def test_insert_race_raises_conflict(self, store):
        make_account(store, "ana", phone_number="+12015550123")
        duplicate = Account(
            username="ana2",
            full_name="Ana Two",
            email="ana@example.com",
            hashed_password="x",
            phone_number="+12015550123",
        )
        with pytest.raises(Conflict) as exc_info:
            store.create_account(duplicate)
        assert exc_info.value.fields == ["email", "phone_number"]

    def test_update_clash_raises_conflict(self, store):
        make_account(store, "ana")
        bob = make_account(store, "bob")
        with pytest.raises(Conflict) as exc_info:
            store.update_account(bob.id, username="ana")
        assert exc_info.value.fields == ["username"]
        assert store.get_by_id(bob.id).username == "bob"


class TestTokens:
    def test_create_and_get(self, store):
        ana = make_account(store, "ana")
        token_id = store.create_token(AccessToken(account_id=ana.id, jti="abc", expires_at=_future()))
        record = store.get_token("abc")
        assert record.id == token_id
        assert record.account_id == ana.id
        assert record.name == "auth_token"
        assert record.revoked is False

    def test_revoke_token(self, store):
        ana = make_account(store, "ana")
        store.create_token(AccessToken(account_id=ana.id, jti="abc", expires_at=_future()))
        assert store.revoke_token("abc") is True
        assert store.get_token("abc").revoked is True
        assert store.revoke_token("abc") is False

    def test_revoke_account_tokens_keeps_current(self, store):
        ana = make_account(store, "ana")
        for jti in ("t1", "t2", "t3"):
            store.create_token(AccessToken(account_id=ana.id, jti=jti, expires_at=_future()))
        assert store.revoke_account_tokens(ana.id, keep_jti="t2") == 2
        assert store.get_token("t2").revoked is False
        assert store.get_token("t1").revoked is True

    def test_touch_token(self, store):
        ana = make_account(store, "ana")
        token_id = store.create_token(AccessToken(account_id=ana.id, jti="abc", expires_at=_future()))
        store.touch_token(token_id)
        assert store.get_token("abc").last_used_at is not None

    def test_purge_removes_expired_and_revoked(self, store):
        ana = make_account(store, "ana")
        store.create_token(AccessToken(account_id=ana.id, jti="live", expires_at=_future()))
        store.create_token(AccessToken(account_id=ana.id, jti="old", expires_at=_past()))
        store.create_token(AccessToken(account_id=ana.id, jti="gone", expires_at=_future()))
        store.revoke_token("gone")
        assert store.purge_expired_tokens() == 2
        assert store.get_token("live") is not None
        assert store.get_token("old") is None
        assert store.get_token("gone") is None


def test_ping(store):
    assert store.ping() is True
