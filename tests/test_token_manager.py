from datetime import timedelta

import pytest

from conftest import seed_token

from src.Core.exceptions import SessionUnavailable
from src.Repositories.app_setting import get_setting, upsert_setting
from src.Services.provider.token_manager import TOKEN_KEY, LoginResult, TokenManager
from src.Services.timestamps import ensure_utc, utc_now


class CountingLogin:

    def __init__(self, token="fresh-token", server_id="7"):
        self.calls = 0
        self.token = token
        self.server_id = server_id

    def __call__(self):
        self.calls += 1
        return LoginResult(token=self.token, server_id=self.server_id, username="fleet")


class TestWithoutLogin:

    def test_missing_token(self, db):
        with pytest.raises(SessionUnavailable, match="No provider token"):
            TokenManager(db).get_valid_token()

    def test_expired_token(self, db):
        seed_token(db, expires_in=timedelta(minutes=-5))
        with pytest.raises(SessionUnavailable, match="expired"):
            TokenManager(db).get_valid_token()

    def test_valid_token(self, db):
        seed_token(db, token="abc", serverid="3")
        session = TokenManager(db).get_valid_token()
        assert (session.token, session.server_id) == ("abc", "3")

    def test_no_expiry_means_valid(self, db):
        upsert_setting(db, TOKEN_KEY, value="forever")
        db.commit()
        session = TokenManager(db, default_server_id="9").get_valid_token()
        assert (session.token, session.server_id, session.expires_at) == ("forever", "9", None)


class TestWithLogin:

    def test_expired_token_is_refreshed_and_persisted(self, db):
        seed_token(db, expires_in=timedelta(minutes=-5))
        login = CountingLogin()
        manager = TokenManager(db, login_fn=login, ttl_seconds=3600)

        session = manager.get_valid_token()

        assert login.calls == 1
        assert (session.token, session.server_id) == ("fresh-token", "7")
        row = get_setting(db, TOKEN_KEY)
        assert row.value == "fresh-token"
        assert ensure_utc(row.expires_at) > utc_now() + timedelta(minutes=59)

    def test_valid_token_does_not_login(self, db):
        seed_token(db)
        login = CountingLogin()
        TokenManager(db, login_fn=login).get_valid_token()
        assert login.calls == 0

    def test_invalidate_forces_login(self, db):
        seed_token(db)
        login = CountingLogin()
        manager = TokenManager(db, login_fn=login)

        manager.invalidate()
        session = manager.get_valid_token()

        assert login.calls == 1
        assert session.token == "fresh-token"

    def test_token_refreshed_elsewhere_is_seen(self, db, session_factory):
        seed_token(db, token="old")
        manager = TokenManager(db)
        assert manager.get_valid_token().token == "old"
        db.commit()

        other = session_factory()
        try:
            seed_token(other, token="new")
        finally:
            other.close()

        assert manager.get_valid_token().token == "new"


class TestConcurrentRefresh:

    def test_stale_rejection_keeps_newer_token(self, db):
        seed_token(db, token="T1")
        stale = TokenManager(db).get_valid_token()

        TokenManager(db, login_fn=CountingLogin(token="T2")).refresh()
        TokenManager(db).invalidate(stale.token)

        assert TokenManager(db).get_valid_token().token == "T2"

    def test_rejection_of_current_token_expires_it(self, db):
        seed_token(db, token="T1")
        current = TokenManager(db).get_valid_token()

        TokenManager(db).invalidate(current.token)

        with pytest.raises(SessionUnavailable, match="expired"):
            TokenManager(db).get_valid_token()

    def test_no_login_ping_pong(self, db):
        seed_token(db, token="T1")
        login_a = CountingLogin(token="T2")
        login_b = CountingLogin(token="T3")
        a = TokenManager(db, login_fn=login_a)
        b = TokenManager(db, login_fn=login_b)
        seen_by_a = a.get_valid_token()
        seen_by_b = b.get_valid_token()

        a.invalidate(seen_by_a.token)
        assert a.get_valid_token().token == "T2"
        b.invalidate(seen_by_b.token)

        assert b.get_valid_token().token == "T2"
        assert (login_a.calls, login_b.calls) == (1, 0)
