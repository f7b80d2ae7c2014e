"""
Token Lifecycle Manager
=======================
Single source of truth for "is the provider session still valid".

The credential lives in app_settings (key "provider_token"):
    value       session token
    expires_at  UTC expiry (NULL = no known expiry)
    metadata    {"serverid": "1", "username": "...", "refreshed_at": "..."}

Behaviour:
- Every get_valid_token() re-reads the row; nothing is cached in-process
- Absent or expired + login configured -> login, persist, commit, re-read
- Absent or expired + no login -> SessionUnavailable
- Two callers refreshing at the same time both log in; the last write wins
  and both serve whatever the row holds after their own write
- invalidate(token) only expires the row while it still holds that token
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session

from src.Core.config import settings
from src.Core.exceptions import SessionUnavailable
from src.Core.logging_config import get_logger
from src.Repositories.app_setting import expire_setting, get_setting, upsert_setting
from src.Services.timestamps import ensure_utc, utc_now

logger = get_logger(__name__)

TOKEN_KEY = "provider_token"


@dataclass(frozen=True)
class LoginResult:
    token: str
    server_id: str
    username: Optional[str] = None


@dataclass(frozen=True)
class ProviderSession:
    token: str
    server_id: str
    username: Optional[str] = None
    expires_at: Optional[datetime] = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now


class TokenManager:

    def __init__(
        self,
        db: Session,
        login_fn: Optional[Callable[[], LoginResult]] = None,
        ttl_seconds: Optional[int] = None,
        default_server_id: Optional[str] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.login_fn = login_fn
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.PROVIDER_TOKEN_TTL_S
        self.default_server_id = default_server_id or settings.PROVIDER_DEFAULT_SERVER_ID
        self.clock = clock

    def _read(self) -> Optional[ProviderSession]:
        row = get_setting(self.db, TOKEN_KEY)
        if row is None or not row.value:
            return None
        metadata = row.extra_metadata or {}
        return ProviderSession(
            token=row.value,
            server_id=str(metadata.get("serverid") or self.default_server_id),
            username=metadata.get("username"),
            expires_at=ensure_utc(row.expires_at),
        )

    def get_valid_token(self) -> ProviderSession:
        """
        Return a usable session, logging in when needed.

        Raises:
            SessionUnavailable: No usable token and login is not configured
            ProviderError: The login exchange itself failed
        """
        current = self._read()
        now = self.clock()
        if current is not None and not current.is_expired(now):
            return current

        if self.login_fn is None:
            reason = "No provider token found" if current is None else "Provider token expired"
            logger.error("[TOKEN] %s and automated login is not configured", reason)
            raise SessionUnavailable(reason)

        logger.info("[TOKEN] %s, logging in", "Token missing" if current is None else "Token expired")
        self.refresh()

        refreshed = self._read()
        if refreshed is None or refreshed.is_expired(self.clock()):
            raise SessionUnavailable("Provider token could not be refreshed")
        return refreshed

    def refresh(self) -> None:
        """Perform the login exchange and persist the new credential."""
        result = self.login_fn()
        now = self.clock()
        upsert_setting(
            self.db,
            TOKEN_KEY,
            value=result.token,
            expires_at=now + timedelta(seconds=self.ttl_seconds),
            metadata={
                "serverid": result.server_id or self.default_server_id,
                "username": result.username,
                "refreshed_at": now.isoformat(),
            },
        )
        self.db.commit()
        logger.info("[TOKEN] Session refreshed (serverid=%s)", result.server_id)

    def invalidate(self, rejected_token: Optional[str] = None) -> None:
        """
        Mark the stored token expired after the provider rejected it.

        When rejected_token is given, a token already replaced by another
        caller's refresh is not touched.
        """
        when = self.clock() - timedelta(seconds=1)
        if expire_setting(self.db, TOKEN_KEY, when, only_if_value=rejected_token):
            self.db.commit()
            logger.warning("[TOKEN] Stored token invalidated")
        elif rejected_token is not None:
            logger.info("[TOKEN] Rejected token already replaced, keeping the stored one")
