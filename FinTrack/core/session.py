"""Server-side session store.

Maps opaque session identifiers to the Google token bundle and profile of the
signed-in user. Identifiers reach the server either in the ``fintrack_sid``
cookie or, when the browser refuses to keep third-party cookies, in the
``X-Session-ID`` header. Sessions expire after 30 days without use.
"""
import dataclasses
import datetime
import logging
import secrets
import threading
from typing import Callable, Dict, Optional

from .models import Profile, TokenBundle

SESSION_COOKIE_NAME: str = 'fintrack_sid'
SESSION_HEADER_NAME: str = 'X-Session-ID'
SESSION_MAX_AGE: datetime.timedelta = datetime.timedelta(days=30)


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


@dataclasses.dataclass
class SessionRecord:
    """Server-side state of one signed-in client."""
    id: str
    tokens: TokenBundle
    profile: Profile
    created: datetime.datetime
    last_used: datetime.datetime


class SessionStore:
    """Thread-safe in-process session store with a sliding expiry window."""

    def __init__(self, max_age: datetime.timedelta = SESSION_MAX_AGE,
                 clock: Callable[[], datetime.datetime] = utcnow) -> None:
        self._lock = threading.Lock()
        self._sessions: Dict[str, SessionRecord] = {}
        self.max_age = max_age
        self._clock = clock

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def create(self, tokens: TokenBundle, profile: Profile) -> SessionRecord:
        """Store ``tokens`` and ``profile`` under a new identifier.

        Sessions that expired without being looked up again are evicted first.
        """
        self.purge_expired()
        now = self._clock()
        record = SessionRecord(
            id=secrets.token_urlsafe(32),
            tokens=tokens,
            profile=profile,
            created=now,
            last_used=now,
        )
        with self._lock:
            self._sessions[record.id] = record
        logging.debug(f'Session created for {profile.email}.')
        return record

    def get(self, session_id: Optional[str]) -> Optional[SessionRecord]:
        """Return the live session for ``session_id`` and extend its expiry.

        Unknown and expired identifiers return None; expired records are removed.
        """
        if not session_id:
            return None

        now = self._clock()
        with self._lock:
            record = self._sessions.get(session_id)
            if record is None:
                return None
            if now - record.last_used > self.max_age:
                del self._sessions[session_id]
                logging.debug('Session expired and was removed.')
                return None
            record.last_used = now
            return record

    def resolve(self, cookie_id: Optional[str] = None, header_id: Optional[str] = None) -> Optional[SessionRecord]:
        """Resolve a session from the cookie, falling back to the header when no cookie arrived."""
        if cookie_id:
            return self.get(cookie_id)
        return self.get(header_id)

    def update_tokens(self, session_id: str, tokens: TokenBundle) -> None:
        """Replace the token bundle of a live session, e.g. after a transparent refresh."""
        with self._lock:
            record = self._sessions.get(session_id)
            if record is not None:
                record.tokens = tokens

    def destroy(self, session_id: Optional[str]) -> bool:
        """Remove a session. Returns True if it existed."""
        if not session_id:
            return False
        with self._lock:
            existed = self._sessions.pop(session_id, None) is not None
        if existed:
            logging.debug('Session destroyed.')
        return existed

    def purge_expired(self) -> int:
        """Remove every expired session and return how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, v in self._sessions.items() if now - v.last_used > self.max_age]
            for k in expired:
                del self._sessions[k]
        if expired:
            logging.debug(f'Purged {len(expired)} expired session(s).')
        return len(expired)


session_store: SessionStore = SessionStore()
