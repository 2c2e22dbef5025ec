"""
Auth state for the views: one provider per browser session, and a gate that
protected views open while they are shown.
"""
import logging
from typing import Callable, Dict, Optional
from urllib.parse import urlencode

from src.routes import SIGN_IN_PATH

logger = logging.getLogger(__name__)

LOADING = "loading"
AUTHENTICATED = "authenticated"
UNAUTHENTICATED = "unauthenticated"


class AuthStateProvider:
    """
    Wraps the Supabase auth client.

    Views subscribe here rather than on the client; the provider holds a single
    client-side listener while anyone is subscribed and fans events out.
    """

    def __init__(self, client):
        self.client = client
        self._listeners: Dict[int, Callable] = {}
        self._next_token = 0
        self._subscription = None

    # ============= One-shot checks =============

    def current_session(self):
        try:
            return self.client.auth.get_session()
        except Exception as e:
            logger.error(f"Error getting current session: {e}")
            return None

    def current_user(self):
        try:
            response = self.client.auth.get_user()
        except Exception as e:
            logger.error(f"Error getting current user: {e}")
            return None
        return getattr(response, "user", None) if response else None

    def current_user_id(self) -> Optional[str]:
        user = self.current_user()
        return str(user.id) if user else None

    def current_email(self) -> Optional[str]:
        session = self.current_session()
        user = getattr(session, "user", None)
        return getattr(user, "email", None)

    # ============= Change notifications =============

    def subscribe(self, callback: Callable) -> Callable[[], None]:
        """
        Register callback(event, session) for auth changes.

        Returns:
            unsubscribe function; calling it twice is harmless
        """
        token = self._next_token
        self._next_token += 1
        self._listeners[token] = callback
        if self._subscription is None:
            self._subscription = self.client.auth.on_auth_state_change(self._dispatch)

        def unsubscribe():
            self._listeners.pop(token, None)
            if not self._listeners and self._subscription is not None:
                self._subscription.unsubscribe()
                self._subscription = None

        return unsubscribe

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def _dispatch(self, event, session) -> None:
        for callback in list(self._listeners.values()):
            callback(event, session)

    # ============= Account actions =============

    def sign_in(self, email: str, password: str):
        """Returns the new session, or None if the credentials were rejected."""
        try:
            response = self.client.auth.sign_in_with_password({"email": email, "password": password})
        except Exception as e:
            logger.error(f"Sign-in failed for {email}: {e}")
            return None
        return getattr(response, "session", None)

    def sign_up(self, email: str, password: str) -> bool:
        try:
            self.client.auth.sign_up({"email": email, "password": password})
            return True
        except Exception as e:
            logger.error(f"Sign-up failed for {email}: {e}")
            return False

    def sign_out(self) -> bool:
        try:
            self.client.auth.sign_out()
            return True
        except Exception as e:
            logger.error(f"Error signing out: {e}")
            return False


class AuthGate:
    """
    Guards one protected view.

    open() subscribes and runs the first check; close() unsubscribes when the
    view goes away. Until the first check resolves the state is `loading`.
    """

    def __init__(self, provider: AuthStateProvider, location: str, sign_in_path: str = SIGN_IN_PATH):
        self.provider = provider
        self.location = location
        self.sign_in_path = sign_in_path
        self.state = LOADING
        self._unsubscribe: Optional[Callable[[], None]] = None

    def open(self) -> str:
        if self._unsubscribe is None:
            self._unsubscribe = self.provider.subscribe(self._on_change)
        self._apply(self.provider.current_session())
        return self.state

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    @property
    def is_open(self) -> bool:
        return self._unsubscribe is not None

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def _on_change(self, event, session) -> None:
        logger.debug(f"Auth event {event} for {self.location}")
        self._apply(session)

    def _apply(self, session) -> None:
        self.state = AUTHENTICATED if session else UNAUTHENTICATED

    def redirect_path(self) -> Optional[str]:
        """Where to send the visitor, keeping the requested location for after sign-in."""
        if self.state != UNAUTHENTICATED:
            return None
        return f"{self.sign_in_path}?{urlencode({'next': self.location})}"
