"""
HTTP client for the account and score service.
"""
import logging
from typing import Any, Dict, List, Optional

import requests

from .difficulty import SCORE_CATEGORIES
from .models import AuthSession, GameScore, ScoreData, User
from .preferences import KeyValueStore, MemoryStore

logger = logging.getLogger(__name__)

SESSION_KEY = "session"


class ScoreServiceError(Exception):
    """Raised when the score service rejects a request or cannot be reached."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class ScoreClient:
    """Talks to the account/score service and keeps the signed-in session."""

    DEFAULT_TIMEOUT = 10

    def __init__(self, base_url: str, anon_key: str = "",
                 store: Optional[KeyValueStore] = None,
                 timeout: float = DEFAULT_TIMEOUT,
                 http: Optional[requests.Session] = None,
                 session_key: str = SESSION_KEY):
        self.base_url = base_url.rstrip('/')
        self.session_key = session_key
        self.anon_key = anon_key
        self.store = store if store is not None else MemoryStore()
        self.timeout = timeout
        self.http = http or requests.Session()
        self._session: Optional[AuthSession] = None
        self._restore_session()

    def _restore_session(self) -> None:
        payload = self.store.get(self.session_key)
        if isinstance(payload, dict):
            self._session = AuthSession.from_dict(payload)

    def _headers(self, access_token: Optional[str] = None) -> Dict[str, str]:
        return {
            'Content-Type': 'application/json',
            'Authorization': f"Bearer {access_token or self.anon_key}",
        }

    def _make_request(self, method: str, endpoint: str,
                      access_token: Optional[str] = None, **kwargs) -> Dict[str, Any]:
        """
        Send a request and decode the JSON body.

        Raises:
            ScoreServiceError: On network failure, a non-JSON body or a non-2xx status
        """
        url = f"{self.base_url}{endpoint}"
        try:
            response = self.http.request(
                method, url, headers=self._headers(access_token), timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            raise ScoreServiceError(f"Connection error for {method} {endpoint}: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if not response.ok:
            message = data.get('error') if isinstance(data, dict) else None
            raise ScoreServiceError(message or f"HTTP error! status: {response.status_code}",
                                    status=response.status_code)
        return data if isinstance(data, dict) else {'data': data}

    def signup(self, username: str, password: str) -> Dict[str, Any]:
        """
        Register a new account and sign in with it.

        Returns:
            Dictionary with success status, user and error message
        """
        try:
            self._make_request('POST', '/signup', json={'username': username, 'password': password})
        except ScoreServiceError as e:
            logger.error(f"Signup failed for {username}: {e}")
            return {'success': False, 'error': str(e)}
        return self.signin(username, password)

    def signin(self, username: str, password: str) -> Dict[str, Any]:
        try:
            data = self._make_request('POST', '/signin', json={'username': username, 'password': password})
        except ScoreServiceError as e:
            logger.error(f"Signin failed for {username}: {e}")
            return {'success': False, 'error': str(e)}

        session = AuthSession.from_dict(data)
        if session is None:
            logger.error(f"Signin response for {username} is missing token or user")
            return {'success': False, 'error': "Invalid response from score service"}

        self._session = session
        self.store.set(self.session_key, session.to_dict())
        logger.info(f"Signed in as {session.user.username}")
        return {'success': True, 'user': session.user}

    def signout(self) -> None:
        self._session = None
        self.store.delete(self.session_key)

    def check_session(self) -> bool:
        """Check the stored session against the service, dropping it if rejected."""
        if self._session is None:
            return False
        try:
            data = self._make_request('GET', '/check-session', access_token=self._session.access_token)
        except ScoreServiceError as e:
            logger.warning(f"Could not verify session: {e}")
            return False

        if not data.get('valid', False):
            logger.info("Stored session rejected by score service, signing out")
            self.signout()
            return False
        return True

    def get_current_user(self) -> Optional[User]:
        return self._session.user if self._session else None

    @property
    def is_signed_in(self) -> bool:
        return self._session is not None

    def save_score(self, score: ScoreData) -> bool:
        """
        Save a finished round. Errors are logged, never raised.

        Returns:
            True if the service accepted the score
        """
        if self._session is None:
            logger.warning("Cannot save score: no signed-in user")
            return False
        try:
            data = self._make_request(
                'POST', '/save-score', access_token=self._session.access_token, json=score.to_payload()
            )
        except ScoreServiceError as e:
            logger.error(f"Failed to save score: {e}")
            return False
        except Exception as e:
            logger.error(f"Unexpected error saving score: {e}", exc_info=True)
            return False

        success = bool(data.get('success', False))
        if success:
            logger.info(f"Score saved successfully: {score.to_payload()}")
        else:
            logger.error(f"Score service did not confirm save: {data}")
        return success

    def get_scores(self, category: str = 'all') -> List[GameScore]:
        """
        Fetch the leaderboard for a difficulty category.

        Raises:
            ValueError: If the category is unknown
        """
        if category not in SCORE_CATEGORIES:
            raise ValueError(f"Unknown score category: {category}")
        try:
            data = self._make_request('GET', '/scores', params={'difficulty': category})
        except ScoreServiceError as e:
            logger.error(f"Failed to fetch scores for {category}: {e}")
            return []
        return [GameScore.from_dict(item) for item in data.get('scores', []) if isinstance(item, dict)]

    def get_profile(self) -> Optional[Dict[str, Any]]:
        """
        Fetch the signed-in player's statistics and best games.

        Returns:
            Dictionary with 'user' stats and 'scores', or None if unavailable
        """
        if self._session is None:
            return None
        try:
            data = self._make_request('GET', '/profile', access_token=self._session.access_token)
        except ScoreServiceError as e:
            logger.error(f"Failed to fetch profile: {e}")
            return None
        return {
            'user': data.get('user', {}),
            'scores': [GameScore.from_dict(item) for item in data.get('scores', []) if isinstance(item, dict)],
        }

    def delete_account(self) -> Dict[str, Any]:
        if self._session is None:
            return {'success': False, 'error': "Not signed in"}
        try:
            self._make_request('DELETE', '/delete-account', access_token=self._session.access_token)
        except ScoreServiceError as e:
            logger.error(f"Failed to delete account: {e}")
            return {'success': False, 'error': str(e)}
        username = self._session.user.username
        self.signout()
        logger.info(f"Deleted account {username}")
        return {'success': True}


class ScoreAccounts:
    """
    Score service clients keyed by Discord user.

    Every player signs in separately and their session is stored under
    ``session:<user_id>``, so a round is saved to the account of the player
    who started it. All clients share one store and one HTTP session.
    """

    def __init__(self, base_url: str, anon_key: str = "",
                 store: Optional[KeyValueStore] = None,
                 timeout: float = ScoreClient.DEFAULT_TIMEOUT,
                 http: Optional[requests.Session] = None):
        self.base_url = base_url
        self.anon_key = anon_key
        self.store = store if store is not None else MemoryStore()
        self.timeout = timeout
        self.http = http or requests.Session()
        self._clients: Dict[int, ScoreClient] = {}
        # Leaderboard reads need no session
        self.public = self._make_client(f"{SESSION_KEY}:anonymous")

    def _make_client(self, session_key: str) -> ScoreClient:
        return ScoreClient(self.base_url, self.anon_key, store=self.store,
                           timeout=self.timeout, http=self.http, session_key=session_key)

    def for_user(self, user_id: int) -> ScoreClient:
        client = self._clients.get(user_id)
        if client is None:
            client = self._make_client(f"{SESSION_KEY}:{user_id}")
            self._clients[user_id] = client
        return client

    def get_scores(self, category: str = 'all') -> List[GameScore]:
        return self.public.get_scores(category)
