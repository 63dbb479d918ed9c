import threading
from typing import Dict
from urllib.parse import urlparse
import requests
import requests.adapters

USER_AGENT = "objtransfer/0.1"


class ConnectionManager:
    """Pooled HTTP sessions for the byte streams of concurrent transfers.

    One session per storage host; its pool is sized to the number of
    transfers that may stream at once.
    """

    def __init__(self, max_connections_per_host: int = 10, max_retries: int = 0):
        self.max_connections_per_host = max_connections_per_host
        self.max_retries = max_retries
        self._sessions: Dict[str, requests.Session] = {}
        self._lock = threading.Lock()

    def get_session_for_host(self, url: str) -> requests.Session:
        host = urlparse(url).netloc
        with self._lock:
            session = self._sessions.get(host)
            if session is None:
                session = self._sessions[host] = self._new_session()
            return session

    def _new_session(self) -> requests.Session:
        session = requests.Session()
        session.headers["User-Agent"] = USER_AGENT
        # Retries stay off: a half-sent part body cannot be replayed
        adapter = requests.adapters.HTTPAdapter(
            pool_connections=1,
            pool_maxsize=self.max_connections_per_host,
            max_retries=self.max_retries,
        )
        for scheme in ("http://", "https://"):
            session.mount(scheme, adapter)
        return session

    @property
    def session_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def close_all_sessions(self):
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close_all_sessions()
        return False
