import threading
import time
from collections import Counter
from typing import Iterable, Optional


class VisitorTracker:
    """In-memory page-view counter and IP block list.

    Independent of game state; only the request hooks and the socket
    connect handler consult it.
    """

    def __init__(self, blocked: Iterable[str] = ()):
        self._lock = threading.Lock()
        self._blocked = set(blocked)
        self._paths: Counter = Counter()
        self._visitors = set()
        self._last_seen: Optional[float] = None

    def is_allowed(self, client_address: Optional[str]) -> bool:
        if not client_address:
            return True
        with self._lock:
            return client_address not in self._blocked

    def record_page_view(self, path: str, client_address: Optional[str], user_agent: Optional[str]) -> None:
        with self._lock:
            self._paths[path] += 1
            self._visitors.add((client_address, user_agent))
            self._last_seen = time.time()

    def block_ip(self, client_address: str) -> None:
        with self._lock:
            self._blocked.add(client_address)

    def unblock_ip(self, client_address: str) -> None:
        with self._lock:
            self._blocked.discard(client_address)

    def stats(self):
        with self._lock:
            return {
                'page_views': sum(self._paths.values()),
                'unique_visitors': len(self._visitors),
                'top_paths': self._paths.most_common(10),
                'blocked_ips': sorted(self._blocked),
                'last_seen': self._last_seen,
            }
