import threading
import time
from typing import Callable, Dict, Tuple


class SeenNonceCache:
    """
    Process-local record of recently presented authorization nonces.

    - Keyed by (payer, nonce); entries expire after ``ttl_seconds``.
    - Rejects obvious replays before they reach settlement. The settlement
      system remains the authority on nonce uniqueness.
    - Nonces that never reached settlement are discarded so the same
      authorization can be submitted again.
    """

    def __init__(
        self,
        ttl_seconds: int,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        self._ttl = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._expiry: Dict[Tuple[str, str], float] = {}

    def add(self, payer: str, nonce: str) -> bool:
        """
        Record a nonce. Returns False if it was already seen and has not
        expired yet.
        """
        key = (payer.lower(), nonce.lower())
        now = self._clock()
        with self._lock:
            self._sweep(now)
            if key in self._expiry:
                return False
            self._expiry[key] = now + self._ttl
            return True

    def discard(self, payer: str, nonce: str) -> None:
        """Forget a nonce whose authorization never reached settlement."""
        with self._lock:
            self._expiry.pop((payer.lower(), nonce.lower()), None)

    def __len__(self) -> int:
        with self._lock:
            self._sweep(self._clock())
            return len(self._expiry)

    def _sweep(self, now: float) -> None:
        expired = [k for k, expires_at in self._expiry.items() if expires_at <= now]
        for k in expired:
            del self._expiry[k]
