"""Background renewal of the client token."""

import threading
from typing import Optional

from .client import StoreClient
from .config import RefresherConfig
from .exceptions import VkvError
from .logging import get_logger

logger = get_logger(__name__)


class LeaseRefresher(threading.Thread):
    """Renew the token once less than half of its TTL is left.

    The thread only looks up and renews the token; it never lists, reads or
    writes secrets. ``stop()`` ends the loop at the next tick boundary.
    """

    def __init__(
        self,
        client: StoreClient,
        interval: float = 10.0,
        increment: int = 30,
    ):
        super().__init__(name="vkv-lease-refresher", daemon=True)
        self.client = client
        self.interval = interval
        self.increment = increment
        self._stopped = threading.Event()

    @classmethod
    def from_config(cls, client: StoreClient, config: RefresherConfig) -> "LeaseRefresher":
        return cls(client, interval=config.interval, increment=config.increment)

    def tick(self) -> Optional[bool]:
        """Run one lookup and renew if needed.

        Returns:
            True if the token was renewed, False if no renewal was due and
            None if the lookup or renewal failed
        """
        try:
            token = self.client.lookup_token()
            creation_ttl = int(token.get("creation_ttl") or 0)
            ttl = int(token.get("ttl") or 0)
        except (VkvError, TypeError, ValueError) as e:
            logger.warning(f"could not look up token: {e}", extra={"event_type": "token_lookup_failed"})
            return None

        if creation_ttl <= 0 or ttl >= creation_ttl / 2:
            logger.debug(
                f"token ttl {ttl}s of {creation_ttl}s, no renewal needed",
                extra={"event_type": "token_checked"},
            )
            return False

        try:
            self.client.renew_token(self.increment)
        except VkvError as e:
            logger.warning(f"could not renew token: {e}", extra={"event_type": "token_renew_failed"})
            return None
        logger.debug(
            f"renewed token by {self.increment}s (ttl was {ttl}s of {creation_ttl}s)",
            extra={"event_type": "token_renewed"},
        )
        return True

    def run(self) -> None:
        while not self._stopped.wait(self.interval):
            self.tick()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stopped.set()
        if self.is_alive():
            self.join(timeout)
