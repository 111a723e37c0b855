"""Hand-off to the component that actually issues the book token.

A minter is any object with `mint(identity, category) -> dict`. It is called
only after the claim has been recorded, and a failure is reported back to the
caller without undoing that record: the grant is at-least-once, the mint is
whatever the minting service guarantees.
"""
import logging
import threading
from datetime import datetime, timezone

from .errors import MintFailed
from . import http_client

logger = logging.getLogger(__name__)


class LoggingMinter:
    """Records grants in memory and logs them; used for development and tests."""

    def __init__(self):
        self.grants = []
        self._lock = threading.Lock()

    def mint(self, identity, category) -> dict:
        receipt = {'identity': identity, 'category': category, 'granted_at': datetime.now(timezone.utc).isoformat()}
        with self._lock:
            self.grants.append(receipt)
        logger.info('Mint granted to %s for category %s', identity, category)
        return receipt


class HttpMinter:
    def __init__(self, url: str, retries: int = 3, timeout: int = 15):
        self.url = url
        self.retries = retries
        self.timeout = timeout

    def mint(self, identity, category) -> dict:
        status, body = http_client.post_json(self.url, {'identity': identity, 'category': category},
                                             retries=self.retries, timeout=self.timeout)
        if status == 0:
            raise MintFailed(f'minting service at {self.url} did not respond')
        if not 200 <= status < 300:
            raise MintFailed(f'minting service returned {status}: {body.get("error") or body}')
        return body
