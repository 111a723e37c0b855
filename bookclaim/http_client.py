import requests
import time
import logging
from typing import Optional, Tuple

logger = logging.getLogger(__name__)


def post_json(url: str, payload: dict, headers: Optional[dict]=None, retries: int=3, timeout: int=15) -> Tuple[int, dict]:
    """POST a JSON body with retries on connection errors. Returns (status_code, json_body_or_empty).

    A status code of 0 means no response was received after all attempts.
    """
    hdrs = headers.copy() if headers else {}
    last_exc = None
    for attempt in range(retries):
        try:
            r = requests.post(url, json=payload, headers=hdrs, timeout=timeout)
            try:
                body = r.json()
            except ValueError:
                body = {}
            return r.status_code, body if isinstance(body, dict) else {'result': body}
        except requests.RequestException as e:
            last_exc = e
            logger.warning('POST %s failed (attempt %s): %s', url, attempt+1, e)
            time.sleep(1 + attempt)
    logger.error('POST %s failed after %s attempts: %s', url, retries, last_exc)
    return 0, {}
