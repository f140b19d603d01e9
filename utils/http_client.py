"""HTTP client for outbound notification requests."""
import time
import logging
import requests

logger = logging.getLogger("poolwatch.http")

DEFAULT_TIMEOUT = 10


class APIError(Exception):
    """HTTP request error with status code and response body."""
    def __init__(self, message, status_code=None, response_body=None, source=None, retryable=True):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body
        self.source = source
        self.retryable = retryable


class HTTPClient:
    """Thin JSON-over-HTTP client. One attempt per call; retries live in utils.retry."""

    RETRYABLE_STATUS = {408, 425, 429, 500, 502, 503, 504}

    def __init__(self, timeout=DEFAULT_TIMEOUT, user_agent="poolwatch-alerter/1.0", session=None):
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent})

    def send_json(self, url, payload, method="POST", headers=None, timeout=None):
        """Send `payload` as JSON. Returns the response; raises APIError on failure."""
        method = (method or "POST").upper()
        req_headers = {"Content-Type": "application/json"}
        req_headers.update(headers or {})

        start = time.time()
        try:
            resp = self.session.request(
                method, url, json=payload, headers=req_headers,
                timeout=timeout or self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise APIError(f"Timeout calling {url}: {e}", source=url) from e
        except requests.exceptions.RequestException as e:
            raise APIError(f"Request to {url} failed: {e}", source=url) from e

        latency = int((time.time() - start) * 1000)
        logger.debug(f"{method} {url} → {resp.status_code} ({latency}ms)")

        if resp.status_code >= 400:
            # 4xx means the payload or credentials are wrong; retrying will not help
            retryable = resp.status_code >= 500 or resp.status_code in self.RETRYABLE_STATUS
            raise APIError(
                f"HTTP {resp.status_code} from {url}",
                status_code=resp.status_code,
                response_body=resp.text,
                source=url,
                retryable=retryable,
            )
        return resp
