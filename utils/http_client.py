"""Session-backed JSON client for the PuppetDB query API."""
import time
import logging
import requests

logger = logging.getLogger("nodealert.http")


class APIError(Exception):
    """A query failed: bad status, transport error or undecodable body."""
    def __init__(self, message, status_code=None, response_body=None, url=None):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body
        self.url = url


class HTTPClient:
    """Retries transient failures with backoff, honours Retry-After and a shared rate limiter.

    TLS settings are applied to the session once: `verify` is a bool or a CA
    bundle path, `cert` a client certificate path or (cert, key) pair.
    """

    RETRYABLE_STATUS = {429, 500, 502, 503, 504}
    MAX_BACKOFF = 60

    def __init__(self, base_url, rate_limiter=None, timeout=30, max_retries=3,
                 verify=True, cert=None):
        self.base_url = base_url.rstrip("/")
        self.rate_limiter = rate_limiter
        self.timeout = timeout
        self.max_retries = max_retries
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": "nodealert/1.0", "Accept": "application/json"})
        self.session.verify = verify
        if cert:
            self.session.cert = cert

    def get(self, path="", params=None):
        """GET a path relative to base_url and return the decoded JSON body."""
        url = f"{self.base_url}/{path.lstrip('/')}" if path else self.base_url
        last_error = None
        for attempt in range(self.max_retries + 1):
            final = attempt == self.max_retries
            try:
                resp = self._send(url, params)
            except requests.exceptions.RequestException as e:
                logger.warning(f"GET {url} failed: {e} (attempt {attempt + 1})")
                last_error = APIError(f"Request to {url} failed: {e}", url=url)
                if not final:
                    time.sleep(self._backoff(attempt))
                continue

            if resp.status_code == 200:
                return self._decode(resp, url)
            if resp.status_code not in self.RETRYABLE_STATUS:
                raise APIError(f"HTTP {resp.status_code} from {url}: {self._error_text(resp)}",
                               status_code=resp.status_code, response_body=resp.text, url=url)

            delay = self._backoff(attempt, resp.headers.get("Retry-After"))
            logger.warning(f"HTTP {resp.status_code} from {url}, retrying in {delay:.1f}s "
                           f"(attempt {attempt + 1})")
            last_error = APIError(f"HTTP {resp.status_code} from {url}",
                                  status_code=resp.status_code, response_body=resp.text, url=url)
            if not final:
                time.sleep(delay)

        raise last_error or APIError(f"Max retries exceeded for {url}", url=url)

    def close(self):
        self.session.close()

    def _send(self, url, params):
        if self.rate_limiter:
            self.rate_limiter.wait()
        start = time.monotonic()
        resp = self.session.request("GET", url, params=params, timeout=self.timeout)
        logger.debug(f"GET {url} → {resp.status_code} ({(time.monotonic() - start) * 1000:.0f}ms)")
        return resp

    def _backoff(self, attempt, retry_after=None):
        if retry_after:
            try:
                return min(float(retry_after), self.MAX_BACKOFF)
            except ValueError:
                pass
        return min(2 ** attempt * 2, self.MAX_BACKOFF)

    @staticmethod
    def _decode(resp, url):
        try:
            return resp.json()
        except ValueError:
            raise APIError(f"Invalid JSON from {url}", status_code=resp.status_code,
                           response_body=resp.text, url=url) from None

    @staticmethod
    def _error_text(resp):
        # PuppetDB reports query errors as a plain-text body
        text = (resp.text or "").strip()
        return text.splitlines()[0][:200] if text else "no body"
