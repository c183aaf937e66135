"""HTTP client for the static CDN: fetch raw section archives."""

import logging
import time
from typing import Optional

import httpx

from speedload.cdn.sections import section_file_name
from speedload.config import get_settings

log = logging.getLogger(__name__)

RETRY_STATUSES = (429, 502, 503)


class CDNClient:
    """
    Fetches section{N}.dat blobs from {base_url}/{version}/{package}/.
    Transport failures are not retried beyond transient statuses; they propagate as httpx errors.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        max_attempts: int = 5,
    ) -> None:
        settings = get_settings()
        self._base_url = (base_url or settings.cdn_url).rstrip("/")
        self._timeout = timeout if timeout is not None else settings.request_timeout
        self._max_attempts = max(1, max_attempts)
        log.debug("CDN client base_url=%s", self._base_url)

    @property
    def base_url(self) -> str:
        return self._base_url

    def section_url(self, version: str, package: str, section_id: int) -> str:
        parts = [self._base_url, version.strip("/")]
        if package.strip("/"):
            parts.append(package.strip("/"))
        parts.append(section_file_name(section_id))
        return "/".join(parts)

    def fetch_section(self, version: str, package: str, section_id: int) -> bytes:
        """GET one raw section archive. Retries on 429/502/503."""
        return self.fetch(self.section_url(version, package, section_id))

    def fetch(self, url: str) -> bytes:
        """GET url and return the body. Retries on 429/502/503."""
        log.debug("GET %s", url)
        for attempt in range(self._max_attempts):
            with httpx.Client(timeout=self._timeout) as client:
                r = client.get(url)
            if r.status_code in RETRY_STATUSES and attempt < self._max_attempts - 1:
                retry_after = r.headers.get("Retry-After")
                if retry_after and retry_after.isdigit():
                    delay = min(65, int(retry_after))
                else:
                    delay = 2 * (2 ** attempt)
                log.warning(
                    "GET %s: %s, retry in %ds (attempt %d/%d)",
                    url, r.status_code, delay, attempt + 1, self._max_attempts,
                )
                # Connection is closed before backing off
                time.sleep(delay)
                continue
            r.raise_for_status()
            log.debug("GET %s returned %d bytes", url, len(r.content))
            return r.content
