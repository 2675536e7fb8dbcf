"""HTTP client for the remote script document store."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import unquote, urlsplit

import httpx
from lxml import etree

from .config import config
from .exceptions import HttpStatusError, ListingError, NetworkError
from .utils import ACCEPT_ALL, CONTENT_TYPE_JSON

logger = logging.getLogger(__name__)

DAV_NS = "{DAV:}"


def parse_multistatus(content: bytes, url: str = "") -> list[str]:
    """Extract the resource paths of a WebDAV ``multistatus`` document.

    Args:
        content: Raw PROPFIND response body
        url: URL the listing was requested for (used in errors)

    Returns:
        Unquoted URL paths in document order; collections end with ``/``

    Raises:
        ListingError: If the body is not a multistatus document
    """
    parser = etree.XMLParser(resolve_entities=False, no_network=True)
    try:
        tree = etree.fromstring(content, parser=parser)
    except etree.XMLSyntaxError as e:
        raise ListingError(url, str(e)) from e
    if tree is None or tree.tag != f"{DAV_NS}multistatus":
        raise ListingError(url, "not a multistatus document")

    paths = []
    for response in tree.iter(f"{DAV_NS}response"):
        href = (response.findtext(f"{DAV_NS}href") or "").strip()
        if not href:
            continue
        path = unquote(urlsplit(href).path)
        is_collection = response.find(f".//{DAV_NS}collection") is not None
        if is_collection and not path.endswith("/"):
            path += "/"
        paths.append(path)
    return paths


class ScriptClient:
    """Thin wrapper around :class:`httpx.Client` used for every transfer.

    Credential acquisition is out of scope: either pass ``auth`` (anything
    httpx accepts) or an already-authenticated ``client``. When neither is
    given, ``B6P_USERNAME``/``B6P_PASSWORD`` are used for basic auth if set.

    Transfers are never retried; a failed request is reported to the caller.
    """

    def __init__(
        self,
        client: httpx.Client | None = None,
        auth: Any = None,
        timeout: float | None = None,
    ):
        """Initialize the client.

        Args:
            client: Optional preconfigured httpx client (tests inject one
                backed by ``httpx.MockTransport``)
            auth: Optional httpx auth object or ``(user, password)`` tuple
            timeout: Request timeout in seconds (uses config if not provided)
        """
        self.timeout = timeout if timeout is not None else config.timeout
        if auth is None and config.username and config.password:
            auth = (config.username, config.password)
        self.auth = auth
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                auth=self.auth,
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
            )
            self._owns_client = True
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if (
            self._owns_client
            and self._client is not None
            and not self._client.is_closed
        ):
            self._client.close()
            self._client = None

    def __enter__(self) -> ScriptClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _error_detail(self, response: httpx.Response) -> str:
        """Extract a short human readable detail from an error response."""
        detail = response.reason_phrase or ""
        try:
            text = response.text.strip()
        except (UnicodeDecodeError, httpx.ResponseNotRead):
            text = ""
        if text:
            text = text if len(text) <= 200 else text[:200] + "..."
            detail = f"{detail} {text}".strip()
        return detail

    def request(
        self,
        method: str,
        url: str,
        raise_for_status: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a single request.

        Args:
            method: HTTP method
            url: Absolute URL
            raise_for_status: Raise :class:`HttpStatusError` on non-2xx
            **kwargs: Additional arguments passed to httpx

        Returns:
            The httpx response

        Raises:
            HttpStatusError: If the response is not 2xx and raise_for_status
            NetworkError: If no response was received
        """
        client = self._get_client()
        logger.debug("%s %s", method, url)
        try:
            response = client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            raise NetworkError(f"Network error during {method} {url}: {e}") from e

        if raise_for_status:
            try:
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise HttpStatusError(
                    response.status_code, url, self._error_detail(response)
                ) from e
        return response

    def head(self, url: str, headers: dict[str, str] | None = None) -> httpx.Response:
        """HEAD a resource without raising on its status.

        Callers decide what a 404 or 304 means in their context.
        """
        return self.request("HEAD", url, raise_for_status=False, headers=headers)

    def get(self, url: str) -> httpx.Response:
        """GET a resource, raising on non-2xx."""
        return self.request("GET", url, headers={"Accept": ACCEPT_ALL})

    def put(
        self,
        url: str,
        content: bytes,
        content_type: str = CONTENT_TYPE_JSON,
    ) -> httpx.Response:
        """PUT raw bytes to a resource, raising on non-2xx."""
        return self.request(
            "PUT", url, content=content, headers={"Content-Type": content_type}
        )

    def delete(self, url: str) -> httpx.Response:
        """DELETE a resource, raising on non-2xx. Collections go recursively."""
        return self.request("DELETE", url)

    def propfind(self, url: str, depth: str = "infinity") -> list[str]:
        """List a collection and everything below it.

        Args:
            url: Collection URL, ending with ``/``
            depth: WebDAV ``Depth`` header

        Returns:
            URL paths as returned by :func:`parse_multistatus`

        Raises:
            HttpStatusError: If the listing is answered with a non-2xx status
            ListingError: If the body cannot be parsed
        """
        response = self.request(
            "PROPFIND", url, headers={"Depth": depth, "Accept": ACCEPT_ALL}
        )
        return parse_multistatus(response.content, url)
