# 2026-10-15  local_npm_core/upstream.py

import logging
from collections.abc import Mapping
from typing import Any, Optional
from urllib.parse import quote

import requests

from local_npm_core.errors import UpstreamUnavailable
from local_npm_core.network import Session
from local_npm_core.node_ecosys import PackageDocumentJson


logger = logging.getLogger(__name__)

# Hop-by-hop and length headers are recomputed by the server; never forward.
_UNFORWARDED_HEADERS = frozenset([
    'connection', 'keep-alive', 'proxy-authenticate', 'proxy-authorization',
    'te', 'trailers', 'transfer-encoding', 'upgrade',
    'content-length', 'content-encoding', 'host',
])


def _forwardable(headers: Mapping[str, str]) -> dict[str, str]:
    return {
        k: v for k, v in headers.items()
        if k.lower() not in _UNFORWARDED_HEADERS
    }


class UpstreamRegistry(object):
    """
    The authoritative registry (`remote`) and its change feed
    (`remote_skim`), reached over HTTP.
    """

    def __init__(
            self,
            remote: str,
            remote_skim: str,
            session: Optional[requests.Session] = None,
            timeout: Optional[float | tuple[float, float]] = None
            ) -> None:
        self.remote = remote.rstrip('/')
        self.remote_skim = remote_skim.rstrip('/')
        self._session = session if session is not None else Session(timeout)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.remote!r})"

    def _get(self, url: str, **kwargs) -> requests.Response:
        try:
            r = self._session.get(url, **kwargs)
        except requests.RequestException as e:
            raise UpstreamUnavailable(url, str(e)) from e
        if r.status_code != 200:
            raise UpstreamUnavailable(
                url, f"HTTP {r.status_code}", r.status_code
            )
        return r

    def get_json(self, url: str) -> Any:
        r = self._get(url, headers={'Accept': 'application/json'})
        try:
            return r.json()
        except ValueError as e:
            raise UpstreamUnavailable(url, f"malformed JSON: {e}") from e

    def get_document(self, name: str) -> PackageDocumentJson:
        """
        Fetch a package document from the registry's metadata endpoint.
        Scoped names are sent as `@scope%2Fname`, as npm does.
        """
        url = f"{self.remote}/{quote(name, safe='@')}"
        doc = self.get_json(url)
        if not isinstance(doc, dict) or \
                not isinstance(doc.get('versions'), dict):
            raise UpstreamUnavailable(url, "malformed package document")
        doc.setdefault('name', name)
        return doc

    def get_tarball(self, url: str) -> bytes:
        return self._get(url).content

    def change_feed_info(self) -> dict[str, Any]:
        """Summary of the change feed database, including `update_seq`."""
        info = self.get_json(self.remote_skim)
        if not isinstance(info, dict) or 'update_seq' not in info:
            raise UpstreamUnavailable(
                self.remote_skim, "change feed info has no update_seq"
            )
        return info

    def proxy(
            self,
            method: str,
            path: str,
            query_string: bytes,
            headers: Mapping[str, str],
            body: bytes
            ) -> requests.Response:
        """
        Pass a client request through to the registry unchanged
        (login, search, publish...). Returns the raw upstream response.
        """
        url = f"{self.remote}{path}"
        if query_string:
            url += '?' + query_string.decode('latin-1')
        try:
            return self._session.request(
                method,
                url,
                headers=_forwardable(headers),
                data=body or None,
                allow_redirects=False,
            )
        except requests.RequestException as e:
            raise UpstreamUnavailable(url, str(e)) from e

    @staticmethod
    def response_headers(r: requests.Response) -> dict[str, str]:
        return _forwardable(r.headers)

    def close(self) -> None:
        self._session.close()
