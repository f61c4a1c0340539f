# 2026-10-18  tests/fakes.py

"""In-process stand-ins for the upstream registry and the CouchDB server."""

import copy
import threading
import time
from typing import Any, Optional

import requests

from local_npm_core.errors import StoreError, UpstreamUnavailable
from local_npm_core.general import sha1_hex


REGISTRY = 'https://registry.example'
SKIM = 'https://skim.example/registry'


def tarball_url(name: str, version: str) -> str:
    bare = name.split('/')[-1]
    return f"{REGISTRY}/{name}/-/{bare}-{version}.tgz"


def make_document(
        name: str, tarballs: dict[str, bytes], **extra: Any
        ) -> dict[str, Any]:
    """A registry document whose versions point at `tarballs`' contents."""
    return {
        '_id': name,
        'name': name,
        'versions': {
            version: {
                'name': name,
                'version': version,
                'dist': {
                    'tarball': tarball_url(name, version),
                    'shasum': sha1_hex(content),
                },
            }
            for version, content in tarballs.items()
        },
        **extra,
    }


class FakeUpstream(object):
    remote = REGISTRY
    remote_skim = SKIM

    def __init__(self) -> None:
        self.documents: dict[str, dict[str, Any]] = {}
        self.files: dict[str, bytes] = {}
        self.json: dict[str, Any] = {}
        self.calls: list[tuple[str, str]] = []
        self.download_delay = 0.0
        self.info_failures = 0
        self.update_seq = 1000
        self._lock = threading.Lock()

    def publish(self, document: dict[str, Any],
                tarballs: Optional[dict[str, bytes]] = None) -> None:
        self.documents[document['name']] = copy.deepcopy(document)
        for version, content in (tarballs or {}).items():
            self.files[tarball_url(document['name'], version)] = content

    def _record(self, kind: str, arg: str) -> None:
        with self._lock:
            self.calls.append((kind, arg))

    def count(self, kind: str) -> int:
        return sum(1 for k, _ in self.calls if k == kind)

    def get_document(self, name: str) -> dict[str, Any]:
        self._record('document', name)
        if name not in self.documents:
            raise UpstreamUnavailable(f"{REGISTRY}/{name}", 'HTTP 404', 404)
        return copy.deepcopy(self.documents[name])

    def get_json(self, url: str) -> Any:
        self._record('json', url)
        if url not in self.json:
            raise UpstreamUnavailable(url, 'HTTP 404', 404)
        return copy.deepcopy(self.json[url])

    def get_tarball(self, url: str) -> bytes:
        self._record('tarball', url)
        time.sleep(self.download_delay)
        if url not in self.files:
            raise UpstreamUnavailable(url, 'HTTP 404', 404)
        return self.files[url]

    def change_feed_info(self) -> dict[str, Any]:
        self._record('info', SKIM)
        if self.info_failures > 0:
            self.info_failures -= 1
            raise UpstreamUnavailable(SKIM, 'connection refused')
        return {'db_name': 'registry', 'update_seq': self.update_seq}

    def proxy(self, method, path, query_string, headers, body):
        self._record('proxy', f"{method} {path}")
        return FakeResponse(
            201,
            headers={'Content-Type': 'application/json', 'Connection': 'close'},
            content=b'{"ok":true}'
        )

    @staticmethod
    def response_headers(r) -> dict[str, str]:
        return {k: v for k, v in r.headers.items() if k.lower() != 'connection'}

    def close(self) -> None:
        pass


class FakeHandle(object):
    def __init__(self, on_change, on_error) -> None:
        self.on_change = on_change
        self.on_error = on_error
        self.last_seq = 0
        self.cancelled = 0

    def cancel(self) -> None:
        self.cancelled += 1


class FakeMirror(object):
    """A replicating store that records replication starts."""

    def __init__(self, start_failures: int = 0) -> None:
        self.start_failures = start_failures
        self.handles: list[FakeHandle] = []

    def replicate_from(self, source_url, on_change, on_error) -> FakeHandle:
        if self.start_failures > 0:
            self.start_failures -= 1
            raise StoreError('replicator not running')
        handle = FakeHandle(on_change, on_error)
        self.handles.append(handle)
        return handle


class FakeResponse(object):
    def __init__(self, status_code: int = 200, json_data: Any = None,
                 headers: Optional[dict[str, str]] = None,
                 content: bytes = b'') -> None:
        self.status_code = status_code
        self._json = json_data
        self.headers = headers or {}
        self.content = content

    def json(self) -> Any:
        if self._json is None:
            raise ValueError('no JSON')
        return self._json

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")


class FakeSession(object):
    """
    Records requests and answers them from a queue of responses per
    (method, url).
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[FakeResponse]] = {}
        self.requests: list[tuple[str, str, Any]] = []
        self.closed = False

    def add(self, method: str, url: str, *responses: FakeResponse) -> None:
        self.routes.setdefault((method, url), []).extend(responses)

    def _answer(self, method: str, url: str, json: Any = None) -> FakeResponse:
        self.requests.append((method, url, json))
        queue = self.routes.get((method, url))
        if not queue:
            return FakeResponse(404, {'error': 'not_found'})
        # The last queued response keeps answering.
        return queue.pop(0) if len(queue) > 1 else queue[0]

    def get(self, url, **kwargs):
        return self._answer('GET', url)

    def head(self, url, **kwargs):
        return self._answer('HEAD', url)

    def put(self, url, json=None, **kwargs):
        return self._answer('PUT', url, json)

    def post(self, url, json=None, **kwargs):
        return self._answer('POST', url, json)

    def close(self) -> None:
        self.closed = True
