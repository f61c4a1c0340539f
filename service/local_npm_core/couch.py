# 2026-10-15  local_npm_core/couch.py

"""
The secondary mirror: a database on a CouchDB-compatible server.

Replication into it is done by the server itself (`POST /_replicate` with
`continuous`); this module only starts, watches and cancels it.
"""

import logging
import threading
from typing import Any, Optional
from urllib.parse import quote

import requests

from local_npm_core.errors import DocumentNotFound, StoreError
from local_npm_core.general import seq_number
from local_npm_core.network import Session
from local_npm_core.node_ecosys import PackageDocumentJson
from local_npm_core.stores import ChangeCallback, ErrorCallback


logger = logging.getLogger(__name__)

REPLICATION_BATCH_SIZE = 200
PROGRESS_POLL_INTERVAL = 5.0  # seconds
_PUT_ATTEMPTS = 3


class CouchReplication(object):
    """
    A continuous replication running on the CouchDB server.

    Progress is read from `/_active_tasks` on a daemon thread and reported
    through `on_change` whenever the checkpointed sequence advances. A failed
    poll is reported through `on_error`; the server keeps retrying the
    replication on its own, so polling simply goes on.
    """

    def __init__(
            self,
            session: requests.Session,
            server_url: str,
            body: dict[str, Any],
            on_change: ChangeCallback,
            on_error: ErrorCallback,
            poll_interval: float = PROGRESS_POLL_INTERVAL
            ) -> None:
        self._session = session
        self._server_url = server_url
        self._body = body
        self._on_change = on_change
        self._on_error = on_error
        self._poll_interval = poll_interval
        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.replication_id: Optional[str] = None
        self.last_seq = 0

    def start(self) -> 'CouchReplication':
        url = f"{self._server_url}/_replicate"
        try:
            r = self._session.post(url, json=self._body)
            r.raise_for_status()
            self.replication_id = r.json().get('_local_id')
        except (requests.RequestException, ValueError) as e:
            raise StoreError(f"cannot start replication at {url}: {e}") from e
        self._thread = threading.Thread(
            target=self._watch, name='couch-replication', daemon=True
        )
        self._thread.start()
        return self

    def _find_task(
            self, tasks: list[dict[str, Any]]
            ) -> Optional[dict[str, Any]]:
        for task in tasks:
            if task.get('type') != 'replication':
                continue
            if self.replication_id and \
                    task.get('replication_id') == self.replication_id:
                return task
            if task.get('target', '').rstrip('/') == \
                    self._body['target'].rstrip('/'):
                return task
        return None

    def poll(self) -> None:
        """Read the replication task once and report progress."""
        r = self._session.get(f"{self._server_url}/_active_tasks")
        r.raise_for_status()
        task = self._find_task(r.json())
        if task is None:
            return
        seq = seq_number(
            task.get('through_seq') or task.get('checkpointed_source_seq')
        )
        if seq > self.last_seq:
            self.last_seq = seq
            self._on_change({
                'last_seq': seq,
                'docs_written': task.get('docs_written', 0),
            })

    def _watch(self) -> None:
        while not self._stopped.wait(self._poll_interval):
            try:
                self.poll()
            except (requests.RequestException, ValueError) as e:
                self._on_error(e)

    def cancel(self) -> None:
        if self._stopped.is_set():
            return
        self._stopped.set()
        try:
            self._session.post(
                f"{self._server_url}/_replicate",
                json={**self._body, 'cancel': True}
            ).raise_for_status()
        except requests.RequestException as e:
            logger.warning("could not cancel replication cleanly: %s", e)
        if self._thread is not None and \
                self._thread is not threading.current_thread():
            self._thread.join(timeout=self._poll_interval)


class CouchDocumentStore(object):
    """Document store backed by one database of a CouchDB-compatible server."""

    def __init__(
            self,
            url: str,
            session: Optional[requests.Session] = None,
            timeout: Optional[float | tuple[float, float]] = None
            ) -> None:
        self.url = url.rstrip('/')
        self.server_url, self.db_name = self.url.rsplit('/', 1)
        self._session = session if session is not None else Session(timeout)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.url!r})"

    def _doc_url(self, name: str) -> str:
        # Scoped names keep their '@' but the '/' must be escaped.
        return f"{self.url}/{quote(name, safe='@')}"

    def ensure_database(self) -> None:
        """Create the database if it does not exist yet."""
        try:
            r = self._session.put(self.url)
        except requests.RequestException as e:
            raise StoreError(f"cannot reach {self.url}: {e}") from e
        # 412: already exists.
        if r.status_code not in (201, 202, 412):
            raise StoreError(
                f"cannot create {self.url}: HTTP {r.status_code}"
            )

    def get(self, name: str) -> PackageDocumentJson:
        try:
            r = self._session.get(self._doc_url(name))
        except requests.RequestException as e:
            raise StoreError(f"cannot read {name} from {self.url}: {e}") \
                from e
        if r.status_code == 404:
            raise DocumentNotFound(name)
        if r.status_code != 200:
            raise StoreError(
                f"cannot read {name} from {self.url}: HTTP {r.status_code}"
            )
        try:
            return r.json()
        except ValueError as e:
            raise StoreError(f"malformed document {name}: {e}") from e

    def _current_rev(self, name: str) -> Optional[str]:
        r = self._session.head(self._doc_url(name))
        if r.status_code == 404:
            return None
        r.raise_for_status()
        return r.headers.get('ETag', '').strip('"') or None

    def put(self, document: PackageDocumentJson) -> str:
        name = document.get('_id') or document['name']
        doc = {k: v for k, v in document.items() if k != '_rev'}
        doc['_id'] = name
        # Overwrite whatever is there; a concurrent writer makes us retry.
        for _ in range(_PUT_ATTEMPTS):
            try:
                rev = self._current_rev(name)
                if rev is not None:
                    doc['_rev'] = rev
                r = self._session.put(self._doc_url(name), json=doc)
            except requests.RequestException as e:
                raise StoreError(f"cannot write {name} to {self.url}: {e}") \
                    from e
            if r.status_code == 409:
                continue
            if r.status_code not in (201, 202):
                raise StoreError(
                    f"cannot write {name} to {self.url}: "
                    f"HTTP {r.status_code}"
                )
            try:
                return r.json()['rev']
            except (ValueError, KeyError) as e:
                raise StoreError(f"malformed reply writing {name}: {e}") \
                    from e
        raise StoreError(f"cannot write {name} to {self.url}: conflict")

    def info(self) -> dict[str, Any]:
        try:
            r = self._session.get(self.url)
            r.raise_for_status()
            return r.json()
        except (requests.RequestException, ValueError) as e:
            raise StoreError(f"cannot read info of {self.url}: {e}") from e

    def forward(self, path: str, query_string: bytes) -> requests.Response:
        """GET `path` below the database URL, for the `/_skimdb` pass-through."""
        url = self.url + (f"/{path}" if path else '')
        if query_string:
            url += '?' + query_string.decode('latin-1')
        try:
            return self._session.get(url)
        except requests.RequestException as e:
            raise StoreError(f"cannot reach {url}: {e}") from e

    def replicate_from(
            self,
            source_url: str,
            on_change: ChangeCallback,
            on_error: ErrorCallback
            ) -> CouchReplication:
        body = {
            'source': source_url,
            'target': self.url,
            'continuous': True,
            'create_target': True,
            'worker_batch_size': REPLICATION_BATCH_SIZE,
        }
        return CouchReplication(
            self._session, self.server_url, body, on_change, on_error
        ).start()

    def close(self) -> None:
        self._session.close()
