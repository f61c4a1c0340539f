# 2026-10-15  local_npm_core/stores.py

import json
import logging
import os
import tempfile
import threading
import uuid
from collections.abc import Callable
from typing import Any, Protocol
from urllib.parse import quote

from local_npm_core.errors import BlobNotFound, DocumentNotFound, StoreError
from local_npm_core.general import get_folder_size
from local_npm_core.node_ecosys import PackageDocumentJson


logger = logging.getLogger(__name__)


ChangeCallback = Callable[[dict[str, Any]], None]
ErrorCallback = Callable[[Exception], None]


class ReplicationHandle(Protocol):
    """A running continuous replication."""

    last_seq: int

    def cancel(self) -> None:
        """Stop replicating. Idempotent."""


class DocumentStore(Protocol):
    """A collection of package documents keyed by package name."""

    def get(self, name: str) -> PackageDocumentJson:
        """Return the document, or raise `DocumentNotFound`."""

    def put(self, document: PackageDocumentJson) -> str:
        """
        Create or overwrite the document wholesale.
        Any `_rev` it carries is ignored; the new revision is returned.
        """

    def info(self) -> dict[str, Any]:
        """Database summary (`db_name`, `doc_count`, `update_seq`)."""

    def close(self) -> None:
        ...


class ReplicatingStore(DocumentStore, Protocol):
    """A document store that can follow a remote change feed."""

    def replicate_from(
            self,
            source_url: str,
            on_change: ChangeCallback,
            on_error: ErrorCallback
            ) -> ReplicationHandle:
        """
        Start a live pull replication from `source_url`.
        Raise `StoreError` if it cannot be started.
        """


def _quote_key(key: str) -> str:
    """'@babel/core' -> '%40babel%2Fcore'"""
    return quote(key, safe='')


def _write_atomically(directory: str, path: str, data: bytes) -> None:
    """Write to a temporary file beside `path`, then move it into place."""
    fd, tmp_path = tempfile.mkstemp(dir=directory, suffix='.part')
    try:
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


class FileDocumentStore(object):
    """
    Document store keeping one JSON file per document.
    Used for the local mirror. Writes are serialized; each one is atomic and
    assigns a CouchDB-style revision `'<generation>-<random hex>'`.
    """

    def __init__(self, directory: str, db_name: str = 'skimdb') -> None:
        self.db_name = db_name
        self.directory = os.path.join(directory, db_name)
        try:
            os.makedirs(self.directory, exist_ok=True)
        except OSError as e:
            raise StoreError(
                f"cannot open document store at {self.directory}: {e}"
            ) from e
        self._lock = threading.Lock()
        self._update_seq = 0

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.directory!r})"

    def _path(self, name: str) -> str:
        return os.path.join(self.directory, _quote_key(name) + '.json')

    def get(self, name: str) -> PackageDocumentJson:
        try:
            with open(self._path(name), 'r', encoding='utf-8') as f:
                return json.load(f)
        except FileNotFoundError:
            raise DocumentNotFound(name) from None
        except (OSError, ValueError) as e:
            raise StoreError(f"cannot read document {name}: {e}") from e

    def put(self, document: PackageDocumentJson) -> str:
        name = document.get('_id') or document['name']
        doc = dict(document)
        doc['_id'] = name
        with self._lock:
            try:
                generation = int(self.get(name)['_rev'].split('-', 1)[0])
            except (DocumentNotFound, StoreError, KeyError, ValueError):
                generation = 0
            doc['_rev'] = f"{generation + 1}-{uuid.uuid4().hex}"
            try:
                _write_atomically(
                    self.directory,
                    self._path(name),
                    json.dumps(doc).encode('utf-8')
                )
            except OSError as e:
                raise StoreError(f"cannot write document {name}: {e}") from e
            self._update_seq += 1
        return doc['_rev']

    def info(self) -> dict[str, Any]:
        doc_count = sum(
            1 for entry in os.listdir(self.directory)
            if entry.endswith('.json')
        )
        return {
            'db_name': self.db_name,
            'doc_count': doc_count,
            'update_seq': self._update_seq,
        }

    def close(self) -> None:
        logger.debug("closed %r", self)


class BinaryStore(object):
    """
    Flat key -> blob map on disk, one file per tarball cache key.
    Only the tarball cache writes to it.
    """

    def __init__(self, directory: str, db_name: str = 'binarydb') -> None:
        self.directory = os.path.join(directory, db_name)
        try:
            os.makedirs(self.directory, exist_ok=True)
        except OSError as e:
            raise StoreError(
                f"cannot open binary store at {self.directory}: {e}"
            ) from e

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.directory!r})"

    def _path(self, key: str) -> str:
        return os.path.join(self.directory, _quote_key(key))

    def get(self, key: str) -> bytes:
        try:
            with open(self._path(key), 'rb') as f:
                return f.read()
        except FileNotFoundError:
            raise BlobNotFound(key) from None
        except OSError as e:
            raise StoreError(f"cannot read blob {key}: {e}") from e

    def put(self, key: str, data: bytes) -> None:
        try:
            _write_atomically(self.directory, self._path(key), data)
        except OSError as e:
            raise StoreError(f"cannot write blob {key}: {e}") from e

    def count(self) -> int:
        """Number of stored blobs (partial writes excluded)."""
        return sum(
            1 for entry in os.listdir(self.directory)
            if not entry.endswith('.part')
        )

    def size(self) -> int:
        """Total size in bytes."""
        return get_folder_size(self.directory)

    def close(self) -> None:
        logger.debug("closed %r", self)
