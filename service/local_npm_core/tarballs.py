# 2026-10-16  local_npm_core/tarballs.py

import logging
import threading
from concurrent.futures import Future
from typing import Optional

from local_npm_core.errors import (
    BlobNotFound, DocumentNotFound, IntegrityMismatch, StoreError,
    TarballUnavailable, UpstreamUnavailable
)
from local_npm_core.general import sha1_hex
from local_npm_core.node_ecosys import (
    PackageDocumentJson, VersionRecordJson, cache_key
)
from local_npm_core.stores import BinaryStore, DocumentStore
from local_npm_core.upstream import UpstreamRegistry


logger = logging.getLogger(__name__)

CONTENT_TYPE_OCTET_STREAM = 'application/octet-stream'


class TarballCache(object):
    """
    Package archives, stored in the binary store under their cache key and
    verified against `dist.shasum` on every read.

    Concurrent misses for one key share a single download: the first caller
    fetches, the others wait on its `Future` and get the same bytes or the
    same exception.
    """

    def __init__(
            self,
            blobs: BinaryStore,
            local: DocumentStore,
            upstream: UpstreamRegistry
            ) -> None:
        self.blobs = blobs
        self.local = local
        self.upstream = upstream
        self._inflight: dict[str, Future] = {}
        self._inflight_lock = threading.Lock()
        self._downloads_lock = threading.Lock()

    def get_tarball(
            self, document: PackageDocumentJson, version: str
            ) -> tuple[bytes, str]:
        name = document['name']
        record = document['versions'].get(version)
        if record is None:
            raise TarballUnavailable(
                f"version not found: {name}@{version}", 404
            )
        key = cache_key(name, version)

        try:
            content = self._read_verified(key, record)
        except (BlobNotFound, IntegrityMismatch) as e:
            if isinstance(e, IntegrityMismatch):
                logger.warning("corrupt cache entry, refetching: %s", e)
            logger.info("miss: %s %s", name, version)
            content = self._fetch_once(key, record)
        else:
            logger.info("hit: %s %s", name, version)

        return content, CONTENT_TYPE_OCTET_STREAM

    def _read_verified(self, key: str, record: VersionRecordJson) -> bytes:
        """
        The stored blob for `key`.
        Raise `BlobNotFound` if absent (or unreadable), `IntegrityMismatch`
        if its digest is not the record's `shasum`.
        """
        try:
            content = self.blobs.get(key)
        except StoreError as e:
            logger.warning("unreadable cache entry %s: %s", key, e)
            raise BlobNotFound(key) from e
        expected = record.get('dist', {}).get('shasum')
        if expected:
            actual = sha1_hex(content)
            if actual != expected.lower():
                raise IntegrityMismatch(key, expected, actual)
        return content

    def _fetch_once(self, key: str, record: VersionRecordJson) -> bytes:
        """Download `key`, or wait for the download already under way."""
        with self._inflight_lock:
            future = self._inflight.get(key)
            leader = future is None
            if leader:
                future = Future()
                self._inflight[key] = future

        if not leader:
            logger.debug("waiting for download in progress: %s", key)
            return future.result()

        try:
            try:
                # Someone may have stored it between our read and now.
                content = self._read_verified(key, record)
            except (BlobNotFound, IntegrityMismatch):
                content = self._download(key, record)
        except BaseException as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(content)
            return content
        finally:
            with self._inflight_lock:
                del self._inflight[key]

    def _tarball_location(self, record: VersionRecordJson) -> str:
        """
        Where to download from. A `dist.info` URL, when present, points at
        fresher version metadata holding the real `dist.tarball`.
        """
        dist = record.get('dist', {})
        info_url = dist.get('info')
        if info_url:
            info = self.upstream.get_json(info_url)
            try:
                return info['dist']['tarball']
            except (KeyError, TypeError) as e:
                raise UpstreamUnavailable(
                    info_url, "version info has no dist.tarball"
                ) from e
        return dist['tarball']

    def _download(self, key: str, record: VersionRecordJson) -> bytes:
        try:
            location = self._tarball_location(record)
            content = self.upstream.get_tarball(location)
        except (UpstreamUnavailable, KeyError) as e:
            raise TarballUnavailable(f"cannot download {key}: {e}") from e

        expected = record.get('dist', {}).get('shasum')
        if expected and sha1_hex(content) != expected.lower():
            raise TarballUnavailable(
                f"hashes don't match for downloaded {key}, not returning"
            )

        try:
            self.blobs.put(key, content)
        except StoreError as e:
            # Still servable; the next request downloads it again.
            logger.warning("could not store %s: %s", key, e)
        return content

    def record_download(self, name: str, version: str) -> Optional[int]:
        """
        Increment `downloads` of `name@version` in the local mirror.
        Best-effort: failures are logged and `None` is returned.
        """
        try:
            # Read-modify-write; concurrent downloads must not lose counts.
            with self._downloads_lock:
                doc = self.local.get(name)
                record = doc['versions'][version]
                record['downloads'] = record.get('downloads', 0) + 1
                self.local.put(doc)
        except (DocumentNotFound, StoreError, KeyError, TypeError) as e:
            logger.warning(
                "could not record download of %s@%s: %s", name, version, e
            )
            return None
        return record['downloads']
