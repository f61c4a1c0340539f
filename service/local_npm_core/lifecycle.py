# 2026-10-17  local_npm_core/lifecycle.py

import heapq
import logging
import os
from dataclasses import dataclass
from typing import Optional

from local_npm_core.config import Settings
from local_npm_core.couch import CouchDocumentStore
from local_npm_core.documents import DocumentResolver
from local_npm_core.errors import StoreError
from local_npm_core.general import get_entry_size, size_text
from local_npm_core.replication import (
    Backoff, ReplicationController, start_replication
)
from local_npm_core.stores import BinaryStore, DocumentStore, FileDocumentStore
from local_npm_core.tarballs import TarballCache
from local_npm_core.upstream import UpstreamRegistry


logger = logging.getLogger(__name__)


@dataclass
class CacheComponents(object):
    settings:     Settings
    local:        DocumentStore
    secondary:    Optional[CouchDocumentStore]
    blobs:        BinaryStore
    upstream:     UpstreamRegistry
    documents:    DocumentResolver
    tarballs:     TarballCache
    replication:  Optional[ReplicationController] = None


def open_components(settings: Settings) -> CacheComponents:
    """
    Open the stores and wire the resolvers together.
    The local mirror and the binary store must open. The secondary mirror
    is only wired in when replicating, and may be down; requests then skip
    it until it comes back.
    """
    directory = os.path.abspath(settings.directory)
    local = FileDocumentStore(directory)
    blobs = BinaryStore(directory)
    upstream = UpstreamRegistry(
        settings.remote, settings.remote_skim, timeout=settings.timeout
    )
    secondary: Optional[CouchDocumentStore] = None
    if settings.replicate:
        secondary = CouchDocumentStore(
            settings.secondary_mirror, timeout=settings.timeout
        )
        try:
            secondary.ensure_database()
        except StoreError as e:
            logger.warning("secondary mirror unavailable for now: %s", e)

    return CacheComponents(
        settings=settings,
        local=local,
        secondary=secondary,
        blobs=blobs,
        upstream=upstream,
        documents=DocumentResolver(local, secondary, upstream),
        tarballs=TarballCache(blobs, local, upstream),
    )


def begin_replication(components: CacheComponents) -> None:
    settings = components.settings
    if not settings.replicate or components.secondary is None:
        logger.info("replication disabled")
        return
    components.replication = start_replication(
        components.upstream,
        components.secondary,
        Backoff(settings.backoff_base_ms, settings.backoff_factor),
    )


def shutdown(components: CacheComponents) -> None:
    """Cancel replication first, then close what it writes into."""
    if components.replication is not None:
        components.replication.cancel()
    for closeable in (
            components.blobs, components.local,
            components.secondary, components.upstream):
        if closeable is not None:
            closeable.close()
    logger.info("shut down")


def report_binary_store_size(
        blobs: BinaryStore, threshold: int, top: int = 10
        ) -> None:
    """Warn, listing the largest tarballs, if the store outgrew `threshold`."""
    entries = [
        (get_entry_size(os.path.join(blobs.directory, entry)), entry)
        for entry in os.listdir(blobs.directory)
    ]
    total = sum(size for size, _ in entries)
    if total < threshold:
        return

    msg = "Tarball store size is large: {:s}.\n".format(size_text(total))
    msg += 'Largest entries:\n'
    msg += '\n'.join(
        "- {:>12s}: {:s}".format(size_text(size), entry)
        for size, entry in heapq.nlargest(top, entries)
    )
    logger.warning(msg)
