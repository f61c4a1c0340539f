# 2026-10-16  local_npm_core/documents.py

import logging
from typing import Optional

from local_npm_core.errors import (
    DocumentNotFound, DocumentUnavailable, StoreError, UpstreamUnavailable
)
from local_npm_core.node_ecosys import PackageDocumentJson
from local_npm_core.stores import DocumentStore
from local_npm_core.upstream import UpstreamRegistry


logger = logging.getLogger(__name__)


class DocumentResolver(object):
    """
    Answers package document requests from, in order:

    1. the local mirror, with no network traffic at all;
    2. the secondary mirror, kept up to date by replication;
    3. the upstream registry.

    A document found in tier 2 or 3 is written into the local mirror before
    it is returned, so the next request for it is a tier 1 hit.
    """

    def __init__(
            self,
            local: DocumentStore,
            secondary: Optional[DocumentStore],
            upstream: UpstreamRegistry
            ) -> None:
        self.local = local
        self.secondary = secondary
        self.upstream = upstream

    def get_document(self, name: str) -> PackageDocumentJson:
        """
        Raise `DocumentUnavailable` when every tier fails; its status code is
        404 when upstream does not know the package, 500 otherwise.
        """
        try:
            return self.local.get(name)
        except DocumentNotFound:
            logger.debug("%s: not in local mirror", name)
        except StoreError as e:
            logger.warning("%s: local mirror read failed: %s", name, e)

        if self.secondary is not None:
            try:
                doc = self.secondary.get(name)
            except DocumentNotFound:
                logger.debug("%s: not in secondary mirror", name)
            except StoreError as e:
                logger.warning("%s: secondary mirror read failed: %s", name, e)
            else:
                return self._write_back(name, doc)

        try:
            doc = self.upstream.get_document(name)
        except UpstreamUnavailable as e:
            status_code = 404 if e.status_code == 404 else 500
            raise DocumentUnavailable(
                f"package not available: {name} ({e})", status_code
            ) from e
        logger.info("cached: %s fetched from upstream", name)
        return self._write_back(name, doc)

    def _write_back(
            self, name: str, doc: PackageDocumentJson
            ) -> PackageDocumentJson:
        """
        Store `doc` in the local mirror and return the stored copy.
        The foreign revision is dropped; the local mirror assigns its own.
        """
        doc = dict(doc)
        doc.pop('_rev', None)
        doc['_id'] = name
        try:
            self.local.put(doc)
            return self.local.get(name)
        except (StoreError, DocumentNotFound) as e:
            raise DocumentUnavailable(
                f"cannot store {name} in local mirror: {e}"
            ) from e
