# 2026-10-18  tests/conftest.py

from pathlib import Path

import pytest

from fakes import FakeUpstream
from local_npm_core.documents import DocumentResolver
from local_npm_core.stores import BinaryStore, FileDocumentStore
from local_npm_core.tarballs import TarballCache


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def local(tmp_path: Path) -> FileDocumentStore:
    return FileDocumentStore(str(tmp_path / 'local'))


@pytest.fixture
def secondary(tmp_path: Path) -> FileDocumentStore:
    return FileDocumentStore(str(tmp_path / 'secondary'))


@pytest.fixture
def blobs(tmp_path: Path) -> BinaryStore:
    return BinaryStore(str(tmp_path / 'local'))


@pytest.fixture
def resolver(local, secondary, upstream) -> DocumentResolver:
    return DocumentResolver(local, secondary, upstream)


@pytest.fixture
def tarballs(blobs, local, upstream) -> TarballCache:
    return TarballCache(blobs, local, upstream)
