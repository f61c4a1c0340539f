# 2026-10-12  local_npm_core/errors.py

from http.client import responses
from typing import Optional


class LocalNpmError(Exception):
    """Base class of every error raised by the cache core."""


class DocumentNotFound(LocalNpmError, KeyError):
    """
    A document store has no document under the requested name.
    Expected control flow: the resolver falls through to the next tier.
    """
    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"document not found: {self.name}"


class BlobNotFound(LocalNpmError, KeyError):
    """The binary store has no blob under the requested key."""
    def __init__(self, key: str) -> None:
        super().__init__(key)
        self.key = key

    def __str__(self) -> str:
        return f"blob not found: {self.key}"


class StoreError(LocalNpmError):
    """A store failed for a reason other than a missing key."""


class IntegrityMismatch(LocalNpmError):
    """
    A stored blob's SHA-1 differs from the `shasum` of its version record.
    Never reaches a client: the tarball cache treats it as a miss.
    """
    def __init__(self, key: str, expected: str, actual: str) -> None:
        super().__init__(
            f"{key}: expected shasum {expected}, got {actual}"
        )
        self.key = key
        self.expected = expected
        self.actual = actual


class UpstreamUnavailable(LocalNpmError):
    """
    A request to the upstream registry failed.
    `status_code` is the upstream HTTP status, or `None` for transport errors
    and unreadable payloads.
    """
    def __init__(self, url: str, message: str,
                 status_code: Optional[int] = None) -> None:
        super().__init__(f"{url}: {message}")
        self.url = url
        self.status_code = status_code


class ReplicationTransientFailure(LocalNpmError):
    """The replication handshake failed; the controller retries it."""


class _ServedError(LocalNpmError):
    """An error that terminates a single request with an HTTP status."""
    def __init__(self, message: str, status_code: int = 500) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.reason = responses[status_code]

    @property
    def not_found(self) -> bool:
        return self.status_code == 404


class DocumentUnavailable(_ServedError):
    """No tier of the document resolver could produce the document."""


class TarballUnavailable(_ServedError):
    """The tarball could be neither served from cache nor downloaded."""
