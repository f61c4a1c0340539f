# 2026-10-14  local_npm_core/network.py

from dataclasses import dataclass
from http.client import responses
from typing import Optional
from urllib.parse import unquote

import requests
from flask import jsonify, make_response, Response

from local_npm_core.config import VERSION


USER_AGENT = f"local-npm/{VERSION}"


class RequestNotValidError(ValueError):
    """
    Errors that should be corrected by users.
    Other exceptions are considered internal server errors, which should be
    fixed by developer.
    """
    def __init__(self, status_code: int, message: str):
        if not (400 <= status_code < 500):
            raise ValueError(
                f"status_code must be in [400, 500), but got {status_code}"
            )
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.reason = responses[status_code]

    def __str__(self) -> str:
        return "{:d} {:s}: {:s}".format(
            self.status_code, self.reason, self.message
        )


class Session(requests.Session):
    """`requests.Session` that applies a timeout to every request."""
    default_timeout: Optional[float | tuple[float, float]] = None

    def __init__(
            self,
            timeout: Optional[float | tuple[float, float]] = None
            ) -> None:
        super().__init__()
        self.default_timeout = timeout
        self.headers['User-Agent'] = USER_AGENT

    def send(
            self, request: requests.PreparedRequest, **kwargs
            ) -> requests.Response:
        if self.default_timeout and not kwargs.get('timeout'):
            kwargs['timeout'] = self.default_timeout
        return super().send(request, **kwargs)


def make_response_altered(
        content: str | bytes,
        status_code: int,
        altered_mime_type: Optional[str] | tuple[Optional[str], Optional[str]]
        ) -> Response:
    """
    Make a flask.Response object.
    Basically same as flask.make_response, but with altered mime type.
    Type of `altered_mime_type` is compatible with return value of
    `mimetypes.guess_type()`.
    """
    resp = make_response(content, status_code)
    if altered_mime_type is None:
        pass
    elif isinstance(altered_mime_type, str):
        resp.headers['Content-Type'] = altered_mime_type
    elif isinstance(altered_mime_type, tuple):
        altered_content_type, altered_content_encoding = altered_mime_type
        resp.headers['Content-Type'] = altered_content_type
        resp.headers['Content-Encoding'] = altered_content_encoding
    else:
        raise TypeError(f"altered_mime_type must be str or tuple[str, str], "
                        f"but got {type(altered_mime_type)}")
    return resp


def make_json_error(message: str, status_code: int) -> Response:
    """`{"error": message}` with the given status."""
    resp = jsonify({'error': message})
    resp.status_code = status_code
    return resp


def make_binary_response(content: bytes, content_type: str) -> Response:
    resp = make_response_altered(content, 200, content_type)
    resp.headers['Content-Length'] = str(len(content))
    return resp


@dataclass
class TarballPathInfo(object):
    package_name:  str
    version:       str

    @staticmethod
    def make(
            scope: Optional[str], name: str, filename: str
            ) -> 'TarballPathInfo':
        """
        example:
        (None,     'lodash', '4.17.21.tgz') -> ('lodash', '4.17.21')
        ('@babel', 'core',   '7.0.0.tgz')   -> ('@babel/core', '7.0.0')
        """
        if not filename.endswith('.tgz'):
            raise RequestNotValidError(
                400, f"tarball file name must end with '.tgz': '{filename}'"
            )
        version = filename[:-len('.tgz')]
        if not name or not version:
            raise RequestNotValidError(
                400, f"package name or version is empty: '{filename}'"
            )
        if scope is None:
            return TarballPathInfo(name, version)
        if not scope.startswith('@'):
            raise RequestNotValidError(
                400, f"scope must start with '@', but got '{scope}'"
            )
        return TarballPathInfo(f"{scope}/{name}", version)


@dataclass
class PackagePathInfo(object):
    package_name:   str
    version_query:  Optional[str]

    @staticmethod
    def make(path: str) -> 'PackagePathInfo':
        """
        example:
        '/lodash'               -> ('lodash',      None)
        '/lodash/^4.0.0'        -> ('lodash',      '^4.0.0')
        '/@babel/core'          -> ('@babel/core', None)
        '/@babel%2fcore'        -> ('@babel/core', None)
        '/@babel/core/latest'   -> ('@babel/core', 'latest')
        """
        assert path.startswith('/')
        segments = unquote(path[1:]).split('/')
        if not all(segments):
            raise RequestNotValidError(400, f"empty path segment: '{path}'")

        if segments[0].startswith('@'):
            # Scoped package. The first two segments are the name.
            if len(segments) < 2:
                raise RequestNotValidError(
                    400, f"scoped package without a name: '{path}'"
                )
            name_parts, rest = segments[:2], segments[2:]
        else:
            name_parts, rest = segments[:1], segments[1:]

        match len(rest):
            case 0:
                return PackagePathInfo('/'.join(name_parts), None)
            case 1:
                return PackagePathInfo('/'.join(name_parts), rest[0])
            case _:
                raise RequestNotValidError(
                    404, f"no such resource: '{path}'"
                )
