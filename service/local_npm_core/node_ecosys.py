# 2026-10-12  local_npm_core/node_ecosys.py

import copy
from functools import cmp_to_key
from typing import NotRequired, Optional, TypedDict

import nodesemver


class _DistObjectJson(TypedDict):
    tarball:  str
    shasum:   NotRequired[str]
    info:     NotRequired[str]

class VersionRecordJson(TypedDict):
    version:    str
    dist:       _DistObjectJson
    downloads:  NotRequired[int]


# A type describing the registry json file, for type hinting.
# Written this way because `dist-tags` and `_rev` are not valid
# Python identifiers.
PackageDocumentJson = TypedDict('PackageDocumentJson', {
    '_id':        NotRequired[str],
    '_rev':       NotRequired[str],
    'name':       str,
    'dist-tags':  NotRequired[dict[str, str]],
    'versions':   dict[str, VersionRecordJson],
})


class NodeVersionRange(object):
    def __init__(self, range_str: str, loose: bool = False) -> None:
        self._range = nodesemver.Range(range_str, loose)
        self._raw_str = range_str

    def __contains__(self, version: str) -> bool:
        return nodesemver.satisfies(version, self._range)

    def __str__(self) -> str:
        return self._raw_str


def is_valid_version(version_str: str) -> bool:
    try:
        return bool(nodesemver.valid(version_str, False))
    except (ValueError, TypeError):
        return False


def is_prerelease(version_str: str) -> bool:
    """`'2.0.0-beta'` -> `True`, `'2.0.0+build-7'` -> `False`."""
    return '-' in version_str.split('+', 1)[0]


def semver_cmp(version1: str, version2: str, loose: bool = False) -> int:
    """
    `-1` if `version1` <  `version2`,
    `0`  if `version1` == `version2`,
    `1`  if `version1` >  `version2`.
    """
    return nodesemver.compare(version1, version2, loose)


def max_version(versions: list[str]) -> Optional[str]:
    """The greatest of `versions` by semver ordering, `None` if empty."""
    if not versions:
        return None
    return max(versions, key=cmp_to_key(semver_cmp))


def valid_versions(document: PackageDocumentJson) -> list[str]:
    return [ver for ver in document['versions'] if is_valid_version(ver)]


def find_version(
        document: PackageDocumentJson, query: str
        ) -> Optional[VersionRecordJson]:
    """
    Pick the version record that answers `query`, or `None`.

    - `'latest'`: the greatest valid version. Stable releases win over
      pre-releases; a pre-release is picked only if nothing else exists.
    - A literal key of `versions` (tags stored as keys included).
    - A semver range such as `'1'`, `'^1.2'`, `'>=1.0.0 <2'`:
      the greatest valid version inside it.
    - A `dist-tag` of the document.
    """
    versions = document['versions']

    if query == 'latest':
        candidates = valid_versions(document)
        stable = [ver for ver in candidates if not is_prerelease(ver)]
        latest = max_version(stable or candidates)
        return versions[latest] if latest is not None else None

    if query in versions:
        return versions[query]

    try:
        ver_range = NodeVersionRange(query)
    except (ValueError, TypeError):
        # Not a range. Might still be a dist-tag.
        ver_range = None

    if ver_range is not None:
        best = max_version(
            [ver for ver in valid_versions(document) if ver in ver_range]
        )
        if best is not None:
            return versions[best]

    tagged = document.get('dist-tags', {}).get(query)
    if tagged is not None and tagged in versions:
        return versions[tagged]

    return None


def massage_metadata(
        url_base: str, document: PackageDocumentJson
        ) -> PackageDocumentJson:
    """
    Return a copy of `document` fit to be served by this cache.

    Versions that are not valid semver are dropped (some old packages carry
    them, and npm rejects them). Every `dist.tarball` and `dist.info` is
    pointed at `url_base`, so clients never reach upstream directly.
    """
    doc = copy.deepcopy(document)
    name = doc['name']
    for version in list(doc['versions']):
        if not is_valid_version(version):
            del doc['versions'][version]
            continue
        dist = doc['versions'][version].setdefault('dist', {})
        dist['tarball'] = f"{url_base}/tarballs/{name}/{version}.tgz"
        dist['info'] = f"{url_base}/{name}/{version}"
    return doc


def split_scope(name: str) -> tuple[Optional[str], str]:
    """
    '@babel/core' -> ('@babel', 'core')
    'lodash'      -> (None, 'lodash')
    """
    if name.startswith('@') and '/' in name:
        scope, bare = name.split('/', 1)
        return scope, bare
    return None, name


def cache_key(name: str, version: str) -> str:
    """
    ('lodash', '4.17.21')     -> 'lodash-4.17.21'
    ('@babel/core', '7.0.0')  -> '@babel/core-7.0.0'
    """
    scope, bare = split_scope(name)
    if scope is None:
        return f"{bare}-{version}"
    return f"{scope}/{bare}-{version}"
