# 2026-10-18  tests/test_node_ecosys.py

import pytest

from local_npm_core.node_ecosys import (
    cache_key, find_version, is_prerelease, is_valid_version,
    massage_metadata, split_scope
)


def _doc(*versions: str, **extra) -> dict:
    return {
        'name': 'foo',
        'versions': {
            ver: {
                'version': ver,
                'dist': {
                    'tarball': f"https://registry.example/foo/-/foo-{ver}.tgz",
                    'shasum': '0' * 40,
                },
            }
            for ver in versions
        },
        **extra,
    }


BASE = 'http://127.0.0.1:5080'


def test_latest_prefers_stable_over_prerelease():
    doc = _doc('1.0.0', '2.0.0-beta', 'bad')
    assert find_version(doc, 'latest')['version'] == '1.0.0'


def test_latest_is_semver_max_not_lexical_max():
    doc = _doc('1.9.0', '1.10.0', '1.2.0')
    assert find_version(doc, 'latest')['version'] == '1.10.0'


def test_latest_never_returns_a_smaller_version():
    versions = ['0.0.1', '0.1.0', '1.0.0', '1.0.1', '2.0.0', '10.0.0']
    doc = _doc(*versions)
    assert find_version(doc, 'latest')['version'] == '10.0.0'


def test_latest_falls_back_to_prereleases():
    doc = _doc('1.0.0-alpha', '1.0.0-beta', 'garbage')
    assert find_version(doc, 'latest')['version'] == '1.0.0-beta'


def test_latest_without_valid_versions():
    assert find_version(_doc('bad', 'worse'), 'latest') is None
    assert find_version(_doc(), 'latest') is None


def test_exact_key_wins_even_if_not_semver():
    doc = _doc('1.0.0', 'stable-build')
    assert find_version(doc, 'stable-build')['version'] == 'stable-build'


def test_exact_key_is_returned_as_is():
    doc = _doc('1.0.0', '1.2.3')
    assert find_version(doc, '1.0.0') is doc['versions']['1.0.0']


@pytest.mark.parametrize('query, expected', [
    ('1', '1.5.0'),
    ('^1.2.0', '1.5.0'),
    ('~1.2.0', '1.2.9'),
    ('>=2.0.0', '2.1.0'),
    ('<1.3.0', '1.2.9'),
    ('1.2.x', '1.2.9'),
])
def test_range_picks_the_greatest_match(query, expected):
    doc = _doc('1.2.0', '1.2.9', '1.5.0', '2.0.0', '2.1.0', '3.0.0-rc.1')
    assert find_version(doc, query)['version'] == expected


def test_range_without_match():
    assert find_version(_doc('1.0.0'), '^2.0.0') is None


def test_unparseable_query_falls_back_to_dist_tags():
    doc = _doc('1.0.0', '2.0.0-beta', **{'dist-tags': {'next': '2.0.0-beta'}})
    assert find_version(doc, 'next')['version'] == '2.0.0-beta'
    assert find_version(doc, 'canary') is None


def test_dist_tag_to_missing_version():
    doc = _doc('1.0.0', **{'dist-tags': {'next': '9.9.9'}})
    assert find_version(doc, 'next') is None


def test_massage_drops_invalid_versions_and_rewrites_urls():
    doc = _doc('1.0.0', '2.0.0-beta', 'bad')
    rewritten = massage_metadata(BASE, doc)

    assert set(rewritten['versions']) == {'1.0.0', '2.0.0-beta'}
    for ver, record in rewritten['versions'].items():
        assert record['dist']['tarball'] == f"{BASE}/tarballs/foo/{ver}.tgz"
        assert record['dist']['info'] == f"{BASE}/foo/{ver}"
        assert record['dist']['shasum'] == '0' * 40


def test_massage_leaves_the_original_alone():
    doc = _doc('1.0.0', 'bad')
    massage_metadata(BASE, doc)
    assert 'bad' in doc['versions']
    assert doc['versions']['1.0.0']['dist']['tarball'].startswith(
        'https://registry.example/'
    )
    assert 'info' not in doc['versions']['1.0.0']['dist']


def test_massage_scoped_package():
    doc = _doc('7.0.0')
    doc['name'] = '@babel/core'
    rewritten = massage_metadata(BASE, doc)
    dist = rewritten['versions']['7.0.0']['dist']
    assert dist['tarball'] == f"{BASE}/tarballs/@babel/core/7.0.0.tgz"
    assert dist['info'] == f"{BASE}/@babel/core/7.0.0"


def test_version_predicates():
    assert is_valid_version('1.0.0')
    assert is_valid_version('1.0.0-rc.1+build.5')
    assert not is_valid_version('bad')
    assert not is_valid_version('1.0')
    assert is_prerelease('2.0.0-beta')
    assert not is_prerelease('2.0.0')
    assert not is_prerelease('2.0.0+build-7')


def test_cache_keys():
    assert split_scope('lodash') == (None, 'lodash')
    assert split_scope('@babel/core') == ('@babel', 'core')
    assert cache_key('lodash', '4.17.21') == 'lodash-4.17.21'
    assert cache_key('@babel/core', '7.0.0') == '@babel/core-7.0.0'
