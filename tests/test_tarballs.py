# 2026-10-18  tests/test_tarballs.py

from concurrent.futures import ThreadPoolExecutor

import pytest

from fakes import make_document, tarball_url
from local_npm_core.errors import StoreError, TarballUnavailable
from local_npm_core.general import sha1_hex
from local_npm_core.tarballs import TarballCache


CONTENT = b'\x1f\x8b fake gzip payload'


@pytest.fixture
def foo(upstream, local):
    doc = make_document('foo', {'1.0.0': CONTENT})
    upstream.publish(doc, {'1.0.0': CONTENT})
    local.put(doc)
    return local.get('foo')


def test_miss_downloads_and_stores(tarballs, blobs, upstream, foo):
    content, content_type = tarballs.get_tarball(foo, '1.0.0')
    assert content == CONTENT
    assert content_type == 'application/octet-stream'
    assert blobs.get('foo-1.0.0') == CONTENT
    assert upstream.count('tarball') == 1


def test_stored_blob_is_a_hit_without_network(tarballs, blobs, upstream, foo):
    blobs.put('foo-1.0.0', CONTENT)
    content, _ = tarballs.get_tarball(foo, '1.0.0')
    assert content == CONTENT
    assert upstream.calls == []


def test_second_request_is_a_hit(tarballs, upstream, foo):
    tarballs.get_tarball(foo, '1.0.0')
    tarballs.get_tarball(foo, '1.0.0')
    assert upstream.count('tarball') == 1


def test_corrupt_blob_is_refetched_once(tarballs, blobs, upstream, foo):
    blobs.put('foo-1.0.0', b'garbage on disk')

    content, _ = tarballs.get_tarball(foo, '1.0.0')

    assert content == CONTENT
    assert upstream.count('tarball') == 1
    assert sha1_hex(blobs.get('foo-1.0.0')) == \
        foo['versions']['1.0.0']['dist']['shasum']


def test_concurrent_misses_share_one_download(tarballs, blobs, upstream, foo):
    upstream.download_delay = 0.2

    with ThreadPoolExecutor(max_workers=10) as pool:
        results = list(pool.map(
            lambda _: tarballs.get_tarball(foo, '1.0.0'), range(10)
        ))

    assert all(content == CONTENT for content, _ in results)
    assert upstream.count('tarball') == 1
    assert blobs.get('foo-1.0.0') == CONTENT


def test_concurrent_failure_reaches_every_waiter(tarballs, upstream, foo):
    upstream.download_delay = 0.2
    upstream.files.clear()

    def fetch(_):
        with pytest.raises(TarballUnavailable):
            tarballs.get_tarball(foo, '1.0.0')

    with ThreadPoolExecutor(max_workers=5) as pool:
        list(pool.map(fetch, range(5)))

    assert upstream.count('tarball') == 1


def test_different_keys_download_separately(tarballs, upstream, local):
    doc = make_document('bar', {'1.0.0': b'one', '2.0.0': b'two'})
    upstream.publish(doc, {'1.0.0': b'one', '2.0.0': b'two'})
    assert tarballs.get_tarball(doc, '1.0.0')[0] == b'one'
    assert tarballs.get_tarball(doc, '2.0.0')[0] == b'two'
    assert upstream.count('tarball') == 2


def test_scoped_package_key(tarballs, blobs, upstream):
    doc = make_document('@babel/core', {'7.0.0': b'babel'})
    upstream.publish(doc, {'7.0.0': b'babel'})
    tarballs.get_tarball(doc, '7.0.0')
    assert blobs.get('@babel/core-7.0.0') == b'babel'


def test_info_url_is_followed(tarballs, upstream, foo):
    info_url = 'https://registry.example/foo/1.0.0'
    moved = 'https://cdn.example/foo-1.0.0.tgz'
    foo['versions']['1.0.0']['dist']['info'] = info_url
    upstream.json[info_url] = {'dist': {'tarball': moved}}
    upstream.files[moved] = CONTENT

    content, _ = tarballs.get_tarball(foo, '1.0.0')

    assert content == CONTENT
    assert ('json', info_url) in upstream.calls
    assert ('tarball', moved) in upstream.calls


def test_unknown_version_is_a_404(tarballs, foo):
    with pytest.raises(TarballUnavailable) as info:
        tarballs.get_tarball(foo, '9.9.9')
    assert info.value.status_code == 404


def test_download_failure_is_a_500(tarballs, upstream, foo):
    upstream.files.clear()
    with pytest.raises(TarballUnavailable) as info:
        tarballs.get_tarball(foo, '1.0.0')
    assert info.value.status_code == 500


def test_downloaded_garbage_is_not_stored(tarballs, blobs, upstream, foo):
    upstream.files[tarball_url('foo', '1.0.0')] = b'truncated'
    with pytest.raises(TarballUnavailable):
        tarballs.get_tarball(foo, '1.0.0')
    assert blobs.count() == 0


def test_record_download_counts(tarballs, local, foo):
    assert tarballs.record_download('foo', '1.0.0') == 1
    assert tarballs.record_download('foo', '1.0.0') == 2
    assert local.get('foo')['versions']['1.0.0']['downloads'] == 2


def test_record_download_never_raises(blobs, upstream, foo):
    class BrokenMirror(object):
        def get(self, name):
            raise StoreError('disk gone')

    cache = TarballCache(blobs, BrokenMirror(), upstream)
    assert cache.record_download('foo', '1.0.0') is None


def test_record_download_of_unknown_version(tarballs, local, foo):
    assert tarballs.record_download('foo', '9.9.9') is None
    assert 'downloads' not in local.get('foo')['versions']['1.0.0']


def test_concurrent_downloads_are_all_counted(tarballs, local, foo):
    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(
            lambda _: tarballs.record_download('foo', '1.0.0'), range(20)
        ))
    assert local.get('foo')['versions']['1.0.0']['downloads'] == 20
