# 2026-10-18  local_npm.py

import functools
import logging
import signal
import sys
from typing import Optional

from flask import Flask, request, Response, jsonify

import local_npm_htmls
from local_npm_core.config import Settings, VERSION
from local_npm_core.errors import (
    DocumentUnavailable, StoreError, TarballUnavailable, UpstreamUnavailable
)
from local_npm_core.general import yellow_text
from local_npm_core.lifecycle import CacheComponents
from local_npm_core.lifecycle import begin_replication, open_components
from local_npm_core.lifecycle import report_binary_store_size, shutdown
from local_npm_core.logs import configure_logging
from local_npm_core.network import PackagePathInfo, TarballPathInfo
from local_npm_core.network import RequestNotValidError
from local_npm_core.network import make_binary_response, make_json_error
from local_npm_core.network import make_response_altered
from local_npm_core.node_ecosys import find_version, massage_metadata
from local_npm_core.upstream import UpstreamRegistry


app = Flask(__name__)
logger = logging.getLogger(__name__)


CONTENT_TYPE_UTF_8_HTML = 'text/html'
VERSION_CACHE_CONTROL = 'max-age=300'
_EXTENSION_KEY = 'local_npm'


def install(components: CacheComponents) -> None:
    """Bind the cache to the app. Request handlers read it from here."""
    app.extensions[_EXTENSION_KEY] = components


def cache() -> CacheComponents:
    return app.extensions[_EXTENSION_KEY]


@app.route('/')
def welcome() -> Response:
    components = cache()
    return jsonify({
        'local-npm': 'welcome',
        'version': VERSION,
        'db': components.local.info(),
        'tarballs': components.blobs.count(),
    })


@app.route('/_browse')
def browse_home() -> Response:
    components = cache()
    return make_response_altered(
        local_npm_htmls.home_page(
            components.settings.url_base,
            components.settings.remote,
            components.local.info(),
            components.blobs.count(),
        ),
        200, CONTENT_TYPE_UTF_8_HTML
    )


@app.route('/_browse/<path:name>')
def browse_package(name: str) -> Response:
    try:
        document = cache().documents.get_document(name)
    except DocumentUnavailable as e:
        return make_json_error(e.message, e.status_code)
    return make_response_altered(
        local_npm_htmls.package_page(document), 200, CONTENT_TYPE_UTF_8_HTML
    )


@app.route('/_skimdb', defaults={'rest': ''})
@app.route('/_skimdb/<path:rest>')
def skimdb(rest: str) -> Response:
    """Read-only window onto the secondary mirror."""
    secondary = cache().secondary
    if secondary is None:
        return make_json_error('no secondary mirror configured', 404)
    try:
        r = secondary.forward(rest, request.query_string)
    except StoreError as e:
        logger.warning("couldn't proxy to skimdb: %s", e)
        return make_json_error('Error proxying to skimdb', 500)
    return Response(
        r.content, status=r.status_code,
        headers=UpstreamRegistry.response_headers(r)
    )


def _pass_through() -> Response:
    """Hand the current request to the upstream registry as is."""
    upstream = cache().upstream
    try:
        r = upstream.proxy(
            request.method,
            request.path,
            request.query_string,
            request.headers,
            request.get_data(),
        )
    except UpstreamUnavailable as e:
        return make_json_error(str(e), 500)
    return Response(
        r.content, status=r.status_code,
        headers=upstream.response_headers(r)
    )


@app.route('/-/<path:rest>', methods=['GET', 'POST'])
def registry_api(rest: str) -> Response:
    # Search, login, audits... nothing here is cached.
    return _pass_through()


@app.route('/<path:thepath>', methods=['PUT'])
def publish(thepath: str) -> Response:
    return _pass_through()


def _serve_tarball(scope: Optional[str], name: str, filename: str) -> Response:
    components = cache()
    try:
        path_info = TarballPathInfo.make(scope, name, filename)
        document = components.documents.get_document(path_info.package_name)
        content, content_type = components.tarballs.get_tarball(
            document, path_info.version
        )
    except RequestNotValidError as e:
        return make_json_error(e.message, e.status_code)
    except (DocumentUnavailable, TarballUnavailable) as e:
        logger.error("tarball %s: %s", request.path, e)
        return make_json_error(e.message, e.status_code)

    resp = make_binary_response(content, content_type)
    # Count the download once the body is out; never fails the response.
    resp.call_on_close(functools.partial(
        components.tarballs.record_download,
        path_info.package_name, path_info.version
    ))
    return resp


@app.route('/tarballs/<name>/<filename>')
def tarball(name: str, filename: str) -> Response:
    return _serve_tarball(None, name, filename)


# allow support for scoped packages
@app.route('/tarballs/<scope>/<name>/<filename>')
def scoped_tarball(scope: str, name: str, filename: str) -> Response:
    return _serve_tarball(scope, name, filename)


@app.route('/<path:thepath>')
def package_metadata(thepath: str) -> Response:
    """
    Handle package document and version requests.
    Also handle exceptions.
    """
    try:
        return handle_package_path(request.path)
    except RequestNotValidError as e:
        return make_json_error(e.message, e.status_code)
    except DocumentUnavailable as e:
        return make_json_error(e.message, e.status_code)


def handle_package_path(abs_path: str) -> Response:
    """
    `/{name}` answers the whole (rewritten) document,
    `/{name}/{version}` the version record the query resolves to.
    """
    path_info = PackagePathInfo.make(abs_path)
    components = cache()

    document = components.documents.get_document(path_info.package_name)
    metadata = massage_metadata(components.settings.url_base, document)

    if path_info.version_query is None:
        return jsonify(metadata)

    version_metadata = find_version(metadata, path_info.version_query)
    if version_metadata is None:
        raise RequestNotValidError(
            404, f"version not found: {path_info.version_query}"
        )

    resp = jsonify(version_metadata)
    # Like registry.npmjs.org.
    resp.headers['ETag'] = '"{:s}"'.format(document.get('_rev', ''))
    resp.headers['Cache-Control'] = VERSION_CACHE_CONTROL
    return resp


def welcome_banner(settings: Settings) -> str:
    return '\n'.join([
        'Welcome!',
        'To start using local-npm, just run: ',
        yellow_text(f"   $ npm set registry {settings.url_base}"),
        'To switch back, you can run: ',
        yellow_text(f"   $ npm set registry {settings.remote}"),
        '',
        'A simple npm-like UI is available here',
        f"{settings.url_base}/_browse",
    ])


def _exit_on_sigterm(signum: int, frame: object) -> None:
    sys.exit(0)


def main(argv: Optional[list[str]] = None) -> None:
    settings = Settings.from_args(argv)
    configure_logging(settings.log_level)

    try:
        components = open_components(settings)
    except StoreError as e:
        logger.error("cannot open stores: %s", e)
        sys.exit(1)
    install(components)

    print(welcome_banner(settings))
    report_binary_store_size(components.blobs, settings.cache_size_warning)
    begin_replication(components)

    signal.signal(signal.SIGTERM, _exit_on_sigterm)
    try:
        # `use_reloader` set to `False`
        # so that replication is started only once.
        app.run(
            host='0.0.0.0', port=settings.port,
            threaded=True, use_reloader=False
        )
    except KeyboardInterrupt:
        pass
    finally:
        shutdown(components)


if __name__ == '__main__':
    main()
