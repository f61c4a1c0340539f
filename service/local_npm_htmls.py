# 2026-10-18  local_npm_htmls.py

from functools import cmp_to_key
from html import escape
from typing import Any

from local_npm_core.general import report_counted_things, reverse_cmp
from local_npm_core.node_ecosys import (
    PackageDocumentJson, semver_cmp, valid_versions
)


_ELEMENT_A_TEMPLATE = '''
<a href="{href:s}">{text:s}</a>
'''


def _element_a(href: str, text: str) -> str:
    return _ELEMENT_A_TEMPLATE.format(href=escape(href), text=escape(text))


_TABLE_WITH_HEAD_TEMPLATE = '''
<table>
  <thead><tr>{th_s:s}</tr></thead>
  <tbody>{tr_s:s}</tbody>
</table>
{total:s}<br/>
'''


def _table_with_head(titles: list[str], rows: list[list[str]]) -> str:
    """
    List HTML strings in a table with a head row.
    Elements like `<th>`, `</th>`, `<tr>`, `</tr>`, `<td>`, `</td>`
    are added automatically.
    """
    if not rows:
        return '(Empty table)'

    return _TABLE_WITH_HEAD_TEMPLATE.format(
        th_s='\n'.join(
            f"<th scope=\"col\">{title}</th>"
            for title in titles
        ),
        tr_s='\n'.join(
            "<tr>" + '\n'.join(f"<td>{item}</td>" for item in row) + "</tr>"
            for row in rows
        ),
        total=report_counted_things(len(rows), 'row')
    )


def _versions_table(document: PackageDocumentJson) -> str:
    """
    All valid versions, newest first, with their dist-tags and how many
    times this cache served each tarball.
    """
    versions = valid_versions(document)
    versions.sort(key=cmp_to_key(reverse_cmp(semver_cmp)))
    # Note: There might be multiple tags for the same version.
    ver_to_tags: dict[str, list[str]] = {}
    for tag, ver in document.get('dist-tags', {}).items():
        ver_to_tags.setdefault(ver, []).append(tag)
    name = document['name']
    return _table_with_head(
        ['version', 'dist-tag', 'downloads'],
        [
            [
                _element_a(f"/{name}/{ver}", ver),
                escape('; '.join(ver_to_tags.get(ver, []))),
                str(document['versions'][ver].get('downloads', 0)),
            ]
            for ver in versions
        ]
    )


_PACKAGE_PAGE_TEMPLATE = '''
<!DOCTYPE HTML>
<html>
<head>
<meta charset="utf-8">
<title>{package:s}</title>
</head>
<body>
<h1>{package:s}</h1>
{description:s}
<hr>
{versions:s}
<hr>
<a href="/_browse">back</a>
</body>
</html>
'''


def package_page(document: PackageDocumentJson) -> str:
    """Versions of one cached package."""
    return _PACKAGE_PAGE_TEMPLATE.format(
        package=escape(document['name']),
        description=escape(str(document.get('description', ''))),
        versions=_versions_table(document)
    )


_HOME_PAGE_TEMPLATE = '''
<!DOCTYPE HTML>
<html>
<head>
<meta charset="utf-8">
<title>local-npm</title>
</head>
<body>
<h1>local-npm</h1>
A local cache of the npm registry.
<hr>
<h2>Usage</h2>

<ul>
    <li>Start using it: <code>npm set registry {url_base:s}</code></li>
    <li>Switch back: <code>npm set registry {remote:s}</code></li>
    <li><a href="/_browse/lodash"><code>/_browse/lodash</code></a> - Show cached versions of a package.</li>
</ul>

<h2>Status</h2>
{status:s}
</body>
</html>
'''


def home_page(
        url_base: str, remote: str, db_info: dict[str, Any], tarballs: int
        ) -> str:
    status = _table_with_head(
        ['what', 'value'],
        [
            ['documents', str(db_info.get('doc_count', 0))],
            ['tarballs', str(tarballs)],
        ]
    )
    return _HOME_PAGE_TEMPLATE.format(
        url_base=escape(url_base),
        remote=escape(remote),
        status=status
    )
