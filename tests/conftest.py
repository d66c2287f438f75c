import io
import zipfile
from typing import Dict, List, Optional, Tuple

import pytest

from resserve.entities import CaseInsensitiveDict, Request, Response
from resserve.exceptions import SourceMissingError
from resserve.registry import ResourceDescriptor, ResourceRegistry, ResourceResolver
from resserve.storage.base import Storage

APP_JS = ResourceDescriptor(
    path='/app.js',
    debug_name='app.js',
    compact_name='app.min.js',
    content_type='text/javascript',
    extension='.js',
    bundle='scripts'
)
SITE_CSS = ResourceDescriptor(
    path='/css/site.css',
    debug_name='site.css',
    compact_name='site.min.css',
    content_type='text/css',
    extension='.css',
    bundle='styles'
)


class StubStorage(Storage):
    """
    Storage with fixed fingerprints, remembers what was opened
    """

    def __init__(self, items: Dict[str, Tuple[str, bytes]]):
        self.items = items
        self.opened: List[str] = []

    def open(self, key):
        if key not in self.items:
            return None

        self.opened.append(key)

        return io.BytesIO(self.items[key][1])

    def fingerprint(self, key):
        if key not in self.items:
            raise SourceMissingError(key)

        return self.items[key][0]


def make_request(path: bytes = b'/app.js',
                 query: Optional[bytes] = None,
                 headers: Optional[dict] = None,
                 method: bytes = b'GET') -> Request:
    request = Request()
    request.method = method
    request.path = path
    request.raw_parameters = query
    request.protocol = '1.1'
    request.headers = CaseInsensitiveDict(headers or {})

    return request


def make_response() -> Response:
    return Response(CaseInsensitiveDict(server='resserve'))


def write_zip(path, members: Dict[str, bytes]):
    with zipfile.ZipFile(path, 'w') as archive:
        for name, content in members.items():
            archive.writestr(name, content)

    return path


@pytest.fixture
def registry() -> ResourceRegistry:
    return ResourceRegistry([APP_JS, SITE_CSS])


@pytest.fixture
def resolver(registry) -> ResourceResolver:
    return ResourceResolver(registry)


@pytest.fixture
def static_root(tmp_path):
    root = tmp_path / 'static'
    root.mkdir()
    (root / 'index.html').write_bytes(b'<h1>index</h1>')
    (root / 'robots.txt').write_bytes(b'User-agent: *\n')
    (root / 'img').mkdir()
    (root / 'img' / 'logo.svg').write_bytes(b'<svg/>')

    return root
