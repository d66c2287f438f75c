import os

import pytest

from resserve.exceptions import SourceMissingError
from resserve.storage.bundle import BundleStorage, MemoryBundle, PackageBundle, ZipBundle, bundles_by_name
from resserve.storage.filesystem import FileSystemStorage, guess_content_type

from conftest import write_zip


def test_filesystem_open_and_fingerprint(static_root):
    storage = FileSystemStorage(str(static_root))

    with storage.open('/robots.txt') as fd:
        assert fd.read() == b'User-agent: *\n'

    file_stat = os.stat(static_root / 'robots.txt')
    assert storage.fingerprint('/robots.txt') == \
        f'"{file_stat.st_mtime_ns:x}-{file_stat.st_size:x}"'


def test_filesystem_root_path_is_index(static_root):
    storage = FileSystemStorage(str(static_root))

    with storage.open('/') as fd:
        assert fd.read() == b'<h1>index</h1>'


def test_filesystem_nested_path(static_root):
    storage = FileSystemStorage(str(static_root))

    assert storage.fingerprint('/img/logo.svg')

    with storage.open('/img/logo.svg') as fd:
        assert fd.read() == b'<svg/>'


def test_filesystem_fingerprint_changes_with_size(static_root):
    storage = FileSystemStorage(str(static_root))
    before = storage.fingerprint('/robots.txt')

    (static_root / 'robots.txt').write_bytes(b'User-agent: *\nDisallow: /\n')

    assert storage.fingerprint('/robots.txt') != before


def test_filesystem_fingerprint_changes_with_mtime(static_root):
    storage = FileSystemStorage(str(static_root))
    path = static_root / 'robots.txt'
    os.utime(path, ns=(1_000_000_000, 1_000_000_000))
    before = storage.fingerprint('/robots.txt')

    os.utime(path, ns=(2_000_000_000, 2_000_000_000))

    assert storage.fingerprint('/robots.txt') != before


def test_filesystem_same_size_same_mtime_rewrite_is_not_noticed(static_root):
    storage = FileSystemStorage(str(static_root))
    path = static_root / 'robots.txt'
    os.utime(path, ns=(1_000_000_000, 1_000_000_000))
    before = storage.fingerprint('/robots.txt')

    path.write_bytes(b'User-agent: x\n')
    os.utime(path, ns=(1_000_000_000, 1_000_000_000))

    assert storage.fingerprint('/robots.txt') == before


@pytest.mark.parametrize('key', ['/missing.js', '/img', '/../outside.txt', '/img/../../outside.txt'])
def test_filesystem_missing(static_root, key):
    (static_root.parent / 'outside.txt').write_bytes(b'secret')
    storage = FileSystemStorage(str(static_root))

    assert storage.open(key) is None

    with pytest.raises(SourceMissingError):
        storage.fingerprint(key)


def test_filesystem_null_byte_is_missing(static_root):
    storage = FileSystemStorage(str(static_root))

    assert storage.physical_path('/robots\x00.txt') is None
    assert storage.open('/robots\x00.txt') is None

    with pytest.raises(SourceMissingError):
        storage.fingerprint('/robots\x00.txt')


def test_filesystem_question_mark_is_part_of_name(static_root):
    (static_root / 'a?b.txt').write_bytes(b'question')
    storage = FileSystemStorage(str(static_root))

    with storage.open('/a?b.txt') as fd:
        assert fd.read() == b'question'

    assert storage.fingerprint('/a?b.txt')


def test_guess_content_type():
    assert guess_content_type('/app.js') in ('text/javascript', 'application/javascript')
    assert guess_content_type('/site.css') == 'text/css'
    assert guess_content_type('/blob') == 'application/octet-stream'


def test_memory_bundle_storage():
    storage = BundleStorage(bundles_by_name(
        MemoryBundle('scripts', {'app.js': b'debug', 'app.min.js': b'compact'})
    ))

    with storage.open('scripts:app.min.js') as fd:
        assert fd.read() == b'compact'

    assert storage.fingerprint('scripts:app.js') != storage.fingerprint('scripts:app.min.js')
    assert storage.fingerprint('scripts:app.js') == storage.fingerprint('scripts:app.js')


def test_memory_bundle_build_id_follows_content():
    first = MemoryBundle('scripts', {'app.min.js': b'one'})
    second = MemoryBundle('scripts', {'app.min.js': b'two'})

    assert first.build_id == MemoryBundle('scripts', {'app.min.js': b'one'}).build_id
    assert first.build_id != second.build_id
    assert BundleStorage({'scripts': first}).fingerprint('scripts:app.min.js') != \
        BundleStorage({'scripts': second}).fingerprint('scripts:app.min.js')


@pytest.mark.parametrize('key', ['scripts:nope.js', 'styles:app.min.js'])
def test_bundle_storage_missing(key):
    storage = BundleStorage({'scripts': MemoryBundle('scripts', {'app.min.js': b''})})

    assert storage.open(key) is None

    with pytest.raises(SourceMissingError):
        storage.fingerprint(key)


def test_zip_bundle(tmp_path):
    archive = write_zip(tmp_path / 'scripts.zip', {'app.js': b'debug', 'app.min.js': b'compact'})
    storage = BundleStorage({'scripts': ZipBundle('scripts', str(archive))})

    with storage.open('scripts:app.js') as fd:
        assert fd.read() == b'debug'

    assert storage.fingerprint('scripts:app.min.js') == storage.fingerprint('scripts:app.min.js')


def test_zip_bundle_rebuild_changes_fingerprint(tmp_path):
    archive = write_zip(tmp_path / 'scripts.zip', {'app.min.js': b'compact'})
    os.utime(archive, ns=(1_000_000_000, 1_000_000_000))
    storage = BundleStorage({'scripts': ZipBundle('scripts', str(archive))})
    before = storage.fingerprint('scripts:app.min.js')

    write_zip(archive, {'app.min.js': b'compact, rebuilt', 'new.min.js': b''})
    os.utime(archive, ns=(2_000_000_000, 2_000_000_000))

    assert storage.fingerprint('scripts:app.min.js') != before
    assert storage.fingerprint('scripts:new.min.js')


def test_zip_bundle_removed_archive(tmp_path):
    archive = write_zip(tmp_path / 'scripts.zip', {'app.min.js': b'compact'})
    storage = BundleStorage({'scripts': ZipBundle('scripts', str(archive))})

    archive.unlink()

    assert storage.open('scripts:app.min.js') is None

    with pytest.raises(SourceMissingError):
        storage.fingerprint('scripts:app.min.js')


def test_bundle_storage_swap():
    storage = BundleStorage({'scripts': MemoryBundle('scripts', {'app.min.js': b'one'})})
    before = storage.fingerprint('scripts:app.min.js')

    storage.swap({'scripts': MemoryBundle('scripts', {'app.min.js': b'two'})})

    assert storage.fingerprint('scripts:app.min.js') != before

    with storage.open('scripts:app.min.js') as fd:
        assert fd.read() == b'two'


def make_package(tmp_path, monkeypatch, name):
    package = tmp_path / name
    (package / 'static' / 'js').mkdir(parents=True)
    (package / '__init__.py').write_bytes(b'')
    (package / 'static' / 'js' / 'app.min.js').write_bytes(b'compact')
    monkeypatch.syspath_prepend(str(tmp_path))

    return package


def test_package_bundle_rebuild_changes_fingerprint(tmp_path, monkeypatch):
    package = make_package(tmp_path, monkeypatch, 'resserve_assets_rebuilt')
    asset = package / 'static' / 'js' / 'app.min.js'
    os.utime(asset, ns=(1_000_000_000, 1_000_000_000))
    storage = BundleStorage({'assets': PackageBundle('assets', 'resserve_assets_rebuilt', 'static')})
    before = storage.fingerprint('assets:js/app.min.js')

    assert storage.fingerprint('assets:js/app.min.js') == before

    asset.write_bytes(b'compact, rebuilt')
    os.utime(asset, ns=(2_000_000_000, 2_000_000_000))

    assert storage.fingerprint('assets:js/app.min.js') != before

    with storage.open('assets:js/app.min.js') as fd:
        assert fd.read() == b'compact, rebuilt'


def test_package_bundle_same_mtime_rewrite_of_other_size(tmp_path, monkeypatch):
    package = make_package(tmp_path, monkeypatch, 'resserve_assets_resized')
    asset = package / 'static' / 'js' / 'app.min.js'
    os.utime(asset, ns=(1_000_000_000, 1_000_000_000))
    bundle = PackageBundle('assets', 'resserve_assets_resized', 'static')
    before = bundle.build_id

    asset.write_bytes(b'longer compact')
    os.utime(asset, ns=(1_000_000_000, 1_000_000_000))

    assert bundle.build_id != before


def test_package_bundle_new_file_changes_build_id(tmp_path, monkeypatch):
    package = make_package(tmp_path, monkeypatch, 'resserve_assets_grown')
    bundle = PackageBundle('assets', 'resserve_assets_grown', 'static')
    before = bundle.build_id

    (package / 'static' / 'extra.css').write_bytes(b'')
    os.utime(package / 'static' / 'extra.css', ns=(1, 1))

    assert bundle.build_id != before
