"""
Compiled bundles hold already built (and minified) variants of registered
resources. A bundle is produced by an external build step; here it is only
read. Whatever the bundle is made of, it has a name and a build id, and a
resource fingerprint is derived from these two plus the resource name, so
checking client's cached copy never touches resource bytes
"""

import io
import os
import abc
import hashlib
import logging
import threading
import zipfile
from importlib import resources, metadata
from types import MappingProxyType
from typing import Dict, Mapping, Optional, FrozenSet

from .base import Storage
from .. import fingerprint
from ..exceptions import SourceMissingError
from ..registry import split_key
from ..typehints import FileDescriptor, Fingerprint, Path, ResourceKey

logger = logging.getLogger(__name__)


class ResourceBundle(abc.ABC):
    def __init__(self, name: str):
        self.name = name

    @property
    @abc.abstractmethod
    def build_id(self) -> str:
        """
        Changes every time bundle is rebuilt
        """

    @abc.abstractmethod
    def has(self, resource: str) -> bool:
        ...

    @abc.abstractmethod
    def open(self, resource: str) -> FileDescriptor:
        """
        Raises KeyError if there's no such resource in the bundle
        """

    def __repr__(self):
        return f'<{self.__class__.__name__} {self.name}>'


class MemoryBundle(ResourceBundle):
    """
    Bundle built in the process itself (or in tests)
    """

    def __init__(self, name: str, resources_: Mapping[str, bytes]):
        super(MemoryBundle, self).__init__(name)
        self._resources = MappingProxyType(dict(resources_))

        digest = hashlib.md5()

        for resource in sorted(self._resources):
            digest.update(resource.encode() + b'\x00')
            digest.update(self._resources[resource] + b'\x00')

        self._build_id = digest.hexdigest()

    @property
    def build_id(self) -> str:
        return self._build_id

    def has(self, resource: str) -> bool:
        return resource in self._resources

    def open(self, resource: str) -> FileDescriptor:
        return io.BytesIO(self._resources[resource])


class ZipBundle(ResourceBundle):
    """
    Zip archive made by the build step. The archive is stat'ed on every
    build_id access, so rebuilding it in place gives new fingerprints
    without restart
    """

    def __init__(self, name: str, path: Path):
        super(ZipBundle, self).__init__(name)
        self.path = path

        self._lock = threading.Lock()
        self._names: FrozenSet[str] = frozenset()
        self._names_build_id: Optional[str] = None
        self._read_names()

    @property
    def build_id(self) -> str:
        archive_stat = os.stat(self.path)

        return f'{archive_stat.st_mtime_ns:x}-{archive_stat.st_size:x}'

    def _read_names(self) -> FrozenSet[str]:
        build_id = self.build_id

        with self._lock:
            if build_id != self._names_build_id:
                with zipfile.ZipFile(self.path) as archive:
                    self._names = frozenset(archive.namelist())

                self._names_build_id = build_id

            return self._names

    def has(self, resource: str) -> bool:
        return resource in self._read_names()

    def open(self, resource: str) -> FileDescriptor:
        with zipfile.ZipFile(self.path) as archive:
            return io.BytesIO(archive.read(resource))


class PackageBundle(ResourceBundle):
    """
    Resources shipped as package data of an importable python package.
    Build id is made of the package files' state (latest mtime, total size
    and count, over the whole tree), prefixed with the version of the
    distribution that provides the package, if any. The version alone is
    not enough: editable installs get rebuilt without a version bump
    """

    def __init__(self, name: str, package: str, directory: str = ''):
        super(PackageBundle, self).__init__(name)
        self.package = package
        self.directory = directory
        self._root = resources.files(package)
        self._version = _distribution_version(package)

        if directory:
            self._root = self._root.joinpath(directory)

    @property
    def build_id(self) -> str:
        files_build_id = self._files_build_id()

        if self._version is None:
            return files_build_id

        return f'{self._version}-{files_build_id}'

    def _files_build_id(self) -> str:
        latest, total, count = 0, 0, 0
        pending = [self._root]

        while pending:
            for entry in pending.pop().iterdir():
                if entry.is_dir():
                    if entry.name != '__pycache__':
                        pending.append(entry)
                elif isinstance(entry, os.PathLike):
                    entry_stat = os.stat(entry)
                    latest = max(latest, entry_stat.st_mtime_ns)
                    total += entry_stat.st_size
                    count += 1

        return f'{latest:x}-{total:x}-{count:x}'

    def has(self, resource: str) -> bool:
        return self._root.joinpath(resource).is_file()

    def open(self, resource: str) -> FileDescriptor:
        entry = self._root.joinpath(resource)

        if not entry.is_file():
            raise KeyError(resource)

        return entry.open('rb')


class BundleStorage(Storage):
    """
    Storage over a set of named bundles. Keys look like `bundle:resource`
    """

    def __init__(self, bundles: Mapping[str, ResourceBundle] = MappingProxyType({})):
        self._bundles: Mapping[str, ResourceBundle] = MappingProxyType(dict(bundles))
        self._swap_lock = threading.Lock()

    @property
    def bundles(self) -> Mapping[str, ResourceBundle]:
        return self._bundles

    def swap(self, bundles: Mapping[str, ResourceBundle]) -> Mapping[str, ResourceBundle]:
        with self._swap_lock:
            previous, self._bundles = self._bundles, MappingProxyType(dict(bundles))

        return previous

    def _locate(self, key: ResourceKey):
        bundle_name, resource = split_key(key)
        bundle: Optional[ResourceBundle] = self._bundles.get(bundle_name)

        if bundle is None:
            raise SourceMissingError(key, f'no such bundle: {bundle_name}')

        return bundle, resource

    def open(self, key: ResourceKey) -> Optional[FileDescriptor]:
        try:
            bundle, resource = self._locate(key)
            return bundle.open(resource)
        except (SourceMissingError, KeyError, OSError, zipfile.BadZipFile) as exc:
            logger.debug(f'BundleStorage: failed to open {key}: {exc}')
            return None

    def fingerprint(self, key: ResourceKey) -> Fingerprint:
        bundle, resource = self._locate(key)

        try:
            if not bundle.has(resource):
                raise SourceMissingError(key, f'no such resource in {bundle.name}')

            build_id = bundle.build_id
        except (OSError, zipfile.BadZipFile) as exc:
            raise SourceMissingError(key, str(exc)) from exc

        return fingerprint.from_identity(bundle.name, build_id, resource)


def bundles_by_name(*bundles: ResourceBundle) -> Dict[str, ResourceBundle]:
    return {bundle.name: bundle for bundle in bundles}


def _distribution_version(package: str) -> Optional[str]:
    """
    Version of the distribution that actually provides the package. A
    distribution that merely has the same name as the package is ignored
    """

    top_level = package.split('.')[0]

    for distribution in metadata.packages_distributions().get(top_level, ()):
        try:
            return f'{distribution}-{metadata.version(distribution)}'
        except metadata.PackageNotFoundError:
            continue

    return None
