import os
import stat
import logging
import mimetypes
from typing import Optional

from .base import Storage
from .. import fingerprint
from ..exceptions import SourceMissingError
from ..typehints import FileDescriptor, Fingerprint, Path, ResourceKey

logger = logging.getLogger(__name__)

INDEX_FILE = 'index.html'
DEFAULT_CONTENT_TYPE = 'application/octet-stream'


def guess_content_type(path: Path) -> str:
    mime, _ = mimetypes.guess_type(path)

    return mime or DEFAULT_CONTENT_TYPE


class FileSystemStorage(Storage):
    """
    Serves files under the document root by their request path. Files are
    opened per request and never kept: fingerprint is built from a single
    os.stat() call
    """

    def __init__(self, root: Path):
        self.root = os.path.realpath(root)

    def physical_path(self, key: ResourceKey) -> Optional[Path]:
        """
        Maps request path to a path on disk. Returns None if the request
        path points outside of the root or can not name a file at all
        """

        if '\x00' in key:
            logger.warning(f'FileSystemStorage: null byte in path: {key!r}')
            return None

        relative = key.lstrip('/') or INDEX_FILE
        full_path = os.path.realpath(os.path.join(self.root, relative))

        if os.path.commonpath((self.root, full_path)) != self.root:
            logger.warning(f'FileSystemStorage: path escapes the root: {key}')
            return None

        return full_path

    def _stat(self, key: ResourceKey) -> os.stat_result:
        full_path = self.physical_path(key)

        if full_path is None:
            raise SourceMissingError(key, 'outside of the root')

        try:
            file_stat = os.stat(full_path)
        except OSError as exc:
            raise SourceMissingError(key, exc.strerror or str(exc)) from exc

        if not stat.S_ISREG(file_stat.st_mode):
            raise SourceMissingError(key, 'not a regular file')

        return file_stat

    def open(self, key: ResourceKey) -> Optional[FileDescriptor]:
        full_path = self.physical_path(key)

        if full_path is None or not os.path.isfile(full_path):
            return None

        try:
            return open(full_path, 'rb')
        except OSError as exc:
            logger.error(f'FileSystemStorage: failed to open {full_path}: {exc}')
            return None

    def fingerprint(self, key: ResourceKey) -> Fingerprint:
        file_stat = self._stat(key)

        return fingerprint.from_stat(file_stat.st_mtime_ns, file_stat.st_size)
