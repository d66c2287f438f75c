import os
import logging
from threading import Thread
from typing import Optional

import inotify.adapters
from inotify.calls import InotifyError

from .exceptions import ManifestError
from .manifest import load_manifest
from .registry import ResourceResolver
from .storage.bundle import BundleStorage
from .typehints import Path

# disable inotify logs cause they're useless
logging.getLogger('inotify.adapters').disabled = True

logger = logging.getLogger(__name__)

# the directory is watched, not the file: editors and build tools often
# replace the file by renaming a new one over it
RELOAD_EVENTS = {'IN_CLOSE_WRITE', 'IN_MOVED_TO'}


class ManifestWatcher:
    """
    Reloads the manifest when it changes on disk. New registry and bundles
    are built aside and then swapped in, so requests in flight keep the
    snapshot they started with. A manifest that fails to load is logged
    and ignored, the previous snapshot stays
    """

    def __init__(self,
                 manifest_path: Path,
                 resolver: ResourceResolver,
                 bundle_storage: BundleStorage):
        self.manifest_path = manifest_path
        self.resolver = resolver
        self.bundle_storage = bundle_storage
        self._filename = os.path.basename(manifest_path)

        self.inotify: Optional[inotify.adapters.Inotify] = None
        self._thread: Optional[Thread] = None
        self._running = False

    def reload(self) -> bool:
        """
        Bundles and registry are two separate swaps, so a request running
        between them may see the new bundles with the old registry. A
        resource whose bundle is not (yet) there is served from the
        document root, and a key is never paired with another bundle's bytes
        """

        try:
            manifest = load_manifest(self.manifest_path)
        except ManifestError as exc:
            logger.error(f'ManifestWatcher: keeping previous resources, reload failed: {exc}')
            return False

        self.bundle_storage.swap(manifest.bundles)
        self.resolver.swap(manifest.registry)

        return True

    def _events_listener(self):
        while self._running:
            for event in self.inotify.event_gen(yield_nones=False, timeout_s=.5):
                _, event_types, _, filename = event

                if filename == self._filename and RELOAD_EVENTS.intersection(event_types):
                    logger.info(f'ManifestWatcher: {self.manifest_path} changed, reloading')
                    self.reload()

    def start(self) -> bool:
        self.inotify = inotify.adapters.Inotify()

        try:
            self.inotify.add_watch(os.path.dirname(os.path.abspath(self.manifest_path)))
            logger.debug(f'ManifestWatcher: watching file: {self.manifest_path}')
        except InotifyError as exc:
            logger.error(f'ManifestWatcher: failed to start watching file '
                         f'{self.manifest_path}: {exc}')
            return False

        self._running = True
        self._thread = Thread(target=self._events_listener, daemon=True)
        self._thread.start()

        return True

    def close(self):
        self._running = False

        if self._thread is not None:
            self._thread.join()
            self._thread = None
