import logging
import threading
from dataclasses import dataclass
from types import MappingProxyType
from collections.abc import Mapping
from typing import Iterable, Iterator, Optional

from .typehints import ResourceKey
from .utils.httputils import parse_flags

logger = logging.getLogger(__name__)

DEBUG_FLAG = 'debug'
BUNDLE_SEPARATOR = ':'


def make_key(bundle: str, name: str) -> ResourceKey:
    return f'{bundle}{BUNDLE_SEPARATOR}{name}'


def split_key(key: ResourceKey):
    bundle, sep, name = key.partition(BUNDLE_SEPARATOR)

    if not sep:
        raise ValueError(f'not a bundle resource key: {key!r}')

    return bundle, name


@dataclass(frozen=True)
class ResourceDescriptor:
    """
    A registered logical resource. Both variants live in the same bundle
    """

    path: str
    debug_name: str
    compact_name: str
    content_type: str
    extension: str
    bundle: str

    def variant(self, debug: bool) -> ResourceKey:
        return make_key(self.bundle, self.debug_name if debug else self.compact_name)


class ResourceRegistry(Mapping):
    """
    Read-only table of descriptors by logical path. Lookups are
    case-insensitive. Never mutated after construction: to change the
    set of resources, build a new registry and swap it into the resolver
    """

    def __init__(self, descriptors: Iterable[ResourceDescriptor] = ()):
        table = {}

        for descriptor in descriptors:
            key = normalize_path(descriptor.path)

            if key in table:
                raise ValueError(f'resource registered twice: {descriptor.path}')

            table[key] = descriptor

        self._table = MappingProxyType(table)

    def __getitem__(self, path: str) -> ResourceDescriptor:
        return self._table[normalize_path(path)]

    def __contains__(self, path) -> bool:
        return isinstance(path, str) and normalize_path(path) in self._table

    def __iter__(self) -> Iterator[str]:
        return iter(self._table)

    def __len__(self) -> int:
        return len(self._table)


def normalize_path(path: str) -> str:
    return '/' + path.strip().lstrip('/').lower()


def is_debug(raw_parameters: Optional[bytes]) -> bool:
    """
    True only if the nameless query parameters read exactly `debug`, in
    any case. They're joined with commas first, so `?foo&debug` is not
    debug, but `?debug&v=2` is
    """

    return ','.join(parse_flags(raw_parameters)).lower() == DEBUG_FLAG


class ResourceResolver:
    def __init__(self, registry: ResourceRegistry):
        self._registry = registry
        self._swap_lock = threading.Lock()

    @property
    def registry(self) -> ResourceRegistry:
        return self._registry

    def resolve(self, path: str) -> Optional[ResourceDescriptor]:
        """
        Returns None if the path is not registered. That's not an error,
        the caller is expected to serve the path as a plain file instead
        """

        # one read of the reference; a concurrent swap() never
        # shows a half-built table
        registry = self._registry

        return registry.get(path)

    def swap(self, registry: ResourceRegistry) -> ResourceRegistry:
        """
        Replaces the whole registry at once, returns the previous one
        """

        with self._swap_lock:
            previous, self._registry = self._registry, registry

        logger.info(f'resource registry swapped: {len(previous)} -> {len(registry)} resources')

        return previous
