"""
Storage is a place where bytes of served resources come from: compiled
bundles for registered resources, or the plain filesystem for everything
else. Both give the same two things - a fingerprint that is cheap to
compute, and a binary stream that is opened only when the body is needed
"""

import abc
from typing import Optional

from ..typehints import FileDescriptor, Fingerprint, ResourceKey


class Storage(abc.ABC):
    @abc.abstractmethod
    def open(self, key: ResourceKey) -> Optional[FileDescriptor]:
        """
        Returns binary stream opened for reading, or None if nothing
        is stored by the key. Caller closes the stream
        """

    @abc.abstractmethod
    def fingerprint(self, key: ResourceKey) -> Fingerprint:
        """
        Returns quoted fingerprint for the key without reading the body.
        Raises exceptions.SourceMissingError if the key has no bytes
        behind it or they can't be reached
        """
