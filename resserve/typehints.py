from typing import Callable, Awaitable, BinaryIO, Union, Protocol

AsyncFunction = Callable[..., Awaitable]
Path = str
RoutePath = Union[str, bytes]
FileDescriptor = BinaryIO
ResourceKey = str
Fingerprint = str
HTTPMethod = bytes


class Logger(Protocol):
    def debug(self, text: str) -> None:
        ...

    def info(self, text: str) -> None:
        ...

    def warning(self, text: str) -> None:
        ...

    def error(self, text: str) -> None:
        ...

    def critical(self, text: str) -> None:
        ...

    def exception(self, text: str) -> None:
        ...
