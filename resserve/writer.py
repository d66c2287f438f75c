import os.path
from typing import Optional

from .entities import Request, Response
from .exceptions import HTTPNotFound
from .typehints import FileDescriptor

BUFFER_SIZE = 1024


def disposition(request_path: str, extension: str) -> str:
    """
    `inline;filename=<base name><extension>`. The extension is always the
    declared one, whatever the request path ends with
    """

    base_name = os.path.splitext(os.path.basename(request_path.rstrip('/')))[0]

    return f'inline;filename={base_name}{extension}'


class ResponseWriter:
    """
    Buffers the whole body before anything is rendered. The response is then
    sent once, with content-length, and is never chunked: some clients can't
    read chunked static resources
    """

    def __init__(self, buffer_size: int = BUFFER_SIZE):
        if buffer_size <= 0:
            raise ValueError(f'buffer size must be positive, got {buffer_size}')

        self.buffer_size = buffer_size

    def prepare(self,
                response: Response,
                request_path: str,
                content_type: str,
                extension: str) -> None:
        response.headers['content-type'] = content_type
        response.headers['content-disposition'] = disposition(request_path, extension)

    def stream(self,
               request: Request,
               source: Optional[FileDescriptor],
               response: Response) -> Response:
        if source is None:
            raise HTTPNotFound(request, msg='input stream is missing')

        body = bytearray()

        # blocking reads on the event loop thread; only small static assets
        # are expected here
        with source:
            chunk = source.read(self.buffer_size)

            while chunk:
                body += chunk
                chunk = source.read(self.buffer_size)

        response.code = 200
        response.body = bytes(body)
        response.headers.pop('transfer-encoding', None)
        response.headers['content-length'] = len(response.body)

        return response.complete()
