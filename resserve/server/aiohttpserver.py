import socket
import asyncio
import logging
from typing import Optional, Callable

from httptools import HttpRequestParser
from httptools.parser.errors import HttpParserError

from . import base
from ..typehints import AsyncFunction
from ..entities import Request, Response, CaseInsensitiveDict
from ..parser.httptools_protocol import Protocol as LLHttpProtocol
from ..utils.httputils import render_http_response

logger = logging.getLogger(__name__)

CLIENT_DISCONNECTED = 'constant for client runners tasks to stop themselves silently'
BAD_REQUEST = render_http_response(
    protocol=b'1.1',
    code=400,
    status_code=b'Bad Request',
    headers=b'content-type: text/html\r\ncontent-length: 24\r\nconnection: close',
    body=b'<h1>400 Bad Request</h1>'
)


def server_protocol_factory(
        on_message_complete: AsyncFunction,
        default_headers: CaseInsensitiveDict
) -> 'AsyncioServerProtocol':

    request_obj = Request()
    response_obj = Response(default_headers)
    protocol = LLHttpProtocol(request_obj)
    parser = HttpRequestParser(protocol)
    protocol.parser = parser

    return AsyncioServerProtocol(
        on_message_complete,
        protocol,
        parser,
        request_obj,
        response_obj
    )


class AsyncioServerProtocol(asyncio.Protocol):
    def __init__(self,
                 on_message_complete: AsyncFunction,
                 protocol: LLHttpProtocol,
                 parser: HttpRequestParser,
                 request_obj: Request,
                 response_obj: Response):
        self.on_message_complete = on_message_complete
        self.transport: Optional[asyncio.Transport] = None
        self.protocol = protocol
        self.parser = parser
        self.request_obj = request_obj
        self.response_obj = response_obj

        self.requests_queue = asyncio.Queue()
        self.runner: Optional[asyncio.Task] = None

    def connection_made(self, transport: asyncio.Transport) -> None:
        self.transport = transport
        self.runner = asyncio.get_running_loop().create_task(client_runner(
            requests_queue=self.requests_queue,
            callback=self.on_message_complete,
            parser=self.parser,
            protocol=self.protocol,
            transport=transport,
            request=self.request_obj,
            response=self.response_obj
        ))

    def data_received(self, data: bytes) -> None:
        self.requests_queue.put_nowait(data)

    def connection_lost(self, _) -> None:
        # connection_lost callback receives one positional argument - Exception
        # object. But we actually don't need it, it's client's problem
        self.requests_queue.put_nowait(CLIENT_DISCONNECTED)


class AioHTTPServer(base.HTTPServer):
    def __init__(self,
                 sock: socket.socket,
                 max_conns: int,
                 on_begin_serving: Callable,
                 on_message_complete: AsyncFunction,
                 default_headers: CaseInsensitiveDict):
        super(AioHTTPServer, self).__init__(
            sock=sock,
            max_conns=max_conns,
            on_begin_serving=on_begin_serving,
            on_message_complete=on_message_complete,
            default_headers=default_headers
        )

        self.server: Optional[asyncio.AbstractServer] = None
        sock.listen(max_conns)

    async def poll(self):
        loop = asyncio.get_running_loop()
        server = await loop.create_server(
            lambda: server_protocol_factory(
                self.on_message_complete,
                self.default_headers
            ),
            sock=self.sock,
            start_serving=False
        )
        self.server = server
        self.on_begin_serving()

        await server.serve_forever()

    def stop(self):
        if self.server is not None:
            self.server.close()


async def client_runner(requests_queue: asyncio.Queue,
                        callback: AsyncFunction,
                        parser: HttpRequestParser,
                        protocol: LLHttpProtocol,
                        transport: asyncio.Transport,
                        request: Request,
                        response: Response) -> None:
    while True:
        data = await requests_queue.get()

        if data == CLIENT_DISCONNECTED:
            return

        try:
            parser.feed_data(data)
        except HttpParserError as exc:
            logger.debug(f'failed to parse request: {exc}')
            transport.write(BAD_REQUEST)
            transport.close()
            return

        if protocol.received:
            keep_alive = parser.should_keep_alive()

            await callback(
                request,
                response,
                transport.write
            )
            request.wipe()
            response.wipe()
            protocol.__init__(request)
            parser = HttpRequestParser(protocol)
            protocol.parser = parser

            if not keep_alive:
                transport.close()
                return
