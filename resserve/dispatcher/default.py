import logging
from asyncio import iscoroutinefunction
from typing import (Dict, Callable, Awaitable, Union, Type, Iterable, Optional)

from .. import exceptions
from .base import BaseDispatcher
from ..entities import Request, Response
from ..utils.httputils import HTTP_METHODS, render_http_response
from ..typehints import RoutePath, AsyncFunction, HTTPMethod, Logger

ErrorHandler = Callable[[Request, Response, Exception], Awaitable[Response]]
RequestHandler = Callable[[Request, Response], Awaitable[Response]]
PRE_RENDERED_INTERNAL_ERROR_RESPONSE = render_http_response(
    protocol=b'1.1',
    code=500,
    status_code=b'Internal Server Error',
    headers=b'content-type: text/html\r\ncontent-length: 34',
    body=b'<h1>500 Internal Server Error</h1>'
)
PRE_RENDERED_NOT_FOUND = render_http_response(
    protocol=b'1.1',
    code=404,
    status_code=b'Not Found',
    headers=b'content-type: text/html\r\ncontent-length: 22',
    body=b'<h1>404 Not Found</h1>'
)


def make_sure_bytes_or_none(obj: Union[str, bytes, None]) -> Union[bytes, None]:
    if obj is None:
        return None

    return obj if isinstance(obj, bytes) else obj.encode()


def render_result(request: Request, result: Response) -> bytes:
    """
    Every response leaves the server with content-length (no chunked transfer
    at all). 304 has no body and gets no content-length of its own, responses
    to HEAD keep the length of the body they would have
    """

    return render_http_response(
        protocol=b'1.1',
        code=result.code,
        status_code=result.status,  # status can be None
        headers=result.headers,
        body=result.body or b'',
        count_content_length=result.code != 304,
        include_body=request.method != b'HEAD'
    )


class Handler:
    """
    A class that describes handler. Keeps it routing path,
    methods, etc.
    """

    def __init__(self,
                 handler: RequestHandler,
                 path: Optional[bytes],
                 methods: Iterable[bytes],
                 any_path: bool):
        self.handler = handler
        self.path = path
        self.methods = methods
        self.any_path = any_path


class Route:
    """
    Mainly class for cases when you need to add routes without using
    decorators, but using dp.add_routes([...])

    Route with path None catches every path that has no handler of its own
    """

    def __init__(self,
                 handler: RequestHandler,
                 path: Optional[RoutePath],
                 method_or_methods: Union[str, bytes, Iterable] = HTTP_METHODS):
        self.handler = handler
        self.path = make_sure_bytes_or_none(path)

        if isinstance(method_or_methods, (str, bytes)):
            method_or_methods = {method_or_methods}

        self.methods = {make_sure_bytes_or_none(method.upper()) for method in method_or_methods}


class AsyncDispatcher(BaseDispatcher):
    def __init__(self, logger: Logger = None):
        if logger is None:
            self.logger = logging.getLogger(__name__)
        else:
            self.logger = logger

        self.usual_handlers: Dict[bytes, Handler] = {}
        self.any_paths_handlers: Dict[HTTPMethod, Optional[Handler]] = {
            method: None for method in HTTP_METHODS
        }

        # a dict with exceptions and handlers of the exceptions
        self.error_handlers: Dict[Type[Exception], ErrorHandler] = {}

    async def process_request(self,
                              request: Request,
                              response: Response,
                              http_send: Callable[[bytes], None]) -> None:
        handler = self._get_handler(request)

        if handler is None:
            err_handler = self._get_error_handler(exceptions.HTTPNotFound)

            if err_handler is not None:
                rendered_response = await self._run_exception_handler(
                    exc_handler=err_handler,
                    request=request,
                    response=response,
                    exception=exceptions.HTTPNotFound(
                        request,
                        msg='no handlers attached for the request'
                    )
                )
            else:
                rendered_response = PRE_RENDERED_NOT_FOUND
                self.logger.warning(f'{(request.path or b"").decode()}: no handlers attached')

            http_send(rendered_response)
            return

        try:
            result = await handler.handler(request, response)
        except Exception as exc:
            http_send(await self._handle_exception(request, response, exc))
            return

        http_send(render_result(request, result))

    def route(self,
              path: Optional[RoutePath],
              method: Union[str, bytes, None] = None,
              methods: Iterable[HTTPMethod] = HTTP_METHODS):
        if method is not None:
            methods = {make_sure_bytes_or_none(method.upper())}

        def deco(coro: RequestHandler):
            if not methods:
                raise exceptions.NoMethodsProvided(str(coro))

            if not iscoroutinefunction(coro):
                raise exceptions.HandlerMustBeCoroutineError(str(coro))

            self._put_handler(Handler(
                handler=coro,
                path=make_sure_bytes_or_none(path),
                methods=set(methods),
                any_path=path is None
            ))

            return coro

        return deco

    def get(self, path: Optional[RoutePath]):
        return self.route(path, 'GET')

    def head(self, path: Optional[RoutePath]):
        return self.route(path, 'HEAD')

    def add_routes(self, routes: Iterable[Route]):
        for route in routes:
            self.add_route(route)

    def add_route(self, route: Route):
        if not route.methods:
            raise exceptions.NoMethodsProvided(str(route.handler))

        self._put_handler(Handler(
            handler=route.handler,
            path=route.path,
            methods=route.methods,
            any_path=not route.path
        ))

    def handle_error(self, error: Type[Exception]):
        def deco(coro: AsyncFunction):
            self.error_handlers[error] = coro

            return coro

        return deco

    def _get_handler(self, request: Request) -> Optional[Handler]:
        handler = self.usual_handlers.get(request.path)

        if handler is not None and request.method in handler.methods:
            return handler

        return self.any_paths_handlers.get(request.method)

    async def _handle_exception(self,
                                request: Request,
                                response: Response,
                                exc: Exception) -> bytes:
        err_handler = self._get_error_handler(exc.__class__)

        if err_handler is None:
            if isinstance(exc, exceptions.HTTPError):
                # if no handlers attached, but as we have HTTPError,
                # we can show the default error page to user
                self.logger.debug(f'{(request.path or b"").decode()}: {exc.code} {exc}')

                return render_http_response(
                    protocol=b'1.1',
                    code=exc.code,
                    status_code=exc.description,
                    headers=response.default_headers.copy(),
                    body=b'<h1>%d %s</h1>' % (exc.code, exc.description),
                    count_content_length=True,
                    include_body=request.method != b'HEAD'
                )

            self.logger.exception('no error handlers registered for exception:')

            return PRE_RENDERED_INTERNAL_ERROR_RESPONSE

        return await self._run_exception_handler(
            exc_handler=err_handler,
            request=request,
            response=response,
            exception=exc
        )

    def _get_error_handler(self, exc_class: Type[Exception]) -> Optional[ErrorHandler]:
        for exception_class in exc_class.mro():
            if exception_class in self.error_handlers:
                return self.error_handlers[exception_class]  # noqa

        return None

    async def _run_exception_handler(self,
                                     exc_handler: ErrorHandler,
                                     request: Request,
                                     response: Response,
                                     exception: Exception) -> bytes:
        try:
            result = await exc_handler(request, response, exception)
        except exceptions.HTTPError as exc:
            return render_http_response(
                protocol=b'1.1',
                code=exc.code,
                status_code=exc.description,
                headers=response.default_headers.copy(),
                body=b'<h1>%d %s</h1>' % (exc.code, exc.description),
                count_content_length=True
            )
        except Exception:   # noqa: again I need to catch all the exceptions here
            self.logger.exception('uncaught exception in error handler:')

            return PRE_RENDERED_INTERNAL_ERROR_RESPONSE

        return render_result(request, result)

    def _put_handler(self, handler: Handler) -> None:
        if handler.any_path:
            self._add_any_path_handler(handler)
        else:
            self.usual_handlers[handler.path] = handler

    def _add_any_path_handler(self, handler: Handler) -> None:
        for method in handler.methods:
            self.any_paths_handlers[method] = handler
