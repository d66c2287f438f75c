import os
import socket
import logging
import asyncio
import multiprocessing
from traceback import format_exc
from dataclasses import dataclass, field
from typing import List, Type, Union, Optional

from .utils import sockutils
from .server.base import HTTPServer
from .utils.termutils import is_linux, is_windows
from .entities import CaseInsensitiveDict
from .dispatcher.base import BaseDispatcher
from .dispatcher.default import AsyncDispatcher, Route
from .handler import ResourceHandler
from .manifest import Manifest, load_manifest
from .registry import ResourceResolver
from .server.aiohttpserver import AioHTTPServer
from .storage.bundle import BundleStorage
from .storage.filesystem import FileSystemStorage
from .writer import ResponseWriter, BUFFER_SIZE

try:
    from signal import SIGKILL
except ImportError:
    from signal import CTRL_C_EVENT as SIGKILL

logging.basicConfig(
    format='[%(asctime)s] [%(levelname)s] %(name)s: %(message)s'
)


@dataclass
class Settings:
    host: str = field(default='127.0.0.1')
    port: int = field(default=9090)
    max_bind_retries: Optional[int] = field(default=None)
    bind_retries_timeout: Union[int, float] = field(default=3)
    max_connections: Optional[int] = field(default=1024)
    processes: Optional[int] = field(default=None)

    default_headers: CaseInsensitiveDict = field(
        default_factory=lambda: CaseInsensitiveDict(
            server='resserve',
            connection='keep-alive'
        )
    )

    # document root for paths that aren't registered resources
    root: str = field(default='static')
    manifest: Optional[str] = field(default=None)
    watch_manifest: bool = field(default=False)
    # applied to non-debug responses only; None leaves caching headers as is
    cache_control: Optional[str] = field(default=None)
    buffer_size: int = field(default=BUFFER_SIZE)

    logger: logging.Logger = field(default_factory=lambda: logging.getLogger('resserve'))

    httpserver: Type[HTTPServer] = field(default=AioHTTPServer)
    uvloop: bool = field(default=True)

    asyncio_logging: bool = field(default=True)
    asyncio_logging_level: int = field(default=logging.DEBUG)


def build_handler(settings: Settings, manifest: Optional[Manifest] = None) -> ResourceHandler:
    """
    Builds the resource handler out of settings. Manifest is loaded from
    settings.manifest unless given explicitly; no manifest at all means
    every request is served from the document root
    """

    if manifest is None:
        manifest = load_manifest(settings.manifest) if settings.manifest else Manifest()

    return ResourceHandler(
        resolver=ResourceResolver(manifest.registry),
        bundles=BundleStorage(manifest.bundles),
        files=FileSystemStorage(settings.root),
        writer=ResponseWriter(settings.buffer_size),
        cache_control=settings.cache_control
    )


def build_dispatcher(handler: ResourceHandler,
                     logger: Optional[logging.Logger] = None) -> AsyncDispatcher:
    dp = AsyncDispatcher(logger)
    # every method goes to the handler, it answers 405 to what it does not serve
    dp.add_route(Route(handler, None))

    return dp


class WebServer:
    def __init__(self,
                 settings: Settings = None,
                 ):
        settings = settings or Settings()
        self.logger = settings.logger
        asyncio_logger = logging.getLogger('asyncio')
        asyncio_logger.disabled = not settings.asyncio_logging
        asyncio_logger.setLevel(settings.asyncio_logging_level)

        self.settings = settings
        self.handler: Optional[ResourceHandler] = None
        self.watcher = None

        # if children is None, current process isn't parent
        # only parent process has a list of children
        self._children: Optional[List[int]] = []

    def run(self, dp: Optional[BaseDispatcher] = None):
        """
        This function is called once when user starts the server.
        Builds the resource handler and default dispatcher (if no
        dispatcher given), setting forks count if not specified.
        Then it just creates n-1 processes with web-server workers and
        running the n one
        """

        if dp is None:
            self.handler = build_handler(self.settings)
            dp = build_dispatcher(self.handler, self.logger)
        elif not isinstance(dp, BaseDispatcher):
            raise TypeError(f'{dp} object must be inherited from '
                            'resserve.dispatcher.base.BaseDispatcher object!')

        children_count = self._get_children_count(self.settings.processes)

        if children_count + 1 != self.settings.processes:
            self.logger.info(f'setting processes count to {children_count + 1}')

        self.logger.debug(f'forking {children_count} times')
        self._children = self._do_forks(n=children_count)

        if self._children:
            self.logger.info('children has been spawned')

        self._start_watcher()
        self._server_worker(dp)

    def _get_children_count(self, raw_count: Optional[int]) -> int:
        """
        Returns a count of children has to be spawned

        Returns 0 if Windows (as reuseport isn't available under windows)
        Returns raw_count - 1 if raw_count is bigger than 1
        Returns 0 if raw_count is 1
        Returns multiprocessing.cpu_count() - 1 if raw_count is None or <0
        """

        if is_windows():
            if raw_count not in (0, 1):
                self.logger.info('running under windows: reuseport is '
                                 'not available; disabling forks')
            return 0

        if raw_count is None or raw_count < 0:
            return multiprocessing.cpu_count() - 1

        return raw_count - 1 if raw_count > 0 else 0

    def _do_forks(self, n: int) -> Optional[List[int]]:
        spawned_children = []

        for child_num in range(n):
            child_pid = os.fork()

            if child_pid != 0:
                spawned_children.append(child_pid)
                self.logger.debug(f'started child process id={child_num} pid={child_pid}')
            else:
                return None

        return spawned_children

    def _start_watcher(self):
        """
        Every process has its own copy of registry, so every process
        watches the manifest on its own
        """

        if not (self.settings.watch_manifest and self.settings.manifest and self.handler):
            return

        if not is_linux():
            self.logger.warning('manifest watching is available only under linux')
            return

        from .watcher import ManifestWatcher

        self.watcher = ManifestWatcher(
            self.settings.manifest,
            self.handler.resolver,
            self.handler.bundles
        )
        self.watcher.start()

    def _new_event_loop(self) -> asyncio.AbstractEventLoop:
        if not self.settings.uvloop or is_windows():
            return asyncio.new_event_loop()

        import uvloop

        return uvloop.new_event_loop()

    def _server_worker(self, dp: BaseDispatcher):
        """
        Finally, we're in our brand-new process that belongs only to us
        """

        self.logger.disabled = not self._is_parent()

        sock = socket.socket()

        if not is_windows():
            # as I said before, windows does not support reuseport
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEPORT, True)

        self.logger.debug(f'trying to bind on {self.settings.host}:{self.settings.port}...')

        succeeded, retries_went = sockutils.bind_sock(
            sock=sock,
            addr=(self.settings.host, self.settings.port),
            max_retries=self.settings.max_bind_retries or 99999,
            retries_timeout=self.settings.bind_retries_timeout
        )

        if not succeeded:
            retries_timeout = self.settings.bind_retries_timeout
            self.logger.error(f'failed to bind server on {self.settings.host}:{self.settings.port}: '
                              f'max retries exceeded (retries={retries_went}, '
                              f'retries_timeout={retries_timeout}, '
                              f'time_elapsed={round(retries_went * retries_timeout, 2)}secs)')

            if self._is_parent():
                self.logger.critical('the problem was caused in parent process, shutting down '
                                     'the server')
                self._kill_children()

            sock.close()
            raise SystemExit(1)

        if self._is_parent():
            self.logger.info(f'successfully bound socket on {self.settings.host}:{self.settings.port}')
            self.logger.info('press CTRL-C to stop the server')

        http_server = self.settings.httpserver(
            sock,
            self.settings.max_connections,
            dp.on_begin_serving,
            dp.process_request,
            self.settings.default_headers
        )

        while True:
            try:
                loop = self._new_event_loop()
                loop.run_until_complete(http_server.poll())
            except (KeyboardInterrupt, SystemExit, EOFError):
                if self._is_parent():
                    self.logger.info('shutting down (aborted by user)...')
                    self._kill_children()
                    http_server.stop()

                    break
                else:
                    self.logger.info(f'child pid={os.getpid()} received KeyboardInterrupt; '
                                     f'continuing the job, server can be stopped only from '
                                     f'parent process')
            except Exception as exc:
                self.logger.exception(f'an error occurred while running http server: {exc}\n'
                                      f'Detailed trace:\n{format_exc()}')
                self.logger.info('continuing the job')

        if self.watcher is not None:
            self.watcher.close()

    def _is_parent(self) -> bool:
        """
        Returns True or False, depending on fact whether we're in parent process
        or not
        """

        return self._children is not None

    def _kill_children(self):
        if self._is_parent():
            self.logger.debug('killing children...')

            for child in self._children:
                try:
                    os.kill(child, SIGKILL)
                except OSError as exc:
                    self.logger.warning(f'failed to kill children pid={child}: {exc}')

            self._children.clear()
            self.logger.info('killed all the children')

    def stop(self):
        """
        Currently the only thing we need is just killing all the children
        """

        self._kill_children()
