import os.path
import logging
from typing import Optional

from . import exceptions
from .entities import Request, Response
from .negotiator import CacheDecision, ConditionalRequestContext, negotiate
from .registry import ResourceDescriptor, ResourceResolver
from .storage.base import Storage
from .storage.filesystem import INDEX_FILE, guess_content_type
from .typehints import ResourceKey
from .writer import ResponseWriter

logger = logging.getLogger(__name__)

SERVED_METHODS = {b'GET', b'HEAD'}


class ResourceHandler:
    """
    Serves registered resources out of compiled bundles, falling back to
    plain files under the document root for everything that isn't
    registered (or whose bundle variant is gone). Only a path that is
    missing in both places ends up as 404

    Instances are stateless, so a single one is shared by all requests
    """

    def __init__(self,
                 resolver: ResourceResolver,
                 bundles: Storage,
                 files: Storage,
                 writer: Optional[ResponseWriter] = None,
                 cache_control: Optional[str] = None):
        self.resolver = resolver
        self.bundles = bundles
        self.files = files
        self.writer = writer or ResponseWriter()
        self.cache_control = cache_control

    async def __call__(self, request: Request, response: Response) -> Response:
        if request.method not in SERVED_METHODS:
            raise exceptions.HTTPMethodNotAllowed(request, msg=f'{request.method!r} is not served')

        path = (request.path or b'/').decode(errors='replace')
        context = ConditionalRequestContext.from_request(request)
        descriptor = self.resolver.resolve(path)

        if descriptor is not None:
            served = self._serve_resource(request, response, path, descriptor, context)

            if served is not None:
                return served
        else:
            logger.debug(f'{path}: not registered, serving as file')

        return self._serve_file(request, response, path, context)

    def _serve_resource(self,
                        request: Request,
                        response: Response,
                        path: str,
                        descriptor: ResourceDescriptor,
                        context: ConditionalRequestContext) -> Optional[Response]:
        """
        Returns None if the bundle has no such variant, so the caller
        falls back to the filesystem
        """

        key = descriptor.variant(context.debug)

        try:
            current = self.bundles.fingerprint(key)
        except exceptions.SourceMissingError as exc:
            logger.warning(f'{path}: registered resource is missing in bundle ({exc}), '
                           'falling back to file')
            return None

        self.writer.prepare(response, path, descriptor.content_type, descriptor.extension)

        return self._respond(request, response, self.bundles, key, current, context)

    def _serve_file(self,
                    request: Request,
                    response: Response,
                    path: str,
                    context: ConditionalRequestContext) -> Response:
        if path.endswith('/'):
            path += INDEX_FILE

        try:
            current = self.files.fingerprint(path)
        except exceptions.SourceMissingError as exc:
            raise exceptions.HTTPNotFound(request, msg=str(exc)) from exc

        _, extension = os.path.splitext(path)
        self.writer.prepare(response, path, guess_content_type(path), extension)

        return self._respond(request, response, self.files, path, current, context)

    def _respond(self,
                 request: Request,
                 response: Response,
                 storage: Storage,
                 key: ResourceKey,
                 current: str,
                 context: ConditionalRequestContext) -> Response:
        decision = negotiate(context, current, response, self.cache_control)
        logger.debug(f'{key}: {decision.value} (debug={context.debug})')

        if decision is CacheDecision.NOT_MODIFIED:
            # body is not needed, so the source isn't even opened
            return response.complete()

        return self.writer.stream(request, storage.open(key), response)
