from resserve.entities import Request, Response
from resserve.dispatcher.default import AsyncDispatcher, Route
from resserve.exceptions import HTTPNotFound
from resserve.webserver import WebServer, Settings, build_handler

settings = Settings(port=8080, root='static', manifest='build/manifest.json')
dp = AsyncDispatcher()


@dp.get('/health')
async def health(request: Request, response: Response) -> Response:
    return response(body=b'ok')


@dp.handle_error(HTTPNotFound)
async def not_found(request: Request, response: Response, exc: HTTPNotFound) -> Response:
    return response(code=404, headers={'content-type': 'text/plain'}, body=b'no such resource')


dp.add_route(Route(build_handler(settings), None, {'GET', 'HEAD'}))

WebServer(settings).run(dp)
