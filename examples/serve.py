import logging

from resserve.webserver import WebServer, Settings

settings = Settings(
    port=8080,
    processes=1,
    root='static',
    manifest='build/manifest.json',
    watch_manifest=True,
    cache_control='public, max-age=31536000',
)
settings.logger.setLevel(logging.DEBUG)

WebServer(settings).run()
