class WebServerError(Exception):
    pass


class SourceMissingError(WebServerError):
    """
    Raised by storages when a key has nothing behind it, or when the bytes
    behind it can not be read (so no fingerprint can be derived either)
    """

    def __init__(self, key: str, reason: str = ''):
        self.key = key
        self.reason = reason

        super(SourceMissingError, self).__init__(
            f'{key}: {reason}' if reason else key
        )


class ManifestError(WebServerError):
    pass


class HandlerMustBeCoroutineError(WebServerError):
    pass


class NoMethodsProvided(WebServerError):
    pass


class HTTPError(Exception):
    def __init__(self,
                 request,
                 **kwargs):
        self.request = request

        # an additional stash for dynamic values
        for key, value in kwargs.items():
            setattr(self, key, value)

        super(HTTPError, self).__init__(kwargs.get('msg', ''))


class HTTPNotFound(HTTPError):
    code = 404
    description = b'Not Found'


class HTTPMethodNotAllowed(HTTPError):
    code = 405
    description = b'Method Not Allowed'
