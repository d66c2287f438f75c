from typing import Union, Any, Dict, List, Optional

from .utils.httputils import parse_params, parse_flags

_MISSING = object()


class CaseInsensitiveDict(dict):
    """
    A class that works absolutely like usual dict, but keys are case-insensitive
    Do not try to make him work with anything that is not bytes or a string!
    """

    def __init__(self, *args, **kwargs):
        # it's really faster to call super() once
        # and get it from self, than call it every time
        self.__parent = super()
        super().__init__()
        self.update(dict(*args, **kwargs))

    def __getitem__(self, item: Union[str, bytes]) -> Any:
        return self.__parent.__getitem__(item.lower())

    def __setitem__(self, key: Union[str, bytes], value: Any) -> None:
        self.__parent.__setitem__(key.lower(), value)

    def __delitem__(self, key: Union[str, bytes]) -> None:
        self.__parent.__delitem__(key.lower())

    def __contains__(self, item: Union[str, bytes]) -> bool:
        return self.__parent.__contains__(item.lower())

    def get(self, item: Union[str, bytes], instead: Any = None) -> Any:
        return self.__parent.get(item.lower(), instead)

    def pop(self, key: Union[str, bytes], default: Any = _MISSING) -> Any:
        if default is _MISSING:
            return self.__parent.pop(key.lower())

        return self.__parent.pop(key.lower(), default)

    def setdefault(self, key: Union[str, bytes], default: Any = None) -> Any:
        return self.__parent.setdefault(key.lower(), default)

    def update(self, other=(), **kwargs):
        if hasattr(other, 'items'):
            other = other.items()

        self.__parent.update(
            {key.lower(): value for key, value in other},
            **{key.lower(): value for key, value in kwargs.items()}
        )

    def copy(self) -> 'CaseInsensitiveDict':
        return CaseInsensitiveDict(self.items())


class Request:
    def __init__(self):
        # not using Union cause every object's fields after initializing
        # ALWAYS will be refilled, but also I'd like to have proper
        # typehints
        self.method: Optional[bytes] = None
        self.path: Optional[bytes] = None
        self.fragment: Optional[bytes] = None
        self.raw_parameters: Optional[bytes] = None
        self.parsed_parameters: Optional[Dict[str, List[str]]] = None
        self.protocol: Optional[str] = None
        self.headers: CaseInsensitiveDict = CaseInsensitiveDict()
        self.body: bytes = b''

        # Purpose of context in request is only for exchanging some data between
        # the dispatcher and handlers
        self.ctx: dict = {}

    def wipe(self):
        """
        A method that clears path, body and headers attributes
        The purpose of this function is not to let already processed
        requests live longer than it should, cause this is potential
        DoS vulnerability
        """

        self.method = None
        self.path = None
        self.fragment = None
        self.raw_parameters = None
        self.parsed_parameters = None
        self.headers = CaseInsensitiveDict()
        self.body = b''
        self.ctx.clear()

    def params(self) -> Dict[str, List[str]]:
        """
        Returns a dict with URI parameters, where keys are strings
        and values are lists with strings

        Also, it isn't parsing anything until user will need it.
        If user never called Request.params(), they also never will
        be parsed

        If no parameters provided, empty dictionary will be returned
        If parameters are invalid, empty dictionary will be returned
        """

        if self.raw_parameters is None:
            self.parsed_parameters = {}
        elif not self.parsed_parameters:
            try:
                self.parsed_parameters = parse_params(self.raw_parameters)
            except ValueError:
                self.parsed_parameters = {}

        return self.parsed_parameters

    def flags(self) -> List[str]:
        """
        Parameters without value, `?debug` gives ['debug']
        """

        return parse_flags(self.raw_parameters)


class Response:
    """
    Response class is just a storage
    The actual response will happen after it will be returned
    """

    def __init__(self, default_headers: CaseInsensitiveDict):
        self.default_headers = default_headers

        self.code: int = 200
        self.status: Optional[bytes] = None
        self.headers: CaseInsensitiveDict = default_headers.copy()
        self.body: Optional[bytes] = None
        self.completed: bool = False

    def wipe(self):
        self.code = 200
        self.status = None
        self.headers = self.default_headers.copy()
        self.body = None
        self.completed = False

    def complete(self) -> 'Response':
        """
        Marks the response as done. Nothing is sent here: the dispatcher
        renders the whole response, with content-length, once the handler
        returns
        """

        self.completed = True

        return self

    def __call__(self,
                 code: int = 200,
                 status: Optional[bytes] = None,
                 headers: Optional[dict] = None,
                 body: Union[bytes, str] = b''
                 ):
        self.code = code
        self.status = status
        self.body = body if isinstance(body, bytes) else body.encode()

        if headers:
            self.headers.update(headers)

        return self
