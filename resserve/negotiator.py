import enum
from dataclasses import dataclass
from typing import Optional

from .entities import Request, Response
from .fingerprint import unquote
from .registry import is_debug
from .typehints import Fingerprint

NO_CACHE = 'no-cache'
ANY_VALIDATOR = '*'


class CacheDecision(enum.Enum):
    FULL_BODY = 'full-body'
    NOT_MODIFIED = 'not-modified'


@dataclass(frozen=True)
class ConditionalRequestContext:
    validator: Optional[str] = None
    debug: bool = False

    @classmethod
    def from_request(cls, request: Request) -> 'ConditionalRequestContext':
        return cls(
            validator=request.headers.get('if-none-match') or None,
            debug=is_debug(request.raw_parameters)
        )


def validator_matches(validator: Optional[str], current: Fingerprint) -> bool:
    if validator is None:
        return False

    current = unquote(current)

    for candidate in validator.split(','):
        candidate = candidate.strip()

        if candidate == ANY_VALIDATOR or unquote(candidate) == current:
            return True

    return False


def negotiate(context: ConditionalRequestContext,
              current: Fingerprint,
              response: Response,
              cache_control: Optional[str] = None) -> CacheDecision:
    """
    Puts etag (and caching policy) on the response no matter what is decided,
    so the client always gets a validator for its next request. On debug
    requests caching is disabled; otherwise cache_control is applied when
    given, and nothing is touched when it isn't
    """

    response.headers['etag'] = current

    if context.debug:
        response.headers['cache-control'] = NO_CACHE
        response.headers['pragma'] = NO_CACHE
    elif cache_control is not None:
        response.headers['cache-control'] = cache_control

    if validator_matches(context.validator, current):
        response.code = 304
        response.status = None
        response.body = b''

        return CacheDecision.NOT_MODIFIED

    return CacheDecision.FULL_BODY
