from string import hexdigits
from typing import Union, Optional, Dict, List

from .status_codes import status_codes

HTTP_METHODS = {b'GET', b'HEAD', b'POST', b'PUT',
                b'DELETE', b'CONNECT', b'OPTIONS',
                b'TRACE', b'PATCH'}
HEX_TO_BYTE = {(a + b).encode(): bytes.fromhex(a + b)
               for a in hexdigits for b in hexdigits}


def render_http_response(protocol: bytes,
                         code: int,
                         status_code: Optional[bytes],
                         headers: Union[dict, bytes],
                         body: bytes,
                         count_content_length: bool = False,
                         include_body: bool = True) -> bytes:
    """
    A function for rendering http responses. Uses C-formatting as the only way for
    formatting byte-strings

    Arguments:
             protocol - protocol version, string in format `major.minor`,
             code - response status code,
             status_code - may be None, than it'll be taken from the list of known.
                           If no known status codes relate to the status code, UNKNOWN
                           will be used
             headers - a dict (or CaseInsensitiveDict) with headers. May be bytes, than
                       they won't be rendered
             body - only bytes are accepted
             count_content_length - disabled by default, but if enabled and headers aren't
                                    already rendered, content-length header will be replaced
                                    by len(body). Transfer-encoding is dropped in this case,
                                    so the response is always length-delimited
             include_body - False for responses to HEAD requests: content-length is still
                            counted from the body, but the body itself is not rendered
    """

    if not isinstance(headers, bytes):
        if count_content_length:
            headers.pop('transfer-encoding', None)
            headers['content-length'] = len(body)

        headers = b''.join(
            f'{key}: {value}\r\n'.encode() for key, value in headers.items()
        )
    elif headers:
        headers += b'\r\n'

    status_description = status_code or status_codes.get(code, b'UNKNOWN')

    if not include_body:
        body = b''

    return b'HTTP/%s %d %s\r\n%s\r\n%s' % (protocol, code, status_description, headers, body)


def parse_params(params: bytes) -> Dict[str, List[str]]:
    """
    Returns dict with params (empty if no params given). Parameters without
    a value (flags, like `?debug`) are not included, see parse_flags()

    May raise exceptions: ValueError
    """

    pairs: Dict[str, List] = {}

    for attr in params.split(b'&' if b'&' in params else b';'):
        if b'=' not in attr:
            continue

        key, value = decode_url(attr).decode().split('=', 1)

        if key not in pairs:
            pairs[key] = [value]
        else:
            pairs[key].append(value)

    return pairs


def parse_flags(params: Optional[bytes]) -> List[str]:
    """
    Returns parameters that have no value in order of appearance. For
    `?debug&v=2&raw` it is ['debug', 'raw']. Empty items are skipped
    """

    if not params:
        return []

    return [
        decode_url(attr).decode(errors='replace')
        for attr in params.split(b'&' if b'&' in params else b';')
        if attr and b'=' not in attr
    ]


def decode_url(bytestring: bytes) -> bytes:
    bits = bytestring.split(b'%')
    decoded: bytes = bits[0]

    for item in bits[1:]:
        try:
            decoded += HEX_TO_BYTE[item[:2]] + item[2:]
        except KeyError:
            decoded += b'%' + item

    return decoded
