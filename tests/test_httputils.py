from resserve.entities import CaseInsensitiveDict
from resserve.utils.httputils import (decode_url, parse_flags, parse_params,
                                      render_http_response)


def test_render_counts_content_length_and_drops_chunked():
    headers = CaseInsensitiveDict({'Content-Type': 'text/css', 'Transfer-Encoding': 'chunked'})

    raw = render_http_response(b'1.1', 200, None, headers, b'body{}', count_content_length=True)

    assert raw == (b'HTTP/1.1 200 OK\r\n'
                   b'content-type: text/css\r\n'
                   b'content-length: 6\r\n'
                   b'\r\n'
                   b'body{}')


def test_render_without_body():
    raw = render_http_response(b'1.1', 200, None, CaseInsensitiveDict(), b'body{}',
                               count_content_length=True, include_body=False)

    assert raw == b'HTTP/1.1 200 OK\r\ncontent-length: 6\r\n\r\n'


def test_render_prerendered_headers():
    raw = render_http_response(b'1.1', 404, b'Not Found', b'content-length: 2', b'no')

    assert raw == b'HTTP/1.1 404 Not Found\r\ncontent-length: 2\r\n\r\nno'


def test_render_unknown_status():
    raw = render_http_response(b'1.1', 599, None, CaseInsensitiveDict(), b'')

    assert raw.startswith(b'HTTP/1.1 599 UNKNOWN\r\n')


def test_parse_params_skips_flags():
    assert parse_params(b'debug&v=2&v=3&name=a%20b') == {'v': ['2', '3'], 'name': ['a b']}


def test_parse_flags():
    assert parse_flags(b'debug&v=2&raw') == ['debug', 'raw']
    assert parse_flags(b'de%62ug') == ['debug']
    assert parse_flags(b'a;b') == ['a', 'b']
    assert parse_flags(b'&&') == []
    assert parse_flags(None) == []


def test_decode_url():
    assert decode_url(b'/my%20app.js') == b'/my app.js'
    assert decode_url(b'/100%') == b'/100%'
    assert decode_url(b'/%zz') == b'/%zz'
