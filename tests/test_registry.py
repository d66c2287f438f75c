import pytest

from resserve.registry import (ResourceDescriptor, ResourceRegistry, ResourceResolver,
                               is_debug, make_key, split_key)

from conftest import APP_JS, SITE_CSS


@pytest.mark.parametrize('query', [b'debug', b'DEBUG', b'Debug', b'debug&v=2', b'v=2&debug'])
def test_debug_flag(query):
    assert is_debug(query)


@pytest.mark.parametrize('query', [None, b'', b'debugx', b'xdebug', b'debug=1',
                                   b'foo&debug', b'debug&debug', b'v=debug'])
def test_not_debug_flag(query):
    assert not is_debug(query)


def test_resolve_registered(resolver):
    assert resolver.resolve('/app.js') is APP_JS
    assert resolver.resolve('/css/site.css') is SITE_CSS


def test_resolve_is_case_insensitive(resolver):
    assert resolver.resolve('/APP.js') is APP_JS
    assert resolver.resolve('app.js') is APP_JS


def test_resolve_miss_returns_none(resolver):
    assert resolver.resolve('/other.js') is None
    assert resolver.resolve('/app.js.map') is None


def test_variant_selection():
    for descriptor in (APP_JS, SITE_CSS):
        assert descriptor.variant(debug=False) == make_key(descriptor.bundle, descriptor.compact_name)
        assert descriptor.variant(debug=True) == make_key(descriptor.bundle, descriptor.debug_name)


def test_split_key():
    assert split_key('scripts:app.min.js') == ('scripts', 'app.min.js')
    assert split_key('scripts:lib/a:b.js') == ('scripts', 'lib/a:b.js')

    with pytest.raises(ValueError):
        split_key('/app.js')


def test_registry_rejects_duplicates():
    duplicate = ResourceDescriptor('/APP.JS', 'a.js', 'a.min.js', 'text/javascript', '.js', 'scripts')

    with pytest.raises(ValueError):
        ResourceRegistry([APP_JS, duplicate])


def test_registry_is_read_only(registry):
    with pytest.raises(TypeError):
        registry['/new.js'] = APP_JS

    with pytest.raises(TypeError):
        registry._table['/new.js'] = APP_JS


def test_swap_replaces_whole_registry(resolver, registry):
    new_registry = ResourceRegistry([SITE_CSS])

    previous = resolver.swap(new_registry)

    assert previous is registry
    assert resolver.registry is new_registry
    assert resolver.resolve('/app.js') is None
    assert resolver.resolve('/css/site.css') is SITE_CSS


def test_empty_resolver_resolves_nothing():
    assert ResourceResolver(ResourceRegistry()).resolve('/app.js') is None
