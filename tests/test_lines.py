import pytest

from conftest import FakeResponse, FakeSession, js_literal
from dbus_proxy.errors import NotFound, UpstreamFormatError, UpstreamHttpError
from dbus_proxy.lines import LINES_CACHE_KEY, LineCatalog, parse_bus_lines, split_display_text

RAW_LINES = [
    {"text": "Selecciona una línea", "enlace": "", "value": ""},
    {"text": "5 | Benta Berri", "enlace": "https://dbus.eus/5-benta-berri/", "value": "12"},
    {"text": "28 | Amara - Ospitaleak", "enlace": "https://dbus.eus/28-amara/", "value": "40"},
    {"text": " 13 |Altza ", "enlace": "https://dbus.eus/13-altza/", "value": "21"},
    {"text": "42\u00a0|\u00a0Añorga", "enlace": "https://dbus.eus/42-anorga/", "value": "77"},
]


def landing_page(entries=RAW_LINES):
    return (
        "<html><head><script>\n"
        "var ajaxurl = 'https:\\/\\/dbus.eus\\/wp-admin\\/admin-ajax.php';\n"
        f"var lineas = JSON.parse('{js_literal(entries)}');\n"
        "</script></head><body></body></html>"
    )


def test_split_display_text():
    assert split_display_text("5 | Benta Berri") == ("5", "Benta Berri")
    assert split_display_text("28 | Amara") == ("28", "Amara")
    assert split_display_text("Selecciona una línea") is None


def test_parse_bus_lines_maps_and_filters_entries():
    lines = parse_bus_lines(landing_page())

    assert [(line.code, line.name) for line in lines] == [
        ("5", "Benta Berri"),
        ("28", "Amara - Ospitaleak"),
        ("13", "Altza"),
        ("42", "Añorga"),
    ]
    assert lines[0].url == "https://dbus.eus/5-benta-berri/"
    assert lines[0].internal_id == "12"


def test_parse_bus_lines_unescapes_quotes():
    html = landing_page([{"text": "9 | Egia - Intxaurrondo 'Gros'", "enlace": "", "value": "3"}])
    html = html.replace("'Gros'", "\\'Gros\\'")
    assert parse_bus_lines(html)[0].name == "Egia - Intxaurrondo 'Gros'"


def test_missing_literal_is_a_format_error():
    with pytest.raises(UpstreamFormatError, match="not found"):
        parse_bus_lines("<html><body>maintenance</body></html>")


def test_broken_literal_is_a_format_error():
    html = "<script>var lineas = JSON.parse('[{\\\"text\\\": ');</script>"
    with pytest.raises(UpstreamFormatError, match="not valid JSON"):
        parse_bus_lines(html)


def test_get_bus_lines_fetches_then_caches(cache):
    session = FakeSession(FakeResponse(landing_page()))
    catalog = LineCatalog(cache, session, "https://dbus.eus/")

    lines = catalog.get_bus_lines()

    assert session.calls[0]["method"] == "GET"
    assert session.calls[0]["url"] == "https://dbus.eus/"
    assert cache.get(LINES_CACHE_KEY)[0] == {
        "code": "5",
        "name": "Benta Berri",
        "url": "https://dbus.eus/5-benta-berri/",
        "internal_id": "12",
    }
    assert catalog.get_bus_lines() == lines
    assert len(session.calls) == 1


def test_non_success_status_is_raised(cache):
    catalog = LineCatalog(cache, FakeSession(FakeResponse("", 503)), "https://dbus.eus/")
    with pytest.raises(UpstreamHttpError) as excinfo:
        catalog.get_bus_lines()
    assert excinfo.value.status == 503
    assert "503" in str(excinfo.value)
    assert cache.get(LINES_CACHE_KEY) is None


def test_get_line_resolves_by_code(cache):
    catalog = LineCatalog(cache, FakeSession(FakeResponse(landing_page())), "https://dbus.eus/")
    assert catalog.get_line("28").name == "Amara - Ospitaleak"
    with pytest.raises(NotFound, match="Line with code 99 not found"):
        catalog.get_line("99")


def test_escaped_quote_before_paren_stays_inside_literal():
    html = landing_page([{"text": "9 | Egia (Gros')", "enlace": "", "value": "3"}])
    html = html.replace("(Gros')", "(Gros\\')")
    assert parse_bus_lines(html)[0].name == "Egia (Gros')"


def test_malformed_cached_lines_are_refetched(cache):
    cache.set(LINES_CACHE_KEY, {"lines": [{"code": "5"}]})
    session = FakeSession(FakeResponse(landing_page()))
    catalog = LineCatalog(cache, session, "https://dbus.eus/")

    assert catalog.get_bus_lines()[0].code == "5"
    assert len(session.calls) == 1

    cache.set(LINES_CACHE_KEY, [{"name": "no code"}])
    session.responses.append(FakeResponse(landing_page()))
    assert [line.code for line in catalog.get_bus_lines()] == ["5", "28", "13", "42"]
    assert len(session.calls) == 2
