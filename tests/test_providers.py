import asyncio
import json

import httpx
import pytest

from tabular_translator.errors import TranslationServiceError
from tabular_translator.providers import (
    LibreTranslate,
    close_translator,
    create_translator,
    list_providers,
    parse_provider_options,
    register_provider,
)
from tabular_translator.providers.base import option_flag, option_number
from tabular_translator.providers.registry import (
    resolve_provider_name,
    unregister_provider,
)


def _libre(handler, **kwargs):
    return LibreTranslate(
        api_url="http://libre.test", transport=httpx.MockTransport(handler), **kwargs
    )


def test_libretranslate_posts_batch_and_returns_texts():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"translatedText": ["Hello", "World"]})

    async def scenario():
        client = _libre(handler)
        try:
            return await client.translate(["Hallo", "Welt"], src="de", dest="en")
        finally:
            await close_translator(client)

    results = asyncio.run(scenario())

    assert [r.text for r in results] == ["Hello", "World"]
    assert seen == [
        {"q": ["Hallo", "Welt"], "source": "de", "target": "en", "format": "text"}
    ]


def test_libretranslate_sends_api_key():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"translatedText": "Hello"})

    async def scenario():
        client = _libre(handler, api_key="secret")
        try:
            return await client.translate(["Hallo"], src="", dest="en")
        finally:
            await client.aclose()

    results = asyncio.run(scenario())
    assert [r.text for r in results] == ["Hello"]
    assert seen[0]["api_key"] == "secret"
    assert seen[0]["source"] == "auto"


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="Internal error"),
        httpx.Response(429, text="Too many requests"),
        httpx.Response(200, json={"error": "nope"}),
        httpx.Response(200, text="not json"),
    ],
)
def test_libretranslate_errors_are_service_errors(response):
    async def scenario():
        client = _libre(lambda request: response)
        try:
            await client.translate(["Hallo"], src="de", dest="en")
        finally:
            await client.aclose()

    with pytest.raises(TranslationServiceError):
        asyncio.run(scenario())


def test_libretranslate_connection_error_is_service_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async def scenario():
        client = _libre(handler)
        try:
            await client.translate(["Hallo"], src="de", dest="en")
        finally:
            await client.aclose()

    with pytest.raises(TranslationServiceError, match="request failed"):
        asyncio.run(scenario())


def test_libretranslate_url_from_environment(monkeypatch):
    monkeypatch.setenv("LIBRETRANSLATE_API_URL", "http://translator:5000/")

    async def scenario():
        client = LibreTranslate()
        try:
            return client.api_url
        finally:
            await client.aclose()

    assert asyncio.run(scenario()) == "http://translator:5000"


def test_builtin_providers_are_registered():
    assert {"libretranslate", "googletrans", "google_cloud"} <= set(list_providers())


@pytest.mark.parametrize(
    "alias, name",
    [
        ("libre", "libretranslate"),
        ("Google", "googletrans"),
        ("gcloud", "google_cloud"),
        ("libretranslate", "libretranslate"),
    ],
)
def test_aliases(alias, name):
    assert resolve_provider_name(alias) == name


def test_defaults_are_overridden_by_explicit_options():
    captured = {}

    @register_provider("capture")
    def _factory(options):
        captured.update(options)
        return object()

    try:
        create_translator(
            "capture",
            {"timeout": "5"},
            defaults={"timeout": "60", "max_connections": "3"},
        )
    finally:
        unregister_provider("capture")

    assert captured == {"timeout": "5", "max_connections": "3"}


def test_custom_provider_by_module_path():
    translator = create_translator("conftest:FakeTranslator", {})
    assert callable(translator.translate)


def test_custom_provider_errors():
    with pytest.raises(ValueError, match="Could not import"):
        create_translator("no_such_module_here:Thing", {})
    with pytest.raises(ValueError, match="not found"):
        create_translator("conftest:Missing", {})
    with pytest.raises(ValueError, match="Unknown provider"):
        create_translator("does-not-exist", {})


def test_parse_provider_options():
    assert parse_provider_options(["api_url=http://x:1", "verbose", " key = v "]) == {
        "api_url": "http://x:1",
        "verbose": "true",
        "key": "v",
    }
    assert parse_provider_options(None) == {}


def test_parse_provider_options_rejects_missing_key():
    with pytest.raises(ValueError, match="missing key"):
        parse_provider_options(["=value"])


def test_numeric_provider_options():
    assert option_number({"timeout": "2.5"}, "timeout", 60.0) == 2.5
    assert option_number({}, "timeout", 60.0) == 60.0
    assert option_number({"max_connections": "4"}, "max_connections", 3, cast=int) == 4
    with pytest.raises(ValueError, match="not a number"):
        option_number({"timeout": "soon"}, "timeout", 60.0)
    with pytest.raises(ValueError, match="must be > 0"):
        option_number({"timeout": "0"}, "timeout", 60.0)


def test_option_flag():
    assert option_flag({"anonymous": "yes"}, "anonymous", "no_auth")
    assert option_flag({"no_auth": "1"}, "anonymous", "no_auth")
    assert not option_flag({"anonymous": "false"}, "anonymous")
