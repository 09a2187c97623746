import os
from typing import Any, Dict, List, Optional

import httpx

from tabular_translator.errors import TranslationServiceError
from .base import (
    AsyncTranslator,
    ProviderOptions,
    TranslationResult,
    normalize_source_lang,
    option_number,
)
from .registry import register_provider

DEFAULT_API_URL = "http://localhost:5555"


@register_provider("libretranslate")
def _create_libretranslate(options: ProviderOptions) -> AsyncTranslator:
    return LibreTranslate(
        api_url=options.get("api_url") or options.get("url"),
        api_key=options.get("api_key"),
        timeout=option_number(options, "timeout", 60.0),
        max_connections=option_number(options, "max_connections", 3, cast=int),
    )


class LibreTranslate:
    """Client for a LibreTranslate server, one pooled connection set per run."""

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = 60.0,
        max_connections: int = 3,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_url = (
            api_url or os.getenv("LIBRETRANSLATE_API_URL") or DEFAULT_API_URL
        ).rstrip("/")
        self._api_key = api_key or os.getenv("LIBRETRANSLATE_API_KEY")
        self._timeout = timeout
        self._client = httpx.AsyncClient(
            base_url=self._api_url,
            timeout=self._timeout,
            limits=httpx.Limits(
                max_connections=max_connections,
                max_keepalive_connections=max(1, max_connections - 1),
            ),
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    @property
    def api_url(self) -> str:
        return self._api_url

    async def translate(
        self, texts: List[str], src: str, dest: str
    ) -> List[TranslationResult]:
        payload: Dict[str, Any] = {
            "q": list(texts),
            "source": normalize_source_lang(src),
            "target": dest,
            "format": "text",
        }
        if self._api_key:
            payload["api_key"] = self._api_key
        data = await self._post_json("/translate", payload)
        translated = data.get("translatedText") if isinstance(data, dict) else None
        if isinstance(translated, str):
            translated = [translated]
        if not isinstance(translated, list):
            raise TranslationServiceError(
                f"LibreTranslate returned an unexpected payload: {data!r}"
            )
        return [
            TranslationResult(item if isinstance(item, str) else "")
            for item in translated
        ]

    async def languages(self) -> List[str]:
        try:
            response = await self._client.get("/languages")
        except httpx.HTTPError as exc:
            raise TranslationServiceError(
                f"Cannot connect to LibreTranslate at {self._api_url}: {exc}"
            ) from exc
        if response.status_code >= 300:
            raise TranslationServiceError(
                f"LibreTranslate /languages returned HTTP {response.status_code}"
            )
        return [item.get("code", "") for item in response.json()]

    async def _post_json(self, path: str, payload: Dict[str, Any]) -> Any:
        try:
            response = await self._client.post(path, json=payload)
        except httpx.HTTPError as exc:
            raise TranslationServiceError(
                f"LibreTranslate request failed: {exc}"
            ) from exc
        if not 200 <= response.status_code < 300:
            raise TranslationServiceError(
                f"LibreTranslate API error: HTTP {response.status_code}: "
                f"{response.text[:200]}"
            )
        try:
            return response.json()
        except ValueError as exc:
            raise TranslationServiceError(
                "LibreTranslate returned invalid JSON"
            ) from exc

    async def aclose(self) -> None:
        await self._client.aclose()
