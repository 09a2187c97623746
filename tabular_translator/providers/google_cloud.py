import asyncio
import json
from typing import List, Optional

from tabular_translator.errors import TranslationServiceError
from .base import (
    AsyncTranslator,
    ProviderOptions,
    TranslationResult,
    normalize_source_lang,
    option_flag,
)
from .registry import register_provider


@register_provider("google_cloud")
def _create_google_cloud(options: ProviderOptions) -> AsyncTranslator:
    return GoogleCloudTranslate(
        api_endpoint=options.get("api_endpoint"),
        api_key=options.get("api_key"),
        anonymous=option_flag(options, "anonymous", "no_auth"),
    )


class GoogleCloudTranslate:
    """Cloud Translation v2; the blocking SDK call runs in a worker thread."""

    def __init__(
        self,
        api_endpoint: Optional[str] = None,
        api_key: Optional[str] = None,
        anonymous: bool = False,
    ) -> None:
        from google.api_core.client_options import ClientOptions
        from google.auth.credentials import AnonymousCredentials
        from google.cloud import translate_v2

        client_options = None
        if api_endpoint or api_key:
            client_options = ClientOptions(
                api_endpoint=api_endpoint, api_key=api_key
            )
        credentials = AnonymousCredentials() if anonymous else None
        self.client = translate_v2.Client(
            client_options=client_options, credentials=credentials
        )

    async def translate(
        self, texts: List[str], src: str, dest: str
    ) -> List[TranslationResult]:
        return await asyncio.to_thread(self._translate_sync, texts, src, dest)

    def _translate_sync(
        self, texts: List[str], src: Optional[str], dest: str
    ) -> List[TranslationResult]:
        from google.api_core.exceptions import GoogleAPICallError

        request = {"target_language": dest, "format_": "text"}
        src_lang = normalize_source_lang(src)
        if src_lang != "auto":
            request["source_language"] = src_lang
        try:
            results = self.client.translate(list(texts), **request)
        except GoogleAPICallError as exc:
            raise TranslationServiceError(_describe_error(exc)) from exc

        if isinstance(results, dict):
            results = [results]
        return [
            TranslationResult(item.get("translatedText", ""))
            for item in results
        ]


def _describe_error(exc: Exception) -> str:
    response = getattr(exc, "response", None)
    body = getattr(response, "text", None) if response is not None else None
    if not body:
        return f"Google Cloud Translate error: {exc}"
    try:
        detail = json.loads(body).get("error", {}).get("message")
    except (ValueError, AttributeError):
        detail = None
    return f"Google Cloud Translate error: {detail or body}"
