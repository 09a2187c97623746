import asyncio
from typing import Any, List, Optional

from tabular_translator.errors import TranslationServiceError
from .base import (
    AsyncTranslator,
    ProviderOptions,
    TranslationResult,
    normalize_source_lang,
)
from .registry import register_provider


@register_provider("googletrans")
def _create_googletrans(options: ProviderOptions) -> AsyncTranslator:
    return GoogleWebTranslate(proxy=options.get("proxy"))


class GoogleWebTranslate:
    """Free Google web endpoint through the googletrans library."""

    def __init__(self, proxy: Optional[str] = None) -> None:
        from googletrans import Translator

        self.translator = Translator(proxy=proxy) if proxy else Translator()

    async def translate(
        self, texts: List[str], src: str, dest: str
    ) -> List[TranslationResult]:
        src_lang = normalize_source_lang(src)
        try:
            if asyncio.iscoroutinefunction(self.translator.translate):
                results = await self.translator.translate(
                    texts, src=src_lang, dest=dest
                )
            else:
                results = await asyncio.to_thread(
                    self.translator.translate, texts, src=src_lang, dest=dest
                )
        except Exception as exc:
            raise TranslationServiceError(
                f"googletrans request failed: {exc}"
            ) from exc

        if not isinstance(results, list):
            results = [results]
        return [TranslationResult(_text_of(r)) for r in results]


def _text_of(result: Any) -> str:
    text = getattr(result, "text", None)
    return text if isinstance(text, str) else ""
