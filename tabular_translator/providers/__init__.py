"""Translation backends. Importing this package registers the built-in ones."""
from .base import (
    AsyncTranslator,
    ProviderOptions,
    TranslationResult,
    close_translator,
    normalize_source_lang,
    parse_provider_options,
)
from .factory import create_translator
from .registry import list_providers, register_provider, unregister_provider

from . import google_cloud
from . import google_web
from . import libretranslate

from .libretranslate import LibreTranslate

__all__ = [
    "AsyncTranslator",
    "ProviderOptions",
    "TranslationResult",
    "close_translator",
    "create_translator",
    "normalize_source_lang",
    "parse_provider_options",
    "list_providers",
    "register_provider",
    "unregister_provider",
    "LibreTranslate",
]
