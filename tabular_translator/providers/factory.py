import importlib
import logging
from typing import Mapping, Optional

from .base import AsyncTranslator, ProviderOptions
from .registry import get_provider_factory, list_providers, resolve_provider_name

logger = logging.getLogger(__name__)


def _load_custom_provider(path: str, options: ProviderOptions) -> AsyncTranslator:
    module_path, _, class_name = path.partition(":")
    try:
        module = importlib.import_module(module_path)
    except ImportError as exc:
        raise ValueError(
            f"Could not import provider module `{module_path}`: {exc}"
        ) from exc
    provider_cls = getattr(module, class_name, None)
    if provider_cls is None:
        raise ValueError(
            f"Provider class `{class_name}` not found in `{module_path}`."
        )
    translator = provider_cls(**options)
    if not callable(getattr(translator, "translate", None)):
        raise ValueError(
            f"Provider `{path}` does not define an async `translate` method."
        )
    return translator


def create_translator(
    provider: str,
    options: ProviderOptions,
    defaults: Optional[Mapping[str, str]] = None,
) -> AsyncTranslator:
    """
    Build a translator by registered name, alias, or `package.module:ClassName`.

    `defaults` fill in options the user did not pass explicitly. Custom
    classes only receive the explicit options as keyword arguments.
    """
    factory = get_provider_factory(provider)
    if factory is not None:
        merged = dict(defaults or {})
        merged.update(options)
        logger.debug("Using provider %s", resolve_provider_name(provider))
        return factory(merged)
    if ":" in provider:
        logger.debug("Loading custom provider %s", provider)
        return _load_custom_provider(provider, dict(options))
    raise ValueError(
        f"Unknown provider `{provider}`. "
        f"Available providers: {', '.join(list_providers())}."
    )
