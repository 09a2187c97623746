from typing import Callable, Dict, List, Optional

from .base import ProviderFactory

_PROVIDERS: Dict[str, ProviderFactory] = {}

# Spellings accepted on the command line for the built-in providers.
_ALIASES = {
    "libre": "libretranslate",
    "libre_translate": "libretranslate",
    "google": "googletrans",
    "google_web": "googletrans",
    "google_translate": "googletrans",
    "gcloud": "google_cloud",
    "google-cloud": "google_cloud",
}


def register_provider(name: str) -> Callable[[ProviderFactory], ProviderFactory]:
    """Decorator registering a factory under its canonical, lower-case name."""
    key = name.strip().lower()

    def decorator(factory: ProviderFactory) -> ProviderFactory:
        _PROVIDERS[key] = factory
        return factory

    return decorator


def unregister_provider(name: str) -> bool:
    return _PROVIDERS.pop(name.strip().lower(), None) is not None


def list_providers() -> List[str]:
    return sorted(_PROVIDERS)


def resolve_provider_name(name: str) -> str:
    key = name.strip().lower()
    return _ALIASES.get(key, key)


def get_provider_factory(name: str) -> Optional[ProviderFactory]:
    return _PROVIDERS.get(resolve_provider_name(name))
