"""
Provider contract: a translator takes a batch of texts and returns one result
per text, in order. Options arrive as the raw `key=value` strings given on
the command line and are converted by each provider.
"""
import inspect
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

ProviderOptions = Dict[str, str]

AUTO_DETECT = "auto"
_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class TranslationResult:
    text: str


class AsyncTranslator(Protocol):
    async def translate(
        self, texts: List[str], src: str, dest: str
    ) -> List[TranslationResult]: ...


ProviderFactory = Callable[[ProviderOptions], AsyncTranslator]


def normalize_source_lang(source_lang: Optional[str]) -> str:
    cleaned = (source_lang or "").strip()
    return cleaned or AUTO_DETECT


def option_flag(options: ProviderOptions, *names: str) -> bool:
    """True if any of `names` is set to a truthy value."""
    return any(
        (options.get(name) or "").strip().lower() in _TRUTHY for name in names
    )


def option_number(
    options: ProviderOptions, name: str, default: float, cast: Callable = float
):
    raw = options.get(name)
    if raw is None or not str(raw).strip():
        return default
    try:
        value = cast(raw)
    except ValueError as exc:
        raise ValueError(f"Provider option {name}={raw!r} is not a number.") from exc
    if value <= 0:
        raise ValueError(f"Provider option {name} must be > 0, got {raw!r}.")
    return value


def parse_provider_options(options: Optional[Sequence[str]]) -> ProviderOptions:
    """`["api_url=http://host:5000", "anonymous"]` -> `{"api_url": ..., "anonymous": "true"}`"""
    parsed: ProviderOptions = {}
    for entry in options or ():
        key, sep, value = entry.partition("=")
        key = key.strip()
        if not key:
            raise ValueError(f"Invalid provider option {entry!r}: missing key.")
        parsed[key] = value.strip() if sep else "true"
    return parsed


async def close_translator(translator: Any) -> None:
    """Release pooled connections for providers that hold any."""
    closer = getattr(translator, "aclose", None)
    if closer is None:
        return
    result = closer()
    if inspect.isawaitable(result):
        await result
