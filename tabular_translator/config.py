"""Run configuration, computed once at startup and passed to each component."""
import os
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from dotenv import load_dotenv

ERROR_SENTINEL = "[TRANSLATION FAILED]"

DEFAULT_COLUMNS_TO_TRANSLATE = [
    "IPTC_DE_Headline",
    "IPTC_DE_Beschreibung",
    "IPTC_DE_Bundesland",
    "IPTC_DE_Land",
    "IPTC_DE_Anweisung",
    "IPTC_DE_User_Keywords",
    "AI_keywords_DE",
]

DEFAULT_COLUMNS_TO_IGNORE = [
    "IPTC_DE_Credit",
    "IPTC_DE_Aufnahmedatum",
]


@dataclass(frozen=True)
class HostFacts:
    cpu_count: int = 1

    @classmethod
    def detect(cls) -> "HostFacts":
        return cls(cpu_count=os.cpu_count() or 1)


def default_concurrency(host: HostFacts) -> int:
    # half the cores, capped at 5
    return min(5, max(1, host.cpu_count // 2))


@dataclass
class ColumnRules:
    source_lang: str = "de"
    target_lang: str = "en"
    allow_list: List[str] = field(
        default_factory=lambda: list(DEFAULT_COLUMNS_TO_TRANSLATE)
    )
    deny_list: List[str] = field(
        default_factory=lambda: list(DEFAULT_COLUMNS_TO_IGNORE)
    )

    @property
    def source_suffix(self) -> str:
        return f"_{self.source_lang.strip().upper()}"

    @property
    def target_suffix(self) -> str:
        return f"_{self.target_lang.strip().upper()}"


@dataclass
class TranslatorSettings:
    max_batch_items: int = 3
    max_batch_chars: int = 5000
    max_concurrency: int = 1
    max_retries: int = 3
    retry_base_delay: float = 2.0
    retry_multiplier: float = 1.5
    retry_jitter: float = 1.0
    request_timeout: float = 30.0
    checkpoint_every_batches: int = 10
    checkpoint_interval: float = 60.0
    rate_limit_requests: int = 30
    rate_limit_window: float = 10.0
    max_consecutive_failures: int = 5
    stall_min_rate: float = 0.1
    max_stall_seconds: float = 900.0
    heartbeat_seconds: float = 30.0
    log_level: str = "INFO"

    @classmethod
    def from_env(
        cls,
        host: Optional[HostFacts] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "TranslatorSettings":
        host = host or HostFacts.detect()
        env = os.environ if environ is None else environ
        return cls(
            max_batch_items=_env_int(env, "TRANSLATOR_BATCH_SIZE", 3),
            max_batch_chars=_env_int(env, "TRANSLATOR_MAX_BATCH_CHARS", 5000),
            max_concurrency=_env_int(
                env, "TRANSLATOR_MAX_CONCURRENCY", default_concurrency(host)
            ),
            max_retries=_env_int(env, "TRANSLATOR_MAX_RETRIES", 3),
            retry_base_delay=_env_ms(env, "TRANSLATOR_RETRY_DELAY_MS", 2000),
            retry_multiplier=_env_float(env, "TRANSLATOR_RETRY_MULTIPLIER", 1.5),
            retry_jitter=_env_ms(env, "TRANSLATOR_RETRY_JITTER_MS", 1000),
            request_timeout=_env_float(env, "TRANSLATOR_REQUEST_TIMEOUT", 30.0),
            checkpoint_every_batches=_env_int(
                env, "TRANSLATOR_CHECKPOINT_BATCHES", 10
            ),
            checkpoint_interval=_env_ms(
                env, "TRANSLATOR_CHECKPOINT_INTERVAL_MS", 60000
            ),
            rate_limit_requests=_env_int(env, "TRANSLATOR_RATE_LIMIT", 30),
            rate_limit_window=_env_ms(env, "TRANSLATOR_RATE_WINDOW_MS", 10000),
            max_consecutive_failures=_env_int(
                env, "TRANSLATOR_MAX_CONSECUTIVE_FAILURES", 5
            ),
            stall_min_rate=_env_float(env, "TRANSLATOR_STALL_MIN_RATE", 0.1),
            max_stall_seconds=_env_float(
                env, "TRANSLATOR_MAX_STALL_SECONDS", 900.0
            ),
            heartbeat_seconds=_env_float(
                env, "TRANSLATOR_HEARTBEAT_SECONDS", 30.0
            ),
            log_level=env.get("TRANSLATOR_LOG_LEVEL", "INFO").strip().upper()
            or "INFO",
        )

    def with_overrides(self, **overrides: Any) -> "TranslatorSettings":
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        settings = replace(self, **changes)
        settings.validate()
        return settings

    def validate(self) -> None:
        positive = {
            "max_batch_items": self.max_batch_items,
            "max_batch_chars": self.max_batch_chars,
            "max_concurrency": self.max_concurrency,
            "max_retries": self.max_retries,
            "request_timeout": self.request_timeout,
            "checkpoint_every_batches": self.checkpoint_every_batches,
            "rate_limit_requests": self.rate_limit_requests,
            "rate_limit_window": self.rate_limit_window,
            "max_consecutive_failures": self.max_consecutive_failures,
            "max_stall_seconds": self.max_stall_seconds,
            "heartbeat_seconds": self.heartbeat_seconds,
        }
        invalid = sorted(name for name, value in positive.items() if value <= 0)
        if invalid:
            raise ValueError(f"Settings must be > 0: {', '.join(invalid)}")

    def snapshot(self) -> Dict[str, Any]:
        return asdict(self)


def load_env_file(path: Optional[Path] = None) -> bool:
    """Load a .env file into the process environment without overriding it."""
    if path is not None:
        return load_dotenv(path, override=False)
    return load_dotenv(override=False)


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}.") from exc


def _env_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}.") from exc


def _env_ms(env: Mapping[str, str], name: str, default_ms: float) -> float:
    return _env_float(env, name, default_ms) / 1000.0
