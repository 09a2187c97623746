"""
Shared fixtures: in-memory translators standing in for the remote service.
"""

import asyncio
from typing import Dict, List, Optional, Set

import pytest

from tabular_translator.config import ColumnRules, TranslatorSettings
from tabular_translator.errors import TranslationServiceError
from tabular_translator.providers.base import TranslationResult


class FakeTranslator:
    """Deterministic backend: `Hallo` -> `EN(Hallo)`; records every call."""

    def __init__(self, fail_texts: Optional[Set[str]] = None, delay: float = 0.0):
        self.fail_texts = set(fail_texts or ())
        self.delay = delay
        self.calls: List[List[str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def translated_texts(self) -> List[str]:
        return [text for call in self.calls for text in call]

    async def translate(self, texts, src, dest):
        self.calls.append(list(texts))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.fail_texts.intersection(texts):
                raise TranslationServiceError("backend refused the batch")
            return [TranslationResult(f"{dest.upper()}({text})") for text in texts]
        finally:
            self.in_flight -= 1


class FlakyTranslator(FakeTranslator):
    """Fails the first `failures` calls, then behaves like FakeTranslator."""

    def __init__(self, failures: int):
        super().__init__()
        self.remaining_failures = failures

    async def translate(self, texts, src, dest):
        if self.remaining_failures > 0:
            self.remaining_failures -= 1
            self.calls.append(list(texts))
            raise TranslationServiceError("temporary outage")
        return await super().translate(texts, src, dest)


@pytest.fixture
def fake_translator() -> FakeTranslator:
    return FakeTranslator()


@pytest.fixture
def settings() -> TranslatorSettings:
    return TranslatorSettings(
        max_batch_items=10,
        max_batch_chars=5000,
        max_concurrency=3,
        max_retries=3,
        retry_base_delay=0.0,
        retry_multiplier=1.0,
        retry_jitter=0.0,
        request_timeout=5.0,
        checkpoint_every_batches=1,
        checkpoint_interval=60.0,
        rate_limit_requests=1000,
        rate_limit_window=1.0,
        max_consecutive_failures=5,
        heartbeat_seconds=1.0,
    )


@pytest.fixture
def rules() -> ColumnRules:
    return ColumnRules(source_lang="de", target_lang="en")


@pytest.fixture
def title_rows() -> List[Dict[str, object]]:
    return [
        {"id": 1, "Title_DE": "Hallo"},
        {"id": 2, "Title_DE": "Welt"},
        {"id": 3, "Title_DE": "Hallo"},
    ]
