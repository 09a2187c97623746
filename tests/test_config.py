import pytest

from tabular_translator.config import (
    ColumnRules,
    HostFacts,
    TranslatorSettings,
    default_concurrency,
    load_env_file,
)


@pytest.mark.parametrize("cpus, expected", [(1, 1), (2, 1), (8, 4), (64, 5)])
def test_default_concurrency(cpus, expected):
    assert default_concurrency(HostFacts(cpu_count=cpus)) == expected


def test_from_env_defaults():
    settings = TranslatorSettings.from_env(HostFacts(cpu_count=4), environ={})
    assert settings.max_batch_items == 3
    assert settings.max_batch_chars == 5000
    assert settings.max_concurrency == 2
    assert settings.max_retries == 3
    assert settings.retry_base_delay == 2.0
    assert settings.checkpoint_interval == 60.0
    assert settings.rate_limit_requests == 30
    assert settings.rate_limit_window == 10.0


def test_from_env_reads_variables():
    env = {
        "TRANSLATOR_BATCH_SIZE": "7",
        "TRANSLATOR_MAX_CONCURRENCY": "2",
        "TRANSLATOR_RETRY_DELAY_MS": "500",
        "TRANSLATOR_CHECKPOINT_INTERVAL_MS": "15000",
        "TRANSLATOR_LOG_LEVEL": "debug",
        "TRANSLATOR_MAX_RETRIES": " ",
    }
    settings = TranslatorSettings.from_env(HostFacts(cpu_count=16), environ=env)
    assert settings.max_batch_items == 7
    assert settings.max_concurrency == 2
    assert settings.retry_base_delay == 0.5
    assert settings.checkpoint_interval == 15.0
    assert settings.log_level == "DEBUG"
    assert settings.max_retries == 3


def test_from_env_rejects_garbage():
    with pytest.raises(ValueError, match="TRANSLATOR_BATCH_SIZE"):
        TranslatorSettings.from_env(HostFacts(), environ={"TRANSLATOR_BATCH_SIZE": "lots"})


def test_overrides_skip_none_and_validate():
    base = TranslatorSettings()
    settings = base.with_overrides(max_batch_items=8, max_retries=None)
    assert settings.max_batch_items == 8
    assert settings.max_retries == base.max_retries
    assert base.max_batch_items == 3

    with pytest.raises(ValueError, match="max_concurrency"):
        base.with_overrides(max_concurrency=0)


def test_snapshot_is_plain_dict():
    snapshot = TranslatorSettings().snapshot()
    assert snapshot["max_batch_items"] == 3
    assert snapshot["log_level"] == "INFO"


def test_column_rules_suffixes():
    rules = ColumnRules(source_lang="fr ", target_lang="es")
    assert rules.source_suffix == "_FR"
    assert rules.target_suffix == "_ES"


def test_load_env_file_does_not_override(tmp_path, monkeypatch):
    env_file = tmp_path / ".env"
    env_file.write_text(
        "TRANSLATOR_BATCH_SIZE=9\nTRANSLATOR_RATE_LIMIT=12\n", encoding="utf-8"
    )
    monkeypatch.setenv("TRANSLATOR_BATCH_SIZE", "4")
    monkeypatch.delenv("TRANSLATOR_RATE_LIMIT", raising=False)

    assert load_env_file(env_file) is True
    try:
        settings = TranslatorSettings.from_env(HostFacts(cpu_count=2))
        assert settings.max_batch_items == 4
        assert settings.rate_limit_requests == 12
    finally:
        monkeypatch.delenv("TRANSLATOR_RATE_LIMIT", raising=False)
