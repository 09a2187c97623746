#!/usr/bin/env python
import asyncio
import logging
import signal
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import typer
from tqdm import tqdm
from tqdm.contrib.logging import logging_redirect_tqdm

from .batching import Batch, batch_chars, group_texts_by_length
from .checkpoint import CheckpointScheduler, CheckpointStore, checkpoint_identity
from .config import (
    DEFAULT_COLUMNS_TO_IGNORE,
    DEFAULT_COLUMNS_TO_TRANSLATE,
    ColumnRules,
    HostFacts,
    TranslatorSettings,
    load_env_file,
)
from .errors import (
    ProviderConfigError,
    RunInterrupted,
    TranslationServiceError,
    TranslatorError,
)
from .executor import ExecutionReport, TranslationExecutor
from .logging_utils import configure_logging
from .materialize import (
    TranslationSummary,
    materialize_rows,
    output_columns,
    summarize,
)
from .progress import ProgressMonitor, ProgressStatus, format_duration, format_status
from .providers import (
    AsyncTranslator,
    close_translator,
    create_translator,
    parse_provider_options,
)
from .rate_limiters import AsyncSlidingWindowLimiter
from .tabular_io import read_rows, translated_output_path, write_rows
from .work_set import (
    build_work_set,
    select_eligible_columns,
    translations_from_output,
)

logger = logging.getLogger(__name__)

TEST_MODE_TAG = "_test"
BACKEND_CHECK_TEXT = "Hallo, dies ist ein Test."


@dataclass
class RunResult:
    output_path: Path
    summary: TranslationSummary
    batches: List[Batch]
    report: Optional[ExecutionReport] = None
    dry_run: bool = False

    @property
    def pending_chars(self) -> int:
        return sum(batch_chars(batch) for batch in self.batches)


def load_prior_output(
    output_path: Path, rules: ColumnRules, file_format: Optional[str] = None
) -> Dict[str, str]:
    """Collect translations from an earlier output file for the same input."""
    if not output_path.exists():
        logger.info("No existing translations file found at %s", output_path)
        return {}
    try:
        rows, column_names = read_rows(output_path, file_format)
    except Exception as exc:
        # best effort: an unreadable artifact only means no seed
        logger.warning("Could not read existing translations %s: %s", output_path, exc)
        return {}
    columns = select_eligible_columns(column_names, rules)
    found = translations_from_output(rows, columns)
    logger.info(
        "Found existing translations file with %d translations", len(found)
    )
    return found


async def translate_file(
    input_path: Path,
    rules: ColumnRules,
    settings: TranslatorSettings,
    translator: AsyncTranslator,
    checkpoint_dir: Path,
    output_dir: Optional[Path] = None,
    file_format: str = "auto",
    sample_size: Optional[int] = None,
    dry_run: bool = False,
    stop_event: Optional[asyncio.Event] = None,
    on_progress: Optional[Callable[[ProgressStatus], None]] = None,
) -> RunResult:
    """Translate the designated columns of one dataset file end to end."""
    rows, column_names = read_rows(input_path, file_format)

    tag = ""
    if sample_size is not None:
        tag = TEST_MODE_TAG
        rows = rows[:sample_size]
        logger.warning("TEST MODE: translating only the first %d row(s)", len(rows))

    identity = checkpoint_identity(input_path, tag)
    output_path = translated_output_path(
        input_path, output_dir, suffix=f"_translated{tag}"
    )
    store = CheckpointStore(checkpoint_dir)

    prior = load_prior_output(output_path, rules, file_format) if rows else {}
    record = store.load(identity) if rows else None
    work = build_work_set(
        rows,
        column_names,
        rules,
        prior_output=prior,
        checkpoint_translations=record.translations if record else None,
    )
    batches = group_texts_by_length(
        work.pending, settings.max_batch_chars, settings.max_batch_items
    )

    if dry_run:
        result = RunResult(
            output_path=output_path,
            summary=summarize(work.cache),
            batches=batches,
            dry_run=True,
        )
        logger.info(
            "Dry run: %d pending text(s), %d characters, %d request(s) "
            "with concurrency %d",
            len(work.pending),
            result.pending_chars,
            len(batches),
            settings.max_concurrency,
        )
        return result

    report = None
    if batches:
        monitor = ProgressMonitor(
            total=work.total,
            starting_count=work.completed,
            min_rate_per_minute=settings.stall_min_rate,
        )
        scheduler = CheckpointScheduler(
            store,
            identity,
            every_batches=settings.checkpoint_every_batches,
            interval=settings.checkpoint_interval,
            config_snapshot=settings.snapshot(),
        )
        executor = TranslationExecutor(
            translator,
            source_lang=rules.source_lang,
            target_lang=rules.target_lang,
            settings=settings,
            rate_limiter=AsyncSlidingWindowLimiter(
                settings.rate_limit_requests, settings.rate_limit_window
            ),
            monitor=monitor,
            checkpoints=scheduler,
            stop_event=stop_event,
            on_progress=on_progress,
        )
        logger.info(
            "Translating %d unique text(s) in %d batch(es)",
            len(work.pending),
            len(batches),
        )
        report = await executor.run(batches, work.cache)
        if report.cancelled:
            raise RunInterrupted(
                f"Stopped before completion; progress saved to "
                f"{store.path_for(identity)}"
            )
    else:
        logger.info("All texts already translated; writing output only")

    augmented = materialize_rows(rows, work.columns, work.cache)
    write_rows(
        augmented,
        output_path,
        columns=output_columns(column_names, work.columns),
        file_format=file_format,
    )
    store.delete(identity)
    return RunResult(
        output_path=output_path,
        summary=summarize(work.cache),
        batches=batches,
        report=report,
    )


class ProgressRenderer:
    """tqdm bar fed from progress snapshots."""

    def __init__(self, desc: str = "Translating") -> None:
        self.desc = desc
        self._bar: Optional[tqdm] = None

    def __call__(self, status: ProgressStatus) -> None:
        if self._bar is None:
            self._bar = tqdm(total=status.total, initial=status.completed, desc=self.desc)
        self._bar.n = status.completed
        self._bar.set_postfix_str(
            f"{status.rate_per_minute:.1f}/min ETA {format_duration(status.eta_seconds)}"
            + (" STALLED" if status.is_stalled else ""),
            refresh=False,
        )
        self._bar.refresh()
        if status.is_stalled:
            logger.debug(format_status(status))

    def close(self) -> None:
        if self._bar is not None:
            self._bar.close()
            self._bar = None


def build_translator(
    provider: str, provider_options: Dict[str, str], settings: TranslatorSettings
) -> AsyncTranslator:
    try:
        return create_translator(
            provider,
            provider_options,
            defaults={"max_connections": str(settings.max_concurrency)},
        )
    except ValueError as exc:
        raise ProviderConfigError(str(exc)) from exc


def _first_text(results: Any) -> str:
    if not results:
        return ""
    first = results[0]
    text = first if isinstance(first, str) else getattr(first, "text", "")
    return text if isinstance(text, str) else ""


async def check_backend(
    translator: AsyncTranslator,
    source_lang: str,
    target_lang: str,
    sample: str = BACKEND_CHECK_TEXT,
) -> Tuple[List[str], str]:
    """
    Verify the backend answers before a long run: list its languages when the
    provider can, then translate one sample text.

    Raises TranslationServiceError when either step fails.
    """
    languages: List[str] = []
    list_languages = getattr(translator, "languages", None)
    if list_languages is not None:
        languages = list(await list_languages())
        logger.info("Available languages: %s", ", ".join(languages))
    translated = _first_text(
        await translator.translate([sample], src=source_lang, dest=target_lang)
    )
    if not translated.strip():
        raise TranslationServiceError("Backend returned an empty test translation")
    return languages, translated


async def run_backend_check(
    provider: str,
    provider_options: Dict[str, str],
    settings: TranslatorSettings,
    rules: ColumnRules,
) -> Tuple[List[str], str]:
    translator = build_translator(provider, provider_options, settings)
    try:
        return await check_backend(translator, rules.source_lang, rules.target_lang)
    finally:
        await close_translator(translator)


async def run_cli(
    input_path: Path,
    rules: ColumnRules,
    settings: TranslatorSettings,
    provider: str,
    provider_options: Dict[str, str],
    checkpoint_dir: Path,
    output_dir: Optional[Path],
    file_format: str,
    sample_size: Optional[int],
    dry_run: bool,
) -> RunResult:
    translator = build_translator(provider, provider_options, settings)
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, stop_event.set)
        handles_sigint = True
    except (NotImplementedError, RuntimeError):
        handles_sigint = False

    renderer = ProgressRenderer()
    try:
        return await translate_file(
            input_path,
            rules,
            settings,
            translator,
            checkpoint_dir=checkpoint_dir,
            output_dir=output_dir,
            file_format=file_format,
            sample_size=sample_size,
            dry_run=dry_run,
            stop_event=stop_event,
            on_progress=renderer,
        )
    finally:
        renderer.close()
        if handles_sigint:
            loop.remove_signal_handler(signal.SIGINT)
        await close_translator(translator)


app = typer.Typer()


@app.command()
def main(
    input_path: Optional[Path] = typer.Argument(
        None, help="Path to input dataset (XLSX, CSV, Parquet, or JSONL)"
    ),
    output_dir: Optional[Path] = typer.Option(
        None,
        "--output-dir",
        help="Directory for the translated file (defaults to the input's directory).",
    ),
    checkpoint_dir: Path = typer.Option(
        Path("checkpoints"),
        "--checkpoint-dir",
        help="Directory holding resumable checkpoint files.",
    ),
    source_lang: str = typer.Option(
        "de", "--source-lang", "-s", help="Source language code"
    ),
    target_lang: str = typer.Option(
        "en", "--target-lang", "-t", help="Target language code"
    ),
    columns: Optional[List[str]] = typer.Option(
        None,
        "--columns",
        "-c",
        help="Extra columns to translate besides those ending with _<SOURCE_LANG>. Can be passed multiple times.",
    ),
    ignore_columns: Optional[List[str]] = typer.Option(
        None,
        "--ignore-columns",
        help="Columns never to translate, even when they match. Can be passed multiple times.",
    ),
    provider: str = typer.Option(
        "libretranslate",
        "--provider",
        help="Translation provider: libretranslate, googletrans, google_cloud, or package.module:ClassName.",
    ),
    provider_options: Optional[List[str]] = typer.Option(
        None,
        "--provider-option",
        "-o",
        help="Provider option as key=value (e.g. api_url=http://localhost:5555). Can be passed multiple times.",
    ),
    file_format: str = typer.Option(
        "auto",
        "--file-format",
        "-f",
        help="File format (xlsx, csv, parquet, jsonl, auto).",
    ),
    batch_size: Optional[int] = typer.Option(
        None, "--batch-size", "-b", help="Maximum texts per translation request"
    ),
    max_batch_chars: Optional[int] = typer.Option(
        None, "--max-batch-chars", help="Maximum combined characters per request"
    ),
    max_concurrency: Optional[int] = typer.Option(
        None, "--max-concurrency", help="Maximum concurrent translation requests"
    ),
    max_retries: Optional[int] = typer.Option(
        None,
        "--max-retries",
        help="Maximum attempts per batch before marking its texts as failed",
    ),
    test_mode: bool = typer.Option(
        False,
        "--test-mode",
        help="Translate only the first --sample-size rows into a separate output.",
    ),
    sample_size: int = typer.Option(
        10, "--sample-size", help="Rows translated in --test-mode"
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Only estimate the work: unique texts, characters and requests.",
    ),
    check_backend_only: bool = typer.Option(
        False,
        "--check-backend",
        help="Check that the provider answers (languages plus one test translation) and exit.",
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Logging level (DEBUG, INFO, WARNING, ERROR)."
    ),
    env_file: Optional[Path] = typer.Option(
        None, "--env-file", help="Read settings from this .env file."
    ),
):
    """
    Translate the source-language columns of a dataset, resuming from checkpoints.
    """
    load_env_file(env_file)
    try:
        settings = TranslatorSettings.from_env(HostFacts.detect()).with_overrides(
            max_batch_items=batch_size,
            max_batch_chars=max_batch_chars,
            max_concurrency=max_concurrency,
            max_retries=max_retries,
            log_level=log_level,
        )
        options = parse_provider_options(provider_options)
    except ValueError as exc:
        raise typer.BadParameter(str(exc))
    configure_logging(settings.log_level)

    rules = ColumnRules(
        source_lang=source_lang,
        target_lang=target_lang,
        allow_list=DEFAULT_COLUMNS_TO_TRANSLATE + list(columns or []),
        deny_list=DEFAULT_COLUMNS_TO_IGNORE + list(ignore_columns or []),
    )

    if check_backend_only:
        try:
            languages, translated = asyncio.run(
                run_backend_check(provider, options, settings, rules)
            )
        except ProviderConfigError as exc:
            raise typer.BadParameter(str(exc))
        except TranslationServiceError as exc:
            logger.error("Backend check failed: %s", exc)
            raise typer.Exit(code=1)
        if languages:
            print(f"Available languages: {', '.join(languages)}")
        print(f'✅ Backend reachable. "{BACKEND_CHECK_TEXT}" -> "{translated}"')
        return

    if input_path is None:
        raise typer.BadParameter("Missing input path")
    if not input_path.exists():
        raise typer.BadParameter(f"Input file not found: {input_path}")
    if test_mode and sample_size <= 0:
        raise typer.BadParameter("--sample-size must be > 0")

    try:
        with logging_redirect_tqdm():
            result = asyncio.run(
                run_cli(
                    input_path=input_path,
                    rules=rules,
                    settings=settings,
                    provider=provider,
                    provider_options=options,
                    checkpoint_dir=checkpoint_dir,
                    output_dir=output_dir,
                    file_format=file_format,
                    sample_size=sample_size if test_mode else None,
                    dry_run=dry_run,
                )
            )
    except RunInterrupted as exc:
        logger.warning("%s", exc)
        raise typer.Exit(code=130)
    except ProviderConfigError as exc:
        raise typer.BadParameter(str(exc))
    except TranslatorError as exc:
        logger.error("%s", exc)
        raise typer.Exit(code=1)

    summary = result.summary
    if result.dry_run:
        print(
            f"Unique texts: {summary.total} | already translated: "
            f"{summary.translated} | pending: {summary.pending}"
        )
        print(
            f"Estimated requests: {len(result.batches)} "
            f"({result.pending_chars} characters)"
        )
        return

    print(
        f"Texts: {summary.total} | translated: {summary.translated} | "
        f"failed: {summary.failed}"
    )
    print(f"✅ Translation complete! Final dataset saved to {result.output_path}")


if __name__ == "__main__":
    app()
