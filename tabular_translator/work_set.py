"""Designated columns, distinct source texts and the seeded translation cache."""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .config import ERROR_SENTINEL, ColumnRules
from .errors import EmptyDatasetError, NoEligibleColumnsError

logger = logging.getLogger(__name__)

TranslationCache = Dict[str, str]
Row = Mapping[str, Any]


@dataclass(frozen=True)
class EligibleColumn:
    source: str
    target: str


@dataclass
class WorkSet:
    columns: List[EligibleColumn]
    cache: TranslationCache
    pending: List[str]
    seeded_from_output: int = 0
    seeded_from_checkpoint: int = 0
    cell_count: int = 0

    @property
    def total(self) -> int:
        return len(self.cache)

    @property
    def completed(self) -> int:
        return self.total - len(self.pending)


def is_translatable(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def derive_target_column(column: str, rules: ColumnRules) -> str:
    source_suffix = rules.source_suffix
    target_suffix = rules.target_suffix
    if column.endswith(source_suffix):
        return column[: -len(source_suffix)] + target_suffix
    if source_suffix in column:
        return column.replace(source_suffix, target_suffix, 1)
    return column + target_suffix


def select_eligible_columns(
    column_names: Sequence[str], rules: ColumnRules
) -> List[EligibleColumn]:
    allow = set(rules.allow_list)
    deny = set(rules.deny_list)
    selected = []
    for name in column_names:
        if name in deny:
            continue
        if name in allow or name.endswith(rules.source_suffix):
            selected.append(EligibleColumn(name, derive_target_column(name, rules)))
    return selected


def collect_source_texts(
    rows: Iterable[Row], columns: Sequence[EligibleColumn]
) -> Dict[str, int]:
    """Map every distinct non-blank source text to its number of occurrences."""
    counts: Dict[str, int] = {}
    for row in rows:
        for column in columns:
            value = row.get(column.source)
            if is_translatable(value):
                counts[value] = counts.get(value, 0) + 1
    return counts


def translations_from_output(
    rows: Iterable[Row], columns: Sequence[EligibleColumn]
) -> TranslationCache:
    """Recover source/translation pairs from a previously written output file."""
    found: TranslationCache = {}
    for row in rows:
        for column in columns:
            source = row.get(column.source)
            translated = row.get(column.target)
            if not is_translatable(source) or not is_translatable(translated):
                continue
            if translated == ERROR_SENTINEL:
                continue
            found[source] = translated
    return found


def _merge_seed(
    cache: TranslationCache, seed: Mapping[str, str], label: str
) -> int:
    merged = 0
    orphans = 0
    for source, translated in seed.items():
        if source not in cache:
            orphans += 1
            continue
        if not translated or translated == ERROR_SENTINEL:
            # sentinel and empty values stay pending
            continue
        cache[source] = translated
        merged += 1
    if orphans:
        logger.debug("Ignored %d %s entries not present in the dataset", orphans, label)
    return merged


def build_work_set(
    rows: Sequence[Row],
    column_names: Sequence[str],
    rules: ColumnRules,
    prior_output: Optional[Mapping[str, str]] = None,
    checkpoint_translations: Optional[Mapping[str, str]] = None,
) -> WorkSet:
    if not rows:
        raise EmptyDatasetError("Dataset has no rows.")

    columns = select_eligible_columns(column_names, rules)
    if not columns:
        raise NoEligibleColumnsError(
            f"No column matches the allow-list or ends with "
            f"'{rules.source_suffix}' (after applying the deny-list)."
        )
    logger.info(
        "Translating %d column(s): %s",
        len(columns),
        ", ".join(f"{c.source} -> {c.target}" for c in columns),
    )

    counts = collect_source_texts(rows, columns)
    cache: TranslationCache = {text: "" for text in counts}

    # checkpoint entries override the output artifact
    from_output = _merge_seed(cache, prior_output or {}, "output")
    from_checkpoint = _merge_seed(cache, checkpoint_translations or {}, "checkpoint")

    pending = [text for text, value in cache.items() if not value]
    cell_count = sum(counts.values())
    logger.info(
        "Found %d cells with %d unique texts; %d already translated, %d pending",
        cell_count,
        len(cache),
        len(cache) - len(pending),
        len(pending),
    )
    return WorkSet(
        columns=columns,
        cache=cache,
        pending=pending,
        seeded_from_output=from_output,
        seeded_from_checkpoint=from_checkpoint,
        cell_count=cell_count,
    )
