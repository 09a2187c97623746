from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Sequence

from .config import ERROR_SENTINEL
from .work_set import EligibleColumn, is_translatable


@dataclass(frozen=True)
class TranslationSummary:
    total: int
    translated: int
    failed: int
    pending: int


def summarize(cache: Mapping[str, str]) -> TranslationSummary:
    failed = sum(1 for value in cache.values() if value == ERROR_SENTINEL)
    pending = sum(1 for value in cache.values() if not value)
    return TranslationSummary(
        total=len(cache),
        translated=len(cache) - failed - pending,
        failed=failed,
        pending=pending,
    )


def resolve_translation(value: Any, cache: Mapping[str, str]) -> str:
    if not is_translatable(value):
        return ""
    translated = cache.get(value, "")
    if translated == ERROR_SENTINEL:
        return ""
    return translated


def output_columns(
    column_names: Sequence[str], columns: Sequence[EligibleColumn]
) -> List[str]:
    """Original column order with each new target column right after its source."""
    targets = {column.source: column.target for column in columns}
    existing = set(column_names)
    ordered: List[str] = []
    for name in column_names:
        ordered.append(name)
        target = targets.get(name)
        if target and target not in existing and target not in ordered:
            ordered.append(target)
    return ordered


def materialize_rows(
    rows: Sequence[Mapping[str, Any]],
    columns: Sequence[EligibleColumn],
    cache: Mapping[str, str],
) -> List[Dict[str, Any]]:
    """Copy every row and fill its target columns from the translation cache."""
    augmented = []
    for row in rows:
        record = dict(row)
        for column in columns:
            record[column.target] = resolve_translation(row.get(column.source), cache)
        augmented.append(record)
    return augmented
