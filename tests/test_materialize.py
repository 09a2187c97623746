from tabular_translator.config import ERROR_SENTINEL
from tabular_translator.materialize import (
    materialize_rows,
    output_columns,
    resolve_translation,
    summarize,
)
from tabular_translator.work_set import EligibleColumn


def test_fills_target_column_for_every_occurrence(title_rows):
    columns = [EligibleColumn("Title_DE", "Title_EN")]
    cache = {"Hallo": "Hello", "Welt": "World"}

    rows = materialize_rows(title_rows, columns, cache)

    assert [row["Title_EN"] for row in rows] == ["Hello", "World", "Hello"]
    assert [row["Title_DE"] for row in rows] == ["Hallo", "Welt", "Hallo"]
    assert "Title_EN" not in title_rows[0]


def test_failed_and_missing_translations_become_empty():
    cache = {"Hallo": ERROR_SENTINEL, "Welt": ""}
    assert resolve_translation("Hallo", cache) == ""
    assert resolve_translation("Welt", cache) == ""
    assert resolve_translation("unbekannt", cache) == ""


def test_blank_and_non_text_cells_stay_empty():
    rows = [{"Title_DE": "   "}, {"Title_DE": None}, {"Title_DE": 42}, {}]
    columns = [EligibleColumn("Title_DE", "Title_EN")]
    out = materialize_rows(rows, columns, {"42": "forty-two"})
    assert [row["Title_EN"] for row in out] == ["", "", "", ""]


def test_existing_target_column_is_overwritten():
    rows = [{"Title_DE": "Hallo", "Title_EN": "stale"}]
    columns = [EligibleColumn("Title_DE", "Title_EN")]
    assert materialize_rows(rows, columns, {"Hallo": "Hello"})[0]["Title_EN"] == "Hello"


def test_output_columns_places_target_after_source():
    columns = [
        EligibleColumn("Title_DE", "Title_EN"),
        EligibleColumn("Place_DE", "Place_EN"),
    ]
    assert output_columns(["id", "Title_DE", "Place_DE", "notes"], columns) == [
        "id",
        "Title_DE",
        "Title_EN",
        "Place_DE",
        "Place_EN",
        "notes",
    ]


def test_output_columns_keeps_existing_target_position():
    columns = [EligibleColumn("Title_DE", "Title_EN")]
    assert output_columns(["Title_EN", "Title_DE"], columns) == ["Title_EN", "Title_DE"]


def test_summarize_counts_each_state():
    summary = summarize({"a": "A", "b": ERROR_SENTINEL, "c": "", "d": "D"})
    assert summary.total == 4
    assert summary.translated == 2
    assert summary.failed == 1
    assert summary.pending == 1
