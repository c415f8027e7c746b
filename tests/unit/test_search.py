from __future__ import annotations

from gradeentry.search import arabic_contains, filter_rows_by_name, normalize_arabic, sort_arabic, suggest_names


def test_normalize_arabic():
    assert normalize_arabic("أحمد") == "احمد"
    assert normalize_arabic("فاطمة") == "فاطمه"
    assert normalize_arabic("مصطفى") == "مصطفي"
    assert normalize_arabic("") == ""


def test_contains_ignores_letter_variants_and_case():
    assert arabic_contains("احمد", "أحمد علي")
    assert arabic_contains("فاطمه", "فاطمة حسن")
    assert arabic_contains("sara", "Sara Mostafa")
    assert not arabic_contains("", "Sara")
    assert not arabic_contains("sara", None)


def test_filter_rows_by_name():
    rows = [{"n": "أحمد علي"}, {"n": "فاطمة حسن"}, {"n": ""}]
    assert filter_rows_by_name(rows, "احمد", "n") == [rows[0]]
    assert filter_rows_by_name(rows, "", "n") == rows


def test_suggestions_are_limited():
    names = [f"Sara {i}" for i in range(10)]
    assert suggest_names(names, "sara", limit=3) == ["Sara 0", "Sara 1", "Sara 2"]
    assert suggest_names(names, "") == []


def test_sort_arabic():
    assert sort_arabic(["بكر", "أحمد", "ادم"]) == ["أحمد", "ادم", "بكر"]
