# Shared pytest fixtures: in-memory workbooks and a fresh session
from __future__ import annotations
from io import BytesIO
from typing import Dict, List
import pandas as pd
import pytest
from openpyxl import Workbook
from gradeentry.config import DEFAULT_SETTINGS
from gradeentry.session import SessionController
from gradeentry.storage import MemoryStore


def make_xlsx(sheets: Dict[str, List[list]]) -> bytes:
    """Raw cell grids -> xlsx bytes, no header inference by pandas."""
    bio = BytesIO()
    with pd.ExcelWriter(bio, engine="openpyxl") as writer:
        for name, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=name, header=False, index=False)
    return bio.getvalue()


@pytest.fixture()
def xlsx_bytes():
    return make_xlsx


@pytest.fixture()
def english_grid() -> List[list]:
    return [
        ["Grade sheet 2024", None, None, None],
        [None, None, None, None],
        ["Student ID", "Student Name", "Quiz 1", "Final"],
        [20231001, "Ahmed Hassan", 85, 90],
        [20231002, "Mona Farouk", 70, None],
        [None, None, None, None],
        [20231003, "Omar Nabil", "", 60],
    ]


@pytest.fixture()
def arabic_grid() -> List[list]:
    return [
        ["رقم الطالب", "اسم الطالب", "الدرجة النهائية"],
        [1001, "أحمد علي", 80],
        [1002, "فاطمة حسن", 95],
    ]


@pytest.fixture()
def workbook_bytes(english_grid) -> bytes:
    return make_xlsx({"Grades": english_grid})


@pytest.fixture()
def merged_workbook_bytes() -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Merged"
    ws["A1"] = "Term results"
    ws.merge_cells("A1:D1")
    ws.append(["Student ID", "Student Name", "Exam", "Exam"])
    ws.append([501, "Layla Samir", 40, 45])
    ws.append([502, "Karim Adel", 35, 38])
    bio = BytesIO()
    wb.save(bio)
    return bio.getvalue()


@pytest.fixture()
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def session(store) -> SessionController:
    return SessionController(store=store, settings=DEFAULT_SETTINGS)


@pytest.fixture()
def confirmed_session(session, workbook_bytes) -> SessionController:
    session.load_file(workbook_bytes, "grades.xlsx")
    session.confirm_mapping()
    return session
