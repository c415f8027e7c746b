from __future__ import annotations
import pandas as pd
import streamlit as st
from gradeentry.config import load_settings
from gradeentry.errors import MappingIncompleteError, ParseError, ValidationError
from gradeentry.infer import available_grade_columns
from gradeentry.logger import setup_logging
from gradeentry.models import student_id, student_name
from gradeentry.session import SessionController
from gradeentry.storage import JsonFileStore
from gradeentry.utils import display_value

SETTINGS = load_settings()
setup_logging()
st.set_page_config(page_title="Grade Entry", layout="wide")
st.title("Grade entry workbench")
# =========================

# Session
# =========================
if "controller" not in st.session_state:
    ctl = SessionController(store=JsonFileStore(), settings=SETTINGS)
    ctl.load()
    st.session_state["controller"] = ctl
    st.session_state["upload_key"] = None
ctl: SessionController = st.session_state["controller"]

def _flash(res) -> None:
    if res.applied:
        st.toast(res.message)
    else:
        st.info(res.message)

def _select_index(options: list[str], value: str) -> int:
    return options.index(value) if value in options else 0
# =========================

# Upload
# =========================
upload = st.file_uploader(
    "Upload an Excel workbook",
    type=list(SETTINGS.allowed_extensions),
    accept_multiple_files=False,
)

if upload is not None:
    key = f"{upload.name}:{upload.size}"
    if st.session_state["upload_key"] != key:
        try:
            ctl.load_file(upload.getvalue(), upload.name)
            st.session_state["upload_key"] = key
        except ParseError as e:
            st.error(str(e))

if ctl.workbook is None:
    st.warning("Upload a workbook to start.")
    st.stop()

with st.sidebar:
    st.subheader("Session")
    if ctl.last_saved:
        st.caption(f"Last saved: {ctl.last_saved.strftime('%Y-%m-%d %H:%M:%S')} UTC")
    if st.button("Reset session"):
        ctl.reset()
        st.session_state["upload_key"] = None
        st.rerun()
# =========================

# Sheet + mapping
# =========================
names = ctl.workbook.sheet_names()
current = ctl.current_sheet.name if ctl.current_sheet else names[0]
chosen = st.selectbox("Sheet", names, index=_select_index(names, current))
if chosen != current:
    ctl.select_sheet(chosen)
    st.rerun()

sheet = ctl.current_sheet
if sheet.is_empty:
    st.info(f"Sheet '{sheet.name}' has no student rows; only its structure is available.")

with st.expander("Column mapping", expanded=not ctl.mapping_confirmed):
    headers = [""] + list(ctl.headers)
    m = ctl.mapping
    c1, c2, c3 = st.columns(3)
    picks = {}
    with c1:
        picks["identifier_column"] = st.selectbox("Student identifier", headers, index=_select_index(headers, m.identifier_column))
    with c2:
        picks["name_column"] = st.selectbox("Student name", headers, index=_select_index(headers, m.name_column))
    with c3:
        picks["primary_grade_column"] = st.selectbox("Primary grade", headers, index=_select_index(headers, m.primary_grade_column))

    for field, value in picks.items():
        if value != getattr(ctl.mapping, field):
            try:
                ctl.remap_field(field, value)
            except MappingIncompleteError as e:
                st.error(str(e))
            st.rerun()

    for i, col in enumerate(ctl.mapping.additional_grade_columns):
        a1, a2 = st.columns([4, 1])
        a1.write(f"Additional grade: **{col}**")
        if a2.button("Remove", key=f"rm_grade_{i}"):
            ctl.remove_grade_column(i)
            st.rerun()

    if available_grade_columns(ctl.mapping, ctl.headers) and st.button("Add grade column"):
        ctl.add_grade_column()
        st.rerun()

    if st.button("Confirm mapping", type="primary"):
        try:
            for w in ctl.confirm_mapping():
                st.warning(w)
        except MappingIncompleteError as e:
            st.error(str(e))

if not ctl.mapping_confirmed:
    st.stop()
# =========================

# Grades
# =========================
mapping = ctl.mapping
grade_cols = mapping.grade_columns()

q = st.text_input("Search students by name")
hints = ctl.suggestions(q) if q.strip() else []
if hints:
    st.caption("Suggestions: " + " · ".join(hints))
rows = ctl.search(q) if q.strip() else sheet.rows

if q.strip() and len(rows) == 1 and st.button("Edit primary grade of the match"):
    ctl.focus_grade(student_id(rows[0], mapping))

table = []
for row in rows:
    sid = student_id(row, mapping)
    rec = {"id": sid, "name": student_name(row, mapping)}
    for col in grade_cols:
        rec[col] = display_value(ctl.grades.get(sid, col))
    table.append(rec)
grid = pd.DataFrame(table, columns=["id", "name"] + grade_cols)

edited = st.data_editor(
    grid,
    width="stretch",
    hide_index=True,
    disabled=["id", "name"],
    key="grade_editor",
)

for i in range(len(grid)):
    for col in grade_cols:
        old, new = grid.at[i, col], edited.at[i, col]
        if str(old or "") == str(new or ""):
            continue
        sid = grid.at[i, "id"]
        try:
            ctl.begin_edit(sid, col)
            ctl.commit_edit(sid, col, "" if new is None else str(new))
        except ValidationError as e:
            st.error(f"{grid.at[i, 'name']} / {col}: {e}")

if ctl.editing is not None:
    ed = ctl.editing
    with st.form("single_edit"):
        st.write(f"Editing **{ed.column}** for student **{ed.student_id}**")
        text = st.text_input("Grade", value=ed.text)
        ok, cancel = st.columns(2)
        if ok.form_submit_button("Save"):
            try:
                ctl.commit_edit(ed.student_id, ed.column, text)
                st.rerun()
            except ValidationError as e:
                st.error(str(e))
        if cancel.form_submit_button("Cancel"):
            ctl.cancel_edit()
            st.rerun()
# =========================

# History
# =========================
h1, h2, h3 = st.columns(3)
if h1.button("Undo", disabled=not ctl.history.can_undo):
    _flash(ctl.undo())
    st.rerun()
if h2.button("Redo", disabled=not ctl.history.can_redo):
    _flash(ctl.redo())
    st.rerun()
if h3.button("Clear history", disabled=not len(ctl.history)):
    ctl.clear_history()
    st.rerun()

with st.expander(f"Edit history ({len(ctl.history)})", expanded=False):
    panel = ctl.history.describe()
    if panel:
        st.dataframe(pd.DataFrame(panel), width="stretch", hide_index=True)
        target = st.number_input("Jump to history point (0 = before any edit)", 0, len(panel), ctl.history.cursor + 1)
        if st.button("Jump"):
            _flash(ctl.jump(int(target) - 1))
            st.rerun()
    else:
        st.caption("No edits yet.")
# =========================

# Export
# =========================
fname, xbytes = ctl.export_workbook()
st.download_button(
    "Download Excel",
    data=xbytes,
    file_name=fname,
    mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
)
