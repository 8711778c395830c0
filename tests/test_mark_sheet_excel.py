"""Excel mark sheet template and import."""

from decimal import Decimal
from io import BytesIO

import pytest
from openpyxl import Workbook, load_workbook

from exam_engine.core.exceptions import ValidationError
from exam_engine.models.exam import ExamStatus
from exam_engine.schemas.mark import EnterMarksRequest, MarkEntry
from exam_engine.services.marks import TEMPLATE_COLUMNS, TEMPLATE_FIRST_DATA_ROW, TEMPLATE_HEADER_ROW, MarksService


@pytest.fixture
def subject_id(make_exam):
    exam = make_exam(subjects=[("Math", 50, 20)], status=ExamStatus.IN_PROGRESS)
    return exam.subjects[0].id


def fill(content: bytes, values: dict[int, tuple]) -> bytes:
    """Write (marks, absent, remarks) into the template rows keyed by student ID."""
    wb = load_workbook(BytesIO(content))
    ws = wb["Marks"]
    for row in range(TEMPLATE_FIRST_DATA_ROW, ws.max_row + 1):
        student_id = ws.cell(row=row, column=1).value
        if student_id in values:
            marks, absent, remarks = values[student_id]
            ws.cell(row=row, column=5, value=marks)
            ws.cell(row=row, column=6, value=absent)
            ws.cell(row=row, column=7, value=remarks)
    output = BytesIO()
    wb.save(output)
    return output.getvalue()


def test_template_lists_roster(db, scope, subject_id, make_students):
    students = make_students(3)
    content = MarksService(db).generate_template(scope, subject_id)

    wb = load_workbook(BytesIO(content))
    assert wb.sheetnames == ["Marks", "Instructions"]
    ws = wb["Marks"]
    headers = [ws.cell(row=TEMPLATE_HEADER_ROW, column=i).value for i in range(1, len(TEMPLATE_COLUMNS) + 1)]
    assert headers == [name for name, _ in TEMPLATE_COLUMNS]
    ids = [ws.cell(row=r, column=1).value for r in range(TEMPLATE_FIRST_DATA_ROW, ws.max_row + 1)]
    assert ids == [s.id for s in students]


def test_template_prefills_stored_marks(db, scope, subject_id, make_students):
    (student,) = make_students(1)
    service = MarksService(db)
    service.enter_marks(scope, subject_id, EnterMarksRequest(entries=[
        MarkEntry(student_id=student.id, marks_obtained=Decimal("41")),
    ]))
    ws = load_workbook(BytesIO(service.generate_template(scope, subject_id)))["Marks"]
    assert ws.cell(row=TEMPLATE_FIRST_DATA_ROW, column=5).value == 41


def test_import_round_trip(db, scope, subject_id, make_students):
    s1, s2, s3 = make_students(3)
    service = MarksService(db)
    content = fill(service.generate_template(scope, subject_id), {
        s1.id: (44, None, "Good"),
        s2.id: (None, "Y", None),
        # s3 left blank and skipped
    })

    result = service.import_excel(scope, subject_id, content)
    assert result.created == 2
    assert "1 blank rows skipped" in result.message

    marks = {m.student_id: m for m in service.get_marks(scope, subject_id)}
    assert marks[s1.id].marks_obtained == Decimal("44")
    assert marks[s1.id].remarks == "Good"
    assert marks[s2.id].is_absent is True
    assert s3.id not in marks


def test_import_rejects_out_of_range_row(db, scope, subject_id, make_students):
    s1, s2 = make_students(2)
    service = MarksService(db)
    content = fill(service.generate_template(scope, subject_id), {
        s1.id: (30, None, None),
        s2.id: (55, None, None),
    })
    with pytest.raises(ValidationError):
        service.import_excel(scope, subject_id, content)
    assert service.get_marks(scope, subject_id) == []


def test_import_rejects_unparseable_marks(db, scope, subject_id, make_students):
    (student,) = make_students(1)
    service = MarksService(db)
    content = fill(service.generate_template(scope, subject_id), {student.id: ("forty", None, None)})
    with pytest.raises(ValidationError) as exc_info:
        service.import_excel(scope, subject_id, content)
    assert exc_info.value.details["errors"][0]["column"] == "Marks Obtained"


def test_import_rejects_foreign_workbook(db, scope, subject_id):
    wb = Workbook()
    wb.active.append(["Name", "Score"])
    output = BytesIO()
    wb.save(output)
    with pytest.raises(ValidationError):
        MarksService(db).import_excel(scope, subject_id, output.getvalue())


def test_import_rejects_non_excel_bytes(db, scope, subject_id):
    with pytest.raises(ValidationError):
        MarksService(db).import_excel(scope, subject_id, b"not a workbook")


def retype_student_id(content: bytes, student_id: int, new_value) -> bytes:
    wb = load_workbook(BytesIO(content))
    ws = wb["Marks"]
    for row in range(TEMPLATE_FIRST_DATA_ROW, ws.max_row + 1):
        if ws.cell(row=row, column=1).value == student_id:
            ws.cell(row=row, column=1, value=new_value)
    output = BytesIO()
    wb.save(output)
    return output.getvalue()


@pytest.mark.parametrize("typed", ["{id}.9", "{id}.5", "abc", "-{id}"])
def test_import_rejects_non_integral_student_id(db, scope, subject_id, make_students, typed):
    s1, s2 = make_students(2)
    service = MarksService(db)
    content = fill(service.generate_template(scope, subject_id), {
        s1.id: (35, None, None),
        s2.id: (40, None, None),
    })
    value = typed.format(id=s1.id)
    cell_value = value if value == "abc" else float(value)
    content = retype_student_id(content, s1.id, cell_value)

    with pytest.raises(ValidationError) as exc_info:
        service.import_excel(scope, subject_id, content)
    assert exc_info.value.details["errors"][0]["column"] == "Student ID"
    assert service.get_marks(scope, subject_id) == []


def test_import_accepts_whole_number_float_student_id(db, scope, subject_id, make_students):
    (student,) = make_students(1)
    service = MarksService(db)
    content = fill(service.generate_template(scope, subject_id), {student.id: (35, None, None)})
    content = retype_student_id(content, student.id, float(student.id))

    result = service.import_excel(scope, subject_id, content)
    assert result.created == 1
    assert service.get_marks(scope, subject_id)[0].student_id == student.id


@pytest.mark.parametrize("marks", ["NaN", "Infinity", "-Infinity", "sNaN"])
def test_import_rejects_non_finite_marks(db, scope, subject_id, make_students, marks):
    s1, s2 = make_students(2)
    service = MarksService(db)
    content = fill(service.generate_template(scope, subject_id), {
        s1.id: (marks, None, None),
        s2.id: (30, None, None),
    })
    with pytest.raises(ValidationError) as exc_info:
        service.import_excel(scope, subject_id, content)
    errors = exc_info.value.details["errors"]
    assert [(e["column"], e["row"]) for e in errors] == [("Marks Obtained", TEMPLATE_FIRST_DATA_ROW)]
    assert service.get_marks(scope, subject_id) == []
