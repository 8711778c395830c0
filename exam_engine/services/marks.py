"""Marks ledger service: validated bulk upserts and mark sheets."""

import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from io import BytesIO
from typing import Any

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from exam_engine.core.dependencies import TenantScope
from exam_engine.core.exceptions import ExamLockedError, MarksEntryClosedError, ValidationError
from exam_engine.core.scoring import ZERO, quantize, to_decimal
from exam_engine.models.exam import ExamStatus, ExamSubject
from exam_engine.models.mark import Mark
from exam_engine.schemas.mark import (
    EnterMarksRequest,
    MarkEntry,
    MarkResponse,
    MarkSheetResponse,
    MarkSheetRow,
    MarksEntryResult,
)
from exam_engine.services.exam import MARKS_OPEN_STATUSES, ExamService
from exam_engine.services.roster import RosterLookup, RosterService

logger = logging.getLogger(__name__)

# Excel template layout: (header, column width)
TEMPLATE_COLUMNS = [
    ("Student ID", 12),
    ("Student Name", 28),
    ("Roll Number", 12),
    ("Class", 10),
    ("Marks Obtained", 16),
    ("Absent (Y/N)", 14),
    ("Remarks", 30),
]
TEMPLATE_HEADER_ROW = 2
TEMPLATE_FIRST_DATA_ROW = 3
ABSENT_VALUES = {"Y", "YES", "TRUE", "1", "A", "ABSENT"}


class MarksService:
    """Marks ledger management service."""

    def __init__(self, db: Session, roster: RosterLookup | None = None):
        self.db = db
        self.roster = roster or RosterService(db)
        self.exams = ExamService(db)

    # ==========================================
    # Entry validation
    # ==========================================

    def _check_entry(self, index: int, entry: MarkEntry, total_marks: Decimal) -> list[dict[str, Any]]:
        errors = []

        def error(field: str, message: str) -> dict[str, Any]:
            return {"index": index, "student_id": entry.student_id, "field": field, "message": message}

        if entry.is_absent:
            if entry.marks_obtained is not None:
                errors.append(error("marks_obtained", "marks_obtained must be empty when the student is absent"))
        elif entry.marks_obtained is None:
            errors.append(error("marks_obtained", "marks_obtained is required unless the student is absent"))
        else:
            marks = to_decimal(entry.marks_obtained)
            if marks < ZERO:
                errors.append(error("marks_obtained", f"marks_obtained ({marks}) cannot be negative"))
            elif marks > total_marks:
                errors.append(error(
                    "marks_obtained",
                    f"marks_obtained ({marks}) exceeds total_marks ({total_marks})",
                ))
        return errors

    def _existing_marks(self, exam_subject_id: int) -> dict[int, Mark]:
        result = self.db.execute(select(Mark).where(Mark.exam_subject_id == exam_subject_id))
        return {m.student_id: m for m in result.scalars().all()}

    # ==========================================
    # Bulk upsert
    # ==========================================

    def enter_marks(
        self,
        scope: TenantScope,
        exam_subject_id: int,
        request: EnterMarksRequest,
    ) -> MarksEntryResult:
        """Upsert a batch of marks for one exam subject.

        The batch is all-or-nothing: every entry is validated first and a
        single invalid entry rejects the whole batch before anything is written.
        """
        subject = self.exams.get_exam_subject(scope, exam_subject_id)
        exam = subject.exam

        if exam.status == ExamStatus.RESULTS_PUBLISHED:
            raise ExamLockedError(exam.id)
        if exam.status not in MARKS_OPEN_STATUSES:
            raise MarksEntryClosedError(exam.id, exam.status.value)

        total_marks = to_decimal(subject.total_marks)
        errors: list[dict[str, Any]] = []
        seen: set[int] = set()
        for index, entry in enumerate(request.entries):
            errors.extend(self._check_entry(index, entry, total_marks))
            if entry.student_id in seen:
                errors.append({
                    "index": index,
                    "student_id": entry.student_id,
                    "field": "student_id",
                    "message": "Student appears more than once in this batch",
                })
            seen.add(entry.student_id)

        for student_id in sorted(seen):
            if not self.roster.student_exists(scope, student_id):
                errors.append({
                    "student_id": student_id,
                    "field": "student_id",
                    "message": f"Student ID {student_id} is not an enrolled student",
                })

        if errors:
            logger.warning(
                f"[MARKS] Rejected batch for exam subject {subject.id}: "
                f"{len(errors)} errors in {len(request.entries)} entries"
            )
            raise ValidationError(
                "Marks batch rejected. No marks were saved.",
                details={"exam_subject_id": subject.id, "errors": errors},
            )

        existing = self._existing_marks(subject.id)
        new_students = sorted(sid for sid in seen if sid not in existing)
        if exam.status == ExamStatus.COMPLETED and new_students:
            raise MarksEntryClosedError(
                exam.id,
                exam.status.value,
                "Marks entry is closed; only existing marks can be corrected",
                student_ids=new_students,
            )

        self._upsert(subject, request.entries, existing)
        exam.bump_version()
        self.db.flush()

        updated = len(seen) - len(new_students)
        logger.info(
            f"[MARKS] Exam subject {subject.id}: {len(new_students)} created, {updated} updated "
            f"(exam {exam.id} now v{exam.version})"
        )
        return MarksEntryResult(
            exam_id=exam.id,
            exam_subject_id=subject.id,
            total_entries=len(request.entries),
            created=len(new_students),
            updated=updated,
            version=exam.version,
            message=f"Successfully saved {len(request.entries)} marks.",
        )

    def _upsert(self, subject: ExamSubject, entries: list[MarkEntry], existing: dict[int, Mark]) -> None:
        now = datetime.now(timezone.utc)
        rows = [
            {
                "exam_subject_id": subject.id,
                "student_id": entry.student_id,
                "marks_obtained": None if entry.is_absent else quantize(entry.marks_obtained),
                "is_absent": entry.is_absent,
                "remarks": entry.remarks,
                "created_at": now,
                "updated_at": now,
            }
            for entry in entries
        ]

        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            insert = None

        if insert is None:
            for row in rows:
                mark = existing.get(row["student_id"])
                if mark:
                    mark.marks_obtained = row["marks_obtained"]
                    mark.is_absent = row["is_absent"]
                    mark.remarks = row["remarks"]
                else:
                    self.db.add(Mark(**row))
            return

        # Row-level upsert: concurrent batches resolve to last write per student
        stmt = insert(Mark).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=["exam_subject_id", "student_id"],
            set_={
                "marks_obtained": stmt.excluded.marks_obtained,
                "is_absent": stmt.excluded.is_absent,
                "remarks": stmt.excluded.remarks,
                "updated_at": stmt.excluded.updated_at,
            },
        )
        self.db.execute(stmt)
        for mark in existing.values():
            self.db.expire(mark)

    # ==========================================
    # Reads
    # ==========================================

    def get_marks(self, scope: TenantScope, exam_subject_id: int) -> list[MarkResponse]:
        """All marks of an exam subject, ordered by student ID."""
        subject = self.exams.get_exam_subject(scope, exam_subject_id)
        result = self.db.execute(
            select(Mark)
            .where(Mark.exam_subject_id == subject.id)
            .order_by(Mark.student_id)
        )
        return [MarkResponse.model_validate(m) for m in result.scalars().all()]

    def get_mark_sheet(
        self,
        scope: TenantScope,
        exam_subject_id: int,
        class_name: str | None = None,
    ) -> MarkSheetResponse:
        """Roster students merged with stored marks; blank rows for missing entries."""
        subject = self.exams.get_exam_subject(scope, exam_subject_id)
        marks = self._existing_marks(subject.id)
        students = self.roster.list_enrolled_students(scope, class_name)

        rows: list[MarkSheetRow] = []
        listed: set[int] = set()
        for student in students:
            mark = marks.get(student.id)
            listed.add(student.id)
            rows.append(MarkSheetRow(
                student_id=student.id,
                student_name=student.student_name,
                roll_number=student.roll_number,
                class_name=student.class_name,
                section=student.section,
                marks_obtained=mark.marks_obtained if mark else None,
                is_absent=mark.is_absent if mark else False,
                remarks=mark.remarks if mark else None,
                has_entry=mark is not None,
            ))

        # Marks of students no longer listed by the roster stay visible
        if class_name is None:
            for student_id in sorted(set(marks) - listed):
                mark = marks[student_id]
                student = self.roster.get_student(scope, student_id)
                rows.append(MarkSheetRow(
                    student_id=student_id,
                    student_name=student.student_name if student else f"Student {student_id}",
                    roll_number=student.roll_number if student else None,
                    class_name=student.class_name if student else None,
                    section=student.section if student else None,
                    marks_obtained=mark.marks_obtained,
                    is_absent=mark.is_absent,
                    remarks=mark.remarks,
                    has_entry=True,
                ))

        rows.sort(key=lambda r: r.student_id)
        return MarkSheetResponse(
            exam_id=subject.exam_id,
            exam_subject_id=subject.id,
            subject_name=subject.subject_name,
            total_marks=subject.total_marks,
            passing_marks=subject.passing_marks,
            version=subject.exam.version,
            rows=rows,
        )

    # ==========================================
    # Template Generation
    # ==========================================

    def generate_template(
        self,
        scope: TenantScope,
        exam_subject_id: int,
        class_name: str | None = None,
    ) -> bytes:
        """Generate an Excel mark sheet pre-filled with the roster and stored marks."""
        sheet = self.get_mark_sheet(scope, exam_subject_id, class_name)
        subject = self.exams.get_exam_subject(scope, exam_subject_id)

        wb = Workbook()
        ws = wb.active
        ws.title = "Marks"

        title_font = Font(bold=True, size=14)
        header_font = Font(bold=True, color="FFFFFF")
        header_fill = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
        thin_border = Border(
            left=Side(style='thin'),
            right=Side(style='thin'),
            top=Side(style='thin'),
            bottom=Side(style='thin')
        )
        center_align = Alignment(horizontal='center', vertical='center')

        title_text = (
            f"{subject.exam.name} - {sheet.subject_name} "
            f"(Total {sheet.total_marks}, Pass {sheet.passing_marks})"
        )
        ws.merge_cells(start_row=1, start_column=1, end_row=1, end_column=len(TEMPLATE_COLUMNS))
        title_cell = ws.cell(row=1, column=1, value=title_text)
        title_cell.font = title_font
        title_cell.alignment = center_align

        for col_idx, (header, width) in enumerate(TEMPLATE_COLUMNS, start=1):
            cell = ws.cell(row=TEMPLATE_HEADER_ROW, column=col_idx, value=header)
            cell.font = header_font
            cell.fill = header_fill
            cell.border = thin_border
            cell.alignment = center_align
            ws.column_dimensions[cell.column_letter].width = width

        for row_idx, row in enumerate(sheet.rows, start=TEMPLATE_FIRST_DATA_ROW):
            values = [
                row.student_id,
                row.student_name,
                row.roll_number or "",
                row.class_name or "",
                float(row.marks_obtained) if row.marks_obtained is not None else "",
                "Y" if row.is_absent else "",
                row.remarks or "",
            ]
            for col_idx, value in enumerate(values, start=1):
                ws.cell(row=row_idx, column=col_idx, value=value).border = thin_border

        instructions_ws = wb.create_sheet("Instructions")
        instructions_ws.column_dimensions['A'].width = 25
        instructions_ws.column_dimensions['B'].width = 60
        instructions = [
            ("MARK SHEET INSTRUCTIONS", ""),
            ("", ""),
            ("Student ID", "Do not change - identifies the student"),
            ("Marks Obtained", f"Number between 0 and {sheet.total_marks}; leave empty if absent"),
            ("Absent (Y/N)", "Y marks the student absent; marks must then be empty"),
            ("Remarks", "Optional comments"),
            ("", ""),
            ("Rows with neither marks nor Y are skipped.", ""),
            ("One invalid row rejects the whole upload.", ""),
        ]
        for row_idx, (col1, col2) in enumerate(instructions, start=1):
            cell1 = instructions_ws.cell(row=row_idx, column=1, value=col1)
            instructions_ws.cell(row=row_idx, column=2, value=col2)
            if row_idx == 1:
                cell1.font = Font(bold=True, size=14)

        output = BytesIO()
        wb.save(output)
        output.seek(0)
        return output.getvalue()

    # ==========================================
    # Excel Upload Processing
    # ==========================================

    @staticmethod
    def _parse_student_id(cell: Any) -> int | None:
        """Whole-number student ID from a cell; None for blanks, text or fractions."""
        try:
            value = Decimal(str(cell).strip())
        except InvalidOperation:
            return None
        if not value.is_finite() or value != value.to_integral_value() or value <= 0:
            return None
        return int(value)

    def import_excel(
        self,
        scope: TenantScope,
        exam_subject_id: int,
        file_content: bytes,
    ) -> MarksEntryResult:
        """Parse an uploaded mark sheet and enter it as one batch."""
        logger.info(f"[IMPORT] Starting - exam_subject_id={exam_subject_id}, file_size={len(file_content)} bytes")
        try:
            wb = load_workbook(BytesIO(file_content), data_only=True)
        except Exception as e:
            logger.error(f"[IMPORT] Failed to load Excel: {str(e)}")
            raise ValidationError(f"Invalid Excel file: {str(e)}")

        ws = wb["Marks"] if "Marks" in wb.sheetnames else wb.active
        header = ws.cell(row=TEMPLATE_HEADER_ROW, column=1).value
        if str(header or "").strip() != TEMPLATE_COLUMNS[0][0]:
            raise ValidationError(
                "Unrecognised mark sheet. Download the template first.",
                details={"row": TEMPLATE_HEADER_ROW, "column": TEMPLATE_COLUMNS[0][0]},
            )

        entries: list[MarkEntry] = []
        errors: list[dict[str, Any]] = []
        skipped = 0

        for row_num, row in enumerate(
            ws.iter_rows(min_row=TEMPLATE_FIRST_DATA_ROW, values_only=True),
            start=TEMPLATE_FIRST_DATA_ROW,
        ):
            if not row or not any(v not in (None, "") for v in row):
                continue

            student_cell = row[0]
            marks_cell = row[4] if len(row) > 4 else None
            absent_cell = row[5] if len(row) > 5 else None
            remarks_cell = row[6] if len(row) > 6 else None

            student_id = self._parse_student_id(student_cell)
            if student_id is None:
                errors.append({"row": row_num, "column": "Student ID", "message": f"Invalid student ID '{student_cell}'"})
                continue

            is_absent = str(absent_cell or "").strip().upper() in ABSENT_VALUES
            marks: Decimal | None = None
            if marks_cell not in (None, ""):
                try:
                    marks = Decimal(str(marks_cell).strip())
                except InvalidOperation:
                    marks = None
                if marks is None or not marks.is_finite():
                    errors.append({"row": row_num, "column": "Marks Obtained", "message": f"Invalid marks '{marks_cell}'"})
                    continue

            if marks is None and not is_absent:
                skipped += 1
                continue

            try:
                entries.append(MarkEntry(
                    student_id=student_id,
                    marks_obtained=marks,
                    is_absent=is_absent,
                    remarks=str(remarks_cell).strip() if remarks_cell not in (None, "") else None,
                ))
            except SchemaValidationError as e:
                for err in e.errors():
                    errors.append({
                        "row": row_num,
                        "column": ".".join(str(part) for part in err["loc"]),
                        "message": err["msg"],
                    })

        if errors:
            logger.warning(f"[IMPORT] {len(errors)} rows could not be parsed")
            raise ValidationError("Mark sheet has invalid rows. No marks were saved.", details={"errors": errors})
        if not entries:
            raise ValidationError("No marks found in the uploaded sheet")

        result = self.enter_marks(scope, exam_subject_id, EnterMarksRequest(entries=entries))
        logger.info(f"[IMPORT] Complete - {len(entries)} entries saved, {skipped} blank rows skipped")
        result.message = f"Imported {len(entries)} marks. {skipped} blank rows skipped."
        return result
