from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func, select

from school_api.core.errors import ValidationError
from school_api.core.pagination import Pagination
from school_api.core.tenancy import ResourceKind
from school_api.models import Attendance, Lesson, Student
from school_api.schemas.attendance import AttendanceRecordRequest, BulkAttendanceRequest
from school_api.schemas.enums import NotificationPriority, NotificationType
from school_api.services.base_service import BaseService
from school_api.services.grading import format_rate
from school_api.services.notification_service import NotificationService


class AttendanceService(BaseService):
    """
    Attendance is one row per student, lesson and day. Recording the same
    key again overwrites the earlier mark. Absences notify the guardians
    once the marks are committed.
    """

    async def _visible_students(self, student_ids: Iterable[int]) -> Dict[int, Student]:
        student_ids = set(student_ids)
        stmt = self.scoped(select(Student).where(Student.id.in_(student_ids)), Student, ResourceKind.STUDENT)
        students = {student.id: student for student in (await self.db.execute(stmt)).scalars().all()}
        missing = sorted(student_ids - set(students))
        if missing:
            raise ValidationError(
                "Unknown students",
                errors=[{"field": "student_id", "message": f"Student {student_id} not found"} for student_id in missing]
            )
        return students

    async def _existing(self, student_ids: Iterable[int], lesson_id: Optional[int], day: date) -> Dict[int, Attendance]:
        stmt = select(Attendance).where(Attendance.student_id.in_(list(student_ids)), Attendance.date == day)
        if lesson_id is None:
            stmt = stmt.where(Attendance.lesson_id.is_(None))
        else:
            stmt = stmt.where(Attendance.lesson_id == lesson_id)
        return {record.student_id: record for record in (await self.db.execute(stmt)).scalars().all()}

    async def _save(self, students: Dict[int, Student], entries: List[dict], lesson_id: Optional[int], day: date):
        if lesson_id is not None:
            school_ids = {student.school_id for student in students.values()}
            lesson = await self.get_visible(Lesson, lesson_id, ResourceKind.SCHOOL, "Lesson")
            if school_ids != {lesson.school_id}:
                raise ValidationError(
                    "Lesson belongs to another school",
                    errors=[{"field": "lesson_id", "message": "Lesson not found in the students' school"}]
                )

        existing = await self._existing(students.keys(), lesson_id, day)
        saved = []
        async with self.transaction():
            for entry in entries:
                student = students[entry["student_id"]]
                record = existing.get(student.id)
                if record is None:
                    record = Attendance(
                        school_id=student.school_id,
                        student_id=student.id,
                        lesson_id=lesson_id,
                        date=day
                    )
                    self.db.add(record)
                    existing[student.id] = record
                record.present = entry["present"]
                record.note = entry.get("note")
                record.recorded_by_id = self.actor_id
                saved.append(record)

        for record in saved:
            await self.db.refresh(record)
        return saved

    async def _notify_absences(self, students: Dict[int, Student], records: List[Attendance]) -> None:
        notifications = NotificationService(self.db, self.identity)
        for record in records:
            if record.present:
                continue
            student = students[record.student_id]
            await notifications.notify(
                await notifications.guardians_of_student(student.id),
                f"Absence recorded for {student.full_name}",
                f"{student.full_name} was marked absent on {record.date.isoformat()}.",
                category=NotificationType.ATTENDANCE,
                priority=NotificationPriority.HIGH,
                metadata={"student_id": student.id, "date": record.date.isoformat(), "lesson_id": record.lesson_id},
                school_id=student.school_id
            )

    async def record(self, data: AttendanceRecordRequest) -> Attendance:
        students = await self._visible_students([data.student_id])
        entry = {"student_id": data.student_id, "present": data.present, "note": data.note}
        saved = await self._save(students, [entry], data.lesson_id, data.date)
        self.log_write("recorded", "Attendance", saved[0].id, saved[0].school_id)
        await self._notify_absences(students, saved)
        return saved[0]

    async def record_bulk(self, data: BulkAttendanceRequest) -> List[Attendance]:
        ids = [entry.student_id for entry in data.records]
        if len(ids) != len(set(ids)):
            raise ValidationError(
                "Duplicate students in request",
                errors=[{"field": "records", "message": "Each student may appear once"}]
            )
        students = await self._visible_students(ids)
        saved = await self._save(students, [entry.model_dump() for entry in data.records], data.lesson_id, data.date)
        self.log_write(f"recorded {len(saved)} marks for {data.date.isoformat()}", "Attendance", "batch")
        await self._notify_absences(students, saved)
        return saved

    async def list_records(
        self,
        pagination: Pagination,
        student_id: Optional[int] = None,
        class_id: Optional[int] = None,
        lesson_id: Optional[int] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        present: Optional[bool] = None,
        school_id: Optional[int] = None
    ):
        stmt = select(Attendance)
        if student_id is not None:
            stmt = stmt.where(Attendance.student_id == student_id)
        if class_id is not None:
            stmt = stmt.where(Attendance.student_id.in_(select(Student.id).where(Student.class_id == class_id)))
        if lesson_id is not None:
            stmt = stmt.where(Attendance.lesson_id == lesson_id)
        if date_from is not None:
            stmt = stmt.where(Attendance.date >= date_from)
        if date_to is not None:
            stmt = stmt.where(Attendance.date <= date_to)
        if present is not None:
            stmt = stmt.where(Attendance.present.is_(present))
        return await self.list_page(
            stmt, Attendance, pagination, ResourceKind.STUDENT, school_id,
            order_by=[Attendance.date.desc(), Attendance.student_id]
        )

    async def delete_record(self, record_id: int) -> None:
        record = await self.get_visible(Attendance, record_id, ResourceKind.STUDENT, "Attendance record")
        await self.delete(record)
        self.log_write("deleted", "Attendance", record_id, record.school_id)

    async def student_summary(
        self,
        student_id: int,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None
    ) -> Dict[str, Any]:
        student = await self.get_visible(Student, student_id, ResourceKind.STUDENT, "Student")
        conditions = [Attendance.student_id == student.id]
        if date_from is not None:
            conditions.append(Attendance.date >= date_from)
        if date_to is not None:
            conditions.append(Attendance.date <= date_to)

        rows = await self.db.execute(
            select(Attendance.present, func.count()).where(*conditions).group_by(Attendance.present)
        )
        counts = {bool(present): total for present, total in rows.all()}
        present_days = counts.get(True, 0)
        absent_days = counts.get(False, 0)
        total = present_days + absent_days
        return {
            "student_id": student.id,
            "student_name": student.full_name,
            "date_from": date_from,
            "date_to": date_to,
            "total_records": total,
            "present": present_days,
            "absent": absent_days,
            "attendance_rate": format_rate(present_days, total)
        }
