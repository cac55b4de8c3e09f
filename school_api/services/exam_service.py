from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional, Set

from sqlalchemy import func, or_, select

from school_api.core.errors import BusinessRuleError, ConflictError, ValidationError
from school_api.core.pagination import Pagination
from school_api.core.tenancy import ResourceKind
from school_api.models import (
    Class,
    Exam,
    ExamQuestion,
    ExamResult,
    ExamSession,
    Room,
    Student,
    Subject,
    Term,
    utcnow
)
from school_api.schemas.enums import ExamStatus, ExamType, NotificationType, STAFF_ROLES, UserRole
from school_api.schemas.exam import (
    ExamCreateRequest,
    ExamResultUploadRequest,
    ExamSessionCreateRequest,
    ExamSessionUpdateRequest,
    ExamUpdateRequest
)
from school_api.services.base_service import BaseService
from school_api.services.grading import grade_for, percentage
from school_api.services.notification_service import NotificationService


class ExamService(BaseService):

    async def _validate_links(
        self,
        school_id: int,
        subject_id: Optional[int],
        class_id: Optional[int],
        term_id: Optional[int]
    ) -> None:
        if subject_id is not None:
            await self.ensure_in_tenant(Subject, subject_id, school_id, "Subject")
        if class_id is not None:
            await self.ensure_in_tenant(Class, class_id, school_id, "Class")
            if self.role == UserRole.TEACHER:
                # Teachers schedule exams only for classes they can see
                await self.get_visible(Class, class_id, ResourceKind.CLASS, "Class")
        if term_id is not None:
            await self.ensure_in_tenant(Term, term_id, school_id, "Term")

    async def create_exam(self, data: ExamCreateRequest) -> Exam:
        school_id = await self.target_school(data.school_id)
        await self._validate_links(school_id, data.subject_id, data.class_id, data.term_id)

        exam = Exam(
            school_id=school_id,
            title=data.title,
            description=data.description,
            instructions=data.instructions,
            exam_type=data.exam_type.value,
            status=data.status.value,
            start_time=data.start_time,
            end_time=data.end_time,
            total_marks=data.total_marks,
            passing_marks=data.passing_marks,
            subject_id=data.subject_id,
            class_id=data.class_id,
            term_id=data.term_id,
            created_by_id=self.actor_id
        )
        self.db.add(exam)
        await self.commit(exam)
        self.log_write("created", "Exam", exam.id, school_id)
        return exam

    async def list_exams(
        self,
        pagination: Pagination,
        search: Optional[str] = None,
        subject_id: Optional[int] = None,
        class_id: Optional[int] = None,
        term_id: Optional[int] = None,
        status: Optional[ExamStatus] = None,
        exam_type: Optional[ExamType] = None,
        school_id: Optional[int] = None
    ):
        stmt = select(Exam)
        if search:
            stmt = stmt.where(Exam.title.ilike(self.like(search)))
        if subject_id is not None:
            stmt = stmt.where(Exam.subject_id == subject_id)
        if class_id is not None:
            stmt = stmt.where(Exam.class_id == class_id)
        if term_id is not None:
            stmt = stmt.where(Exam.term_id == term_id)
        if status is not None:
            stmt = stmt.where(Exam.status == status.value)
        if exam_type is not None:
            stmt = stmt.where(Exam.exam_type == exam_type.value)
        return await self.list_page(
            stmt, Exam, pagination, ResourceKind.SCHOOL, school_id, order_by=[Exam.start_time.desc()]
        )

    async def get_exam(self, exam_id: int) -> Exam:
        return await self.get_visible(Exam, exam_id, ResourceKind.SCHOOL, "Exam")

    async def update_exam(self, exam_id: int, data: ExamUpdateRequest) -> Exam:
        exam = await self.get_exam(exam_id)
        updates = data.model_dump(exclude_unset=True)

        # Cross-field rules hold for the merged record, not just the patch
        total_marks = updates.get("total_marks") or exam.total_marks
        passing_marks = updates["passing_marks"] if updates.get("passing_marks") is not None else exam.passing_marks
        start_time = updates.get("start_time") or exam.start_time
        end_time = updates.get("end_time") or exam.end_time

        errors = []
        if passing_marks > total_marks:
            errors.append({"field": "passing_marks", "message": "passing_marks cannot exceed total_marks"})
        if start_time >= end_time:
            errors.append({"field": "end_time", "message": "end_time must be after start_time"})
        if errors:
            raise ValidationError("Invalid exam update", errors=errors)

        await self._validate_links(
            exam.school_id, updates.get("subject_id"), updates.get("class_id"), updates.get("term_id")
        )
        self.apply_updates(exam, {k: v for k, v in updates.items() if v is not None})
        await self.commit(exam)
        self.log_write("updated", "Exam", exam.id, exam.school_id)
        return exam

    async def delete_exam(self, exam_id: int) -> None:
        exam = await self.get_exam(exam_id)
        counts = {
            "sessions": await self.count(ExamSession, ExamSession.exam_id == exam.id),
            "results": await self.count(ExamResult, ExamResult.exam_id == exam.id),
        }
        self.ensure_no_dependents(counts, "Cannot delete exam with sessions or results")

        async with self.transaction():
            for question in (await self.db.execute(
                select(ExamQuestion).where(ExamQuestion.exam_id == exam.id)
            )).scalars().all():
                await self.db.delete(question)
            await self.db.delete(exam)
        self.log_write("deleted", "Exam", exam_id, exam.school_id)

    # Questions

    async def add_question(self, exam_id: int, question: str, marks: float, subject_id: Optional[int] = None) -> ExamQuestion:
        exam = await self.get_exam(exam_id)
        subject_id = subject_id or exam.subject_id
        if subject_id is None:
            raise ValidationError(
                "subject_id is required",
                errors=[{"field": "subject_id", "message": "Exam has no subject; provide one for the question"}]
            )
        await self.ensure_in_tenant(Subject, subject_id, exam.school_id, "Subject")

        allocated = (await self.db.execute(
            select(func.coalesce(func.sum(ExamQuestion.marks), 0)).where(ExamQuestion.exam_id == exam.id)
        )).scalar_one()
        if allocated + marks > exam.total_marks:
            raise BusinessRuleError(
                f"Question marks exceed exam total ({allocated + marks} > {exam.total_marks})"
            )

        item = ExamQuestion(
            school_id=exam.school_id,
            exam_id=exam.id,
            subject_id=subject_id,
            question=question,
            marks=marks
        )
        self.db.add(item)
        await self.commit(item)
        self.log_write("created", "ExamQuestion", item.id, exam.school_id)
        return item

    async def list_questions(self, exam_id: int) -> List[ExamQuestion]:
        exam = await self.get_exam(exam_id)
        result = await self.db.execute(
            select(ExamQuestion).where(ExamQuestion.exam_id == exam.id).order_by(ExamQuestion.id)
        )
        return list(result.scalars().all())

    # Results

    async def upload_results(self, exam_id: int, data: ExamResultUploadRequest) -> List[ExamResult]:
        """Create or replace one result per student; percentage and grade are derived"""
        exam = await self.get_exam(exam_id)

        errors = []
        for index, entry in enumerate(data.results):
            if entry.score > exam.total_marks:
                errors.append({
                    "field": f"results.{index}.score",
                    "message": f"Score cannot exceed total marks ({exam.total_marks})"
                })
        if errors:
            raise ValidationError("Invalid exam results", errors=errors)

        student_ids = {entry.student_id for entry in data.results}
        students_stmt = select(Student.id).where(Student.id.in_(student_ids), Student.school_id == exam.school_id)
        if exam.class_id is not None:
            students_stmt = students_stmt.where(Student.class_id == exam.class_id)
        if self.role == UserRole.TEACHER:
            students_stmt = self.scoped(students_stmt, Student, ResourceKind.STUDENT)
        known = set((await self.db.execute(students_stmt)).scalars().all())
        missing = sorted(student_ids - known)
        if missing:
            raise ValidationError(
                "Unknown students for this exam",
                errors=[{"field": "results", "message": f"Student {student_id} is not a candidate"} for student_id in missing]
            )

        existing = {
            result.student_id: result
            for result in (await self.db.execute(
                select(ExamResult).where(ExamResult.exam_id == exam.id, ExamResult.student_id.in_(student_ids))
            )).scalars().all()
        }

        saved = []
        async with self.transaction():
            for entry in data.results:
                pct = percentage(entry.score, exam.total_marks)
                result = existing.get(entry.student_id)
                if result is None:
                    result = ExamResult(
                        school_id=exam.school_id,
                        student_id=entry.student_id,
                        exam_id=exam.id,
                        subject_id=exam.subject_id
                    )
                    self.db.add(result)
                    existing[entry.student_id] = result
                result.score = entry.score
                result.max_score = exam.total_marks
                result.percentage = pct
                result.grade = grade_for(pct)
                result.remarks = entry.remarks
                result.uploaded_by_id = self.actor_id
                result.uploaded_at = utcnow()
                saved.append(result)

        for result in saved:
            await self.db.refresh(result)
        self.log_write(f"uploaded {len(saved)} results for", "Exam", exam.id, exam.school_id)

        notifications = NotificationService(self.db, self.identity)
        guardians: Set[int] = set()
        for student_id in student_ids:
            guardians |= await notifications.guardians_of_student(student_id)
        await notifications.notify(
            guardians,
            f"Results published: {exam.title}",
            f"Results for {exam.title} are now available.",
            category=NotificationType.RESULT,
            metadata={"exam_id": exam.id},
            school_id=exam.school_id
        )
        return saved

    async def list_results(self, exam_id: int, pagination: Pagination):
        exam = await self.get_exam(exam_id)
        stmt = select(ExamResult).where(ExamResult.exam_id == exam.id)
        return await self.list_page(
            stmt, ExamResult, pagination, ResourceKind.STUDENT,
            order_by=[ExamResult.percentage.desc(), ExamResult.student_id]
        )

    async def result_summary(self, exam: Exam) -> Dict[str, object]:
        rows = (await self.db.execute(
            select(ExamResult.score, ExamResult.grade).where(ExamResult.exam_id == exam.id)
        )).all()
        distribution: Dict[str, int] = defaultdict(int)
        for _, grade in rows:
            distribution[grade] += 1
        passed = sum(1 for score, _ in rows if score >= exam.passing_marks)
        return {
            "candidates": len(rows),
            "passed": passed,
            "failed": len(rows) - passed,
            "average_score": round(sum(score for score, _ in rows) / len(rows), 2) if rows else 0,
            "grade_distribution": dict(distribution)
        }

    # Sessions

    async def _validate_session(
        self,
        exam: Exam,
        room_id: int,
        invigilator_id: Optional[int],
        start_time: datetime,
        end_time: datetime,
        expected_candidates: int,
        exclude_id: Optional[int] = None
    ) -> None:
        if start_time >= end_time:
            raise ValidationError(
                "Invalid session time",
                errors=[{"field": "end_time", "message": "end_time must be after start_time"}]
            )
        room = await self.ensure_in_tenant(Room, room_id, exam.school_id, "Room")
        if expected_candidates > room.capacity:
            raise BusinessRuleError(
                f"Room {room.code} holds {room.capacity} candidates; {expected_candidates} expected"
            )
        if invigilator_id is not None:
            await self.ensure_member(invigilator_id, exam.school_id, STAFF_ROLES, "Invigilator")

        clash = [ExamSession.room_id == room_id]
        if invigilator_id is not None:
            clash.append(ExamSession.invigilator_id == invigilator_id)
        stmt = select(ExamSession).where(
            ExamSession.school_id == exam.school_id,
            or_(*clash),
            ExamSession.start_time <= end_time,
            start_time <= ExamSession.end_time
        )
        if exclude_id is not None:
            stmt = stmt.where(ExamSession.id != exclude_id)
        conflict = (await self.db.execute(stmt.limit(1))).scalar_one_or_none()
        if conflict is not None:
            what = "Room" if conflict.room_id == room_id else "Invigilator"
            raise ConflictError(f"{what} is already booked for an overlapping exam session")

    async def create_session(self, exam_id: int, data: ExamSessionCreateRequest) -> ExamSession:
        exam = await self.get_exam(exam_id)
        await self._validate_session(
            exam, data.room_id, data.invigilator_id, data.start_time, data.end_time, data.expected_candidates
        )
        session = ExamSession(
            school_id=exam.school_id,
            exam_id=exam.id,
            room_id=data.room_id,
            invigilator_id=data.invigilator_id,
            start_time=data.start_time,
            end_time=data.end_time,
            expected_candidates=data.expected_candidates,
            notes=data.notes
        )
        self.db.add(session)
        await self.commit(session)
        self.log_write("created", "ExamSession", session.id, exam.school_id)
        return session

    async def list_sessions(self, exam_id: int) -> List[ExamSession]:
        exam = await self.get_exam(exam_id)
        result = await self.db.execute(
            select(ExamSession).where(ExamSession.exam_id == exam.id).order_by(ExamSession.start_time)
        )
        return list(result.scalars().all())

    async def get_session(self, exam_id: int, session_id: int) -> ExamSession:
        exam = await self.get_exam(exam_id)
        session = await self.get_visible(ExamSession, session_id, ResourceKind.SCHOOL, "Exam session")
        if session.exam_id != exam.id:
            raise ValidationError(
                "Session does not belong to this exam",
                errors=[{"field": "session_id", "message": "Session belongs to another exam"}]
            )
        return session

    async def update_session(self, exam_id: int, session_id: int, data: ExamSessionUpdateRequest) -> ExamSession:
        exam = await self.get_exam(exam_id)
        session = await self.get_session(exam_id, session_id)
        updates = data.model_dump(exclude_unset=True)
        merged = {
            "room_id": updates.get("room_id") or session.room_id,
            "invigilator_id": updates["invigilator_id"] if "invigilator_id" in updates else session.invigilator_id,
            "start_time": updates.get("start_time") or session.start_time,
            "end_time": updates.get("end_time") or session.end_time,
            "expected_candidates": (
                updates["expected_candidates"] if updates.get("expected_candidates") is not None
                else session.expected_candidates
            ),
        }
        await self._validate_session(exam, exclude_id=session.id, **merged)

        self.apply_updates(session, {**merged, **({"notes": updates["notes"]} if "notes" in updates else {})})
        await self.commit(session)
        self.log_write("updated", "ExamSession", session.id, exam.school_id)
        return session

    async def delete_session(self, exam_id: int, session_id: int) -> None:
        session = await self.get_session(exam_id, session_id)
        await self.delete(session)
        self.log_write("deleted", "ExamSession", session_id, session.school_id)
