from collections import OrderedDict
from datetime import datetime, time
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import delete, func, or_, select

from school_api.core.errors import BusinessRuleError, NotFoundError
from school_api.core.logging import log_function_call, logger
from school_api.core.pagination import Pagination
from school_api.core.tenancy import ResourceKind
from school_api.models import (
    Assignment,
    Attendance,
    Exam,
    ExamResult,
    ReportCard,
    Student,
    SubjectReport,
    Term,
    utcnow
)
from school_api.schemas.enums import NotificationType, ReportCardStatus, UserRole
from school_api.schemas.report_card import ReportCardCommentsRequest, ReportCardCreateRequest
from school_api.services.base_service import BaseService
from school_api.services.grading import format_rate, gpa_for, grade_for, percentage
from school_api.services.notification_service import NotificationService

# Statuses a parent may read
VISIBLE_TO_PARENTS = (ReportCardStatus.PUBLISHED.value, ReportCardStatus.ARCHIVED.value)
EDITABLE = (ReportCardStatus.DRAFT.value, ReportCardStatus.GENERATED.value)


class ReportCardService(BaseService):
    """
    Report card workflow:

        DRAFT -> GENERATED -> APPROVED -> PUBLISHED -> ARCHIVED

    Generation may be repeated until the card is approved. Publishing
    notifies the student's guardians.
    """

    def _parent_visible(self, stmt):
        if self.role == UserRole.PARENT:
            stmt = stmt.where(ReportCard.status.in_(VISIBLE_TO_PARENTS))
        return stmt

    async def _ensure_new(self, student_id: int, term_id: int) -> None:
        await self.ensure_unique(
            ReportCard,
            [ReportCard.student_id == student_id, ReportCard.term_id == term_id],
            "A report card already exists for this student and term"
        )

    async def create_report_card(self, data: ReportCardCreateRequest) -> ReportCard:
        student = await self.get_visible(Student, data.student_id, ResourceKind.STUDENT, "Student")
        await self.ensure_in_tenant(Term, data.term_id, student.school_id, "Term")
        await self._ensure_new(student.id, data.term_id)

        card = ReportCard(
            school_id=student.school_id,
            student_id=student.id,
            term_id=data.term_id,
            status=ReportCardStatus.DRAFT.value
        )
        self.db.add(card)
        await self.commit(card)
        self.log_write("created", "ReportCard", card.id, card.school_id)
        return card

    async def list_report_cards(
        self,
        pagination: Pagination,
        student_id: Optional[int] = None,
        term_id: Optional[int] = None,
        status: Optional[ReportCardStatus] = None,
        school_id: Optional[int] = None
    ):
        stmt = self._parent_visible(select(ReportCard))
        if student_id is not None:
            stmt = stmt.where(ReportCard.student_id == student_id)
        if term_id is not None:
            stmt = stmt.where(ReportCard.term_id == term_id)
        if status is not None:
            stmt = stmt.where(ReportCard.status == status.value)
        return await self.list_page(
            stmt, ReportCard, pagination, ResourceKind.STUDENT, school_id,
            order_by=[ReportCard.created_at.desc(), ReportCard.id.desc()]
        )

    async def get_report_card(self, card_id: int) -> ReportCard:
        stmt = self.scoped(
            self._parent_visible(select(ReportCard).where(ReportCard.id == card_id)),
            ReportCard,
            ResourceKind.STUDENT
        )
        card = (await self.db.execute(stmt)).scalar_one_or_none()
        if card is None:
            raise NotFoundError("Report card not found")
        return card

    async def subjects_of(self, card_id: int) -> List[SubjectReport]:
        result = await self.db.execute(
            select(SubjectReport).where(SubjectReport.report_card_id == card_id).order_by(SubjectReport.subject_id)
        )
        return list(result.scalars().all())

    async def update_comments(self, card_id: int, data: ReportCardCommentsRequest) -> ReportCard:
        card = await self.get_report_card(card_id)
        if card.status not in EDITABLE + (ReportCardStatus.APPROVED.value,):
            raise BusinessRuleError(f"Comments cannot be changed on a {card.status} report card")
        self.apply_updates(card, data.model_dump(exclude_unset=True))
        await self.commit(card)
        self.log_write("commented", "ReportCard", card.id, card.school_id)
        return card

    async def delete_report_card(self, card_id: int) -> None:
        card = await self.get_report_card(card_id)
        if card.status == ReportCardStatus.PUBLISHED.value:
            raise BusinessRuleError("Published report cards cannot be deleted")
        async with self.transaction():
            await self.db.execute(delete(SubjectReport).where(SubjectReport.report_card_id == card.id))
            await self.db.delete(card)
        self.log_write("deleted", "ReportCard", card_id, card.school_id)

    # Generation

    async def _term_results(self, student_id: int, term: Term) -> List[Tuple[int, float, float]]:
        """(subject_id, score, max_score) for exam results of the term and work due inside it"""
        term_exams = select(Exam.id).where(Exam.term_id == term.id)
        term_assignments = select(Assignment.id).where(
            Assignment.due_date >= datetime.combine(term.start_date, time.min),
            Assignment.due_date <= datetime.combine(term.end_date, time.max)
        )
        stmt = select(ExamResult.subject_id, ExamResult.score, ExamResult.max_score).where(
            ExamResult.student_id == student_id,
            ExamResult.subject_id.is_not(None),
            or_(ExamResult.exam_id.in_(term_exams), ExamResult.assignment_id.in_(term_assignments))
        )
        return [tuple(row) for row in (await self.db.execute(stmt)).all()]

    async def _term_attendance_rate(self, student_id: int, term: Term) -> str:
        rows = await self.db.execute(
            select(Attendance.present, func.count())
            .where(
                Attendance.student_id == student_id,
                Attendance.date >= term.start_date,
                Attendance.date <= term.end_date
            )
            .group_by(Attendance.present)
        )
        counts = {bool(present): total for present, total in rows.all()}
        return format_rate(counts.get(True, 0), counts.get(True, 0) + counts.get(False, 0))

    async def _fill(self, card: ReportCard, term: Term) -> None:
        totals: "OrderedDict[int, List[float]]" = OrderedDict()
        for subject_id, score, max_score in await self._term_results(card.student_id, term):
            entry = totals.setdefault(subject_id, [0.0, 0.0])
            entry[0] += score or 0
            entry[1] += max_score or 0

        await self.db.execute(delete(SubjectReport).where(SubjectReport.report_card_id == card.id))
        obtained = available = 0.0
        for subject_id, (score, max_score) in totals.items():
            pct = percentage(score, max_score)
            self.db.add(SubjectReport(
                report_card_id=card.id,
                subject_id=subject_id,
                score=score,
                max_score=max_score,
                percentage=pct,
                grade=grade_for(pct)
            ))
            obtained += score
            available += max_score

        overall = percentage(obtained, available)
        card.overall_percentage = overall
        card.overall_grade = grade_for(overall)
        card.gpa = gpa_for(overall)
        card.attendance_rate = await self._term_attendance_rate(card.student_id, term)
        card.status = ReportCardStatus.GENERATED.value
        card.generated_at = utcnow()

    async def generate(self, card_id: int) -> ReportCard:
        card = await self.get_report_card(card_id)
        if card.status not in EDITABLE:
            raise BusinessRuleError("Only draft or generated report cards can be generated")
        term = await self.ensure_in_tenant(Term, card.term_id, card.school_id, "Term")

        async with self.transaction():
            await self._fill(card, term)
        await self.db.refresh(card)
        self.log_write("generated", "ReportCard", card.id, card.school_id)
        return card

    @log_function_call(logger)
    async def generate_for_students(self, student_ids: List[int], term_id: int) -> Dict[str, Any]:
        """Create and generate cards for many students; students that already have one are skipped"""
        stmt = self.scoped(select(Student).where(Student.id.in_(student_ids)), Student, ResourceKind.STUDENT)
        students = list((await self.db.execute(stmt)).scalars().all())
        if len(students) != len(set(student_ids)):
            raise BusinessRuleError("Some students were not found")

        school_ids = {student.school_id for student in students}
        if len(school_ids) != 1:
            raise BusinessRuleError("Students must belong to one school")
        term = await self.ensure_in_tenant(Term, term_id, school_ids.pop(), "Term")

        existing = set((await self.db.execute(
            select(ReportCard.student_id).where(
                ReportCard.term_id == term.id,
                ReportCard.student_id.in_([student.id for student in students])
            )
        )).scalars().all())

        created = []
        async with self.transaction():
            for student in students:
                if student.id in existing:
                    continue
                card = ReportCard(school_id=student.school_id, student_id=student.id, term_id=term.id)
                self.db.add(card)
                await self.db.flush()
                await self._fill(card, term)
                created.append(card)

        for card in created:
            await self.db.refresh(card)
        self.log_write(f"generated {len(created)} report cards for term {term.id}", "ReportCard", "batch", term.school_id)
        return {"report_cards": created, "skipped": sorted(existing)}

    # Transitions

    async def approve(self, card_id: int) -> ReportCard:
        card = await self.get_report_card(card_id)
        if card.status != ReportCardStatus.GENERATED.value:
            raise BusinessRuleError("Only generated report cards can be approved")
        card.status = ReportCardStatus.APPROVED.value
        card.approved_at = utcnow()
        card.approved_by_id = self.actor_id
        await self.commit(card)
        self.log_write("approved", "ReportCard", card.id, card.school_id)
        return card

    async def publish(self, card_id: int) -> ReportCard:
        card = await self.get_report_card(card_id)
        if card.status != ReportCardStatus.APPROVED.value:
            raise BusinessRuleError("Only approved report cards can be published")
        card.status = ReportCardStatus.PUBLISHED.value
        card.published_at = utcnow()
        await self.commit(card)
        self.log_write("published", "ReportCard", card.id, card.school_id)

        student = await self.db.get(Student, card.student_id)
        notifications = NotificationService(self.db, self.identity)
        await notifications.notify(
            await notifications.guardians_of_student(card.student_id),
            "Report card published",
            f"The report card for {student.full_name} has been published.",
            category=NotificationType.RESULT,
            metadata={"report_card_id": card.id, "student_id": card.student_id, "term_id": card.term_id},
            school_id=card.school_id,
            action_url=f"/report-cards/{card.id}"
        )
        return card

    async def archive(self, card_id: int) -> ReportCard:
        card = await self.get_report_card(card_id)
        if card.status != ReportCardStatus.PUBLISHED.value:
            raise BusinessRuleError("Only published report cards can be archived")
        card.status = ReportCardStatus.ARCHIVED.value
        await self.commit(card)
        self.log_write("archived", "ReportCard", card.id, card.school_id)
        return card

