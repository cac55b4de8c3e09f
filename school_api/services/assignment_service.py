from typing import Optional

from sqlalchemy import select

from school_api.core.errors import BusinessRuleError, NotFoundError, ValidationError
from school_api.core.pagination import Pagination
from school_api.core.tenancy import ResourceKind
from school_api.models import Assignment, Class, ExamResult, Student, Subject, Submission, utcnow
from school_api.schemas.assignment import (
    AssignmentCreateRequest,
    AssignmentUpdateRequest,
    SubmissionCreateRequest,
    SubmissionGradeRequest
)
from school_api.schemas.enums import AssignmentStatusFilter, NotificationType, UserRole
from school_api.services.base_service import BaseService
from school_api.services.grading import grade_for, percentage
from school_api.services.notification_service import NotificationService


class AssignmentService(BaseService):
    """Assignments, parent submissions and grading"""

    async def create_assignment(self, data: AssignmentCreateRequest) -> Assignment:
        school_id = await self.target_school(data.school_id)
        await self.ensure_in_tenant(Subject, data.subject_id, school_id, "Subject")
        await self.ensure_in_tenant(Class, data.class_id, school_id, "Class")

        if self.role == UserRole.TEACHER:
            # Teachers set work only for classes they supervise or teach
            await self.get_visible(Class, data.class_id, ResourceKind.CLASS, "Class")
            teacher_id = self.actor_id
        else:
            teacher_id = data.teacher_id
            if teacher_id is not None:
                await self.ensure_member(teacher_id, school_id, [UserRole.TEACHER], "Teacher")

        assignment = Assignment(
            school_id=school_id,
            title=data.title,
            description=data.description,
            instructions=data.instructions,
            start_date=data.start_date,
            due_date=data.due_date,
            max_score=data.max_score,
            assignment_type=data.assignment_type.value,
            subject_id=data.subject_id,
            class_id=data.class_id,
            teacher_id=teacher_id
        )
        self.db.add(assignment)
        await self.commit(assignment)
        self.log_write("created", "Assignment", assignment.id, school_id)

        notifications = NotificationService(self.db, self.identity)
        await notifications.notify(
            await notifications.parents_of_class(assignment.class_id),
            f"New assignment: {assignment.title}",
            f"{assignment.title} is due on {assignment.due_date:%Y-%m-%d %H:%M}.",
            category=NotificationType.ASSIGNMENT,
            metadata={"assignment_id": assignment.id, "class_id": assignment.class_id},
            school_id=school_id,
            action_url=f"/assignments/{assignment.id}"
        )
        return assignment

    async def list_assignments(
        self,
        pagination: Pagination,
        class_id: Optional[int] = None,
        subject_id: Optional[int] = None,
        teacher_id: Optional[int] = None,
        status: Optional[AssignmentStatusFilter] = None,
        school_id: Optional[int] = None
    ):
        stmt = select(Assignment)
        if class_id is not None:
            stmt = stmt.where(Assignment.class_id == class_id)
        if subject_id is not None:
            stmt = stmt.where(Assignment.subject_id == subject_id)
        if teacher_id is not None:
            stmt = stmt.where(Assignment.teacher_id == teacher_id)

        now = utcnow()
        if status == AssignmentStatusFilter.UPCOMING:
            stmt = stmt.where(Assignment.start_date > now)
        elif status == AssignmentStatusFilter.ACTIVE:
            stmt = stmt.where(Assignment.start_date <= now, Assignment.due_date >= now)
        elif status == AssignmentStatusFilter.OVERDUE:
            stmt = stmt.where(Assignment.due_date < now)

        return await self.list_page(
            stmt, Assignment, pagination, ResourceKind.CLASS, school_id,
            order_by=[Assignment.due_date, Assignment.id]
        )

    async def get_assignment(self, assignment_id: int) -> Assignment:
        return await self.get_visible(Assignment, assignment_id, ResourceKind.CLASS, "Assignment")

    async def update_assignment(self, assignment_id: int, data: AssignmentUpdateRequest) -> Assignment:
        assignment = await self.get_assignment(assignment_id)
        updates = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}

        start = updates.get("start_date", assignment.start_date)
        due = updates.get("due_date", assignment.due_date)
        if start >= due:
            raise ValidationError(
                "Invalid assignment dates",
                errors=[{"field": "due_date", "message": "due_date must be after start_date"}]
            )
        if "max_score" in updates:
            graded_above = await self.count(
                Submission,
                Submission.assignment_id == assignment.id,
                Submission.score > updates["max_score"]
            )
            if graded_above:
                raise BusinessRuleError("max_score is below scores already awarded")

        self.apply_updates(assignment, updates)
        await self.commit(assignment)
        self.log_write("updated", "Assignment", assignment.id, assignment.school_id)
        return assignment

    async def delete_assignment(self, assignment_id: int) -> None:
        assignment = await self.get_assignment(assignment_id)
        counts = {"submissions": await self.count(Submission, Submission.assignment_id == assignment.id)}
        self.ensure_no_dependents(counts, "Cannot delete assignment with submissions")
        await self.delete(assignment)
        self.log_write("deleted", "Assignment", assignment_id, assignment.school_id)

    # Submissions

    async def submit(self, assignment_id: int, data: SubmissionCreateRequest) -> Submission:
        """A parent hands in work for one of their children; resubmitting replaces ungraded work"""
        assignment = await self.get_assignment(assignment_id)
        student = await self.get_visible(Student, data.student_id, ResourceKind.STUDENT, "Student")
        if student.class_id != assignment.class_id:
            raise BusinessRuleError("Student is not in the class this assignment was set for")
        if utcnow() < assignment.start_date:
            raise BusinessRuleError("Assignment is not open for submissions yet")

        stmt = select(Submission).where(
            Submission.assignment_id == assignment.id,
            Submission.student_id == student.id
        )
        submission = (await self.db.execute(stmt)).scalar_one_or_none()
        if submission is not None and submission.graded_at is not None:
            raise BusinessRuleError("Submission has already been graded")

        if submission is None:
            submission = Submission(
                school_id=assignment.school_id,
                assignment_id=assignment.id,
                student_id=student.id
            )
            self.db.add(submission)
        submission.content = data.content
        submission.submitted_at = utcnow()
        submission.submitted_by_id = self.actor_id

        await self.commit(submission)
        self.log_write("submitted", "Submission", submission.id, assignment.school_id)
        return submission

    async def list_submissions(self, assignment_id: int, pagination: Pagination):
        assignment = await self.get_assignment(assignment_id)
        stmt = select(Submission).where(Submission.assignment_id == assignment.id)
        return await self.list_page(
            stmt, Submission, pagination, ResourceKind.STUDENT, order_by=[Submission.submitted_at]
        )

    async def grade_submission(
        self,
        assignment_id: int,
        submission_id: int,
        data: SubmissionGradeRequest
    ) -> Submission:
        assignment = await self.get_assignment(assignment_id)
        submission = await self.get_visible(Submission, submission_id, ResourceKind.STUDENT, "Submission")
        if submission.assignment_id != assignment.id:
            raise NotFoundError("Submission not found")
        if data.score > assignment.max_score:
            raise ValidationError(
                "Invalid score",
                errors=[{"field": "score", "message": f"Score cannot exceed max score ({assignment.max_score})"}]
            )

        pct = percentage(data.score, assignment.max_score)
        stmt = select(ExamResult).where(
            ExamResult.assignment_id == assignment.id,
            ExamResult.student_id == submission.student_id
        )
        async with self.transaction():
            submission.score = data.score
            submission.feedback = data.feedback
            submission.graded_at = utcnow()
            submission.graded_by_id = self.actor_id

            # Graded work counts towards the student's results
            result = (await self.db.execute(stmt)).scalar_one_or_none()
            if result is None:
                result = ExamResult(
                    school_id=assignment.school_id,
                    student_id=submission.student_id,
                    assignment_id=assignment.id,
                    subject_id=assignment.subject_id
                )
                self.db.add(result)
            result.score = data.score
            result.max_score = assignment.max_score
            result.percentage = pct
            result.grade = grade_for(pct)
            result.remarks = data.feedback
            result.uploaded_by_id = self.actor_id
            result.uploaded_at = utcnow()

        await self.db.refresh(submission)
        self.log_write("graded", "Submission", submission.id, assignment.school_id)

        notifications = NotificationService(self.db, self.identity)
        await notifications.notify(
            await notifications.guardians_of_student(submission.student_id),
            f"Assignment graded: {assignment.title}",
            f"Score {data.score:g}/{assignment.max_score:g} ({grade_for(pct)}).",
            category=NotificationType.RESULT,
            metadata={"assignment_id": assignment.id, "submission_id": submission.id},
            school_id=assignment.school_id
        )
        return submission
