from datetime import timedelta
from typing import Any, Dict, List

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_api.core.database import Database
from school_api.core.errors import PermissionDenied
from school_api.core.logging import log_function_call, logger
from school_api.core.tenancy import ResourceKind
from school_api.models import (
    Assignment,
    Class,
    Event,
    ExamResult,
    Notification,
    ReportCard,
    School,
    Student,
    Submission,
    User,
    subject_teachers,
    utcnow
)
from school_api.schemas.enums import ReportCardStatus, UserRole, VerificationStatus
from school_api.services.analytics_service import DEFAULT_WINDOW_DAYS, attendance_branch, compose
from school_api.services.base_service import BaseService

RECENT_ITEMS = 5


def _event(event: Event) -> Dict[str, Any]:
    return {
        "id": event.id,
        "title": event.title,
        "start_time": event.start_time,
        "end_time": event.end_time,
        "location": event.location,
        "class_id": event.class_id
    }


def _assignment(assignment: Assignment) -> Dict[str, Any]:
    return {
        "id": assignment.id,
        "title": assignment.title,
        "class_id": assignment.class_id,
        "subject_id": assignment.subject_id,
        "due_date": assignment.due_date
    }


class DashboardService(BaseService):
    """One dashboard per role, each assembled from concurrent read branches"""

    def __init__(self, db: AsyncSession, identity, database: Database):
        super().__init__(db, identity)
        self.database = database

    @log_function_call(logger)
    async def for_caller(self) -> Dict[str, Any]:
        role = self.role
        if role == UserRole.SUPER_ADMIN:
            dashboard = await self.super_admin()
        elif role in (UserRole.SCHOOL_ADMIN, UserRole.PRINCIPAL):
            dashboard = await self.school_staff()
        elif role == UserRole.TEACHER:
            dashboard = await self.teacher()
        elif role == UserRole.PARENT:
            dashboard = await self.parent()
        else:
            raise PermissionDenied("Operation not permitted")
        logger.info(f"Dashboard built for role {role.value}", extra={"user_id": self.actor_id})
        return {"role": role.value, **dashboard}

    def _upcoming_events(self) -> Any:
        # Built from the request identity, run on a branch session
        stmt = self.scoped(select(Event).where(Event.start_time >= utcnow()), Event, ResourceKind.SCHOOL)

        async def branch(session: AsyncSession) -> List[Dict[str, Any]]:
            events = (await session.execute(stmt.order_by(Event.start_time).limit(RECENT_ITEMS))).scalars().all()
            return [_event(event) for event in events]
        return branch

    async def super_admin(self) -> Dict[str, Any]:
        async def schools(session: AsyncSession) -> Dict[str, Any]:
            rows = await session.execute(
                select(School.verification_status, func.count()).group_by(School.verification_status)
            )
            by_status = {status.value: 0 for status in VerificationStatus}
            by_status.update({status: total for status, total in rows.all()})
            recent = (await session.execute(
                select(School).order_by(School.created_at.desc(), School.id.desc()).limit(RECENT_ITEMS)
            )).scalars().all()
            return {
                "total": sum(by_status.values()),
                "by_status": by_status,
                "recent": [
                    {"id": s.id, "name": s.name, "verification_status": s.verification_status, "created_at": s.created_at}
                    for s in recent
                ]
            }

        async def users(session: AsyncSession) -> Dict[str, Any]:
            rows = await session.execute(select(User.role, func.count()).group_by(User.role))
            by_role = {role: total for role, total in rows.all()}
            return {"total": sum(by_role.values()), "by_role": by_role}

        async def students(session: AsyncSession) -> int:
            return (await session.execute(select(func.count()).select_from(Student))).scalar_one()

        return await compose(self.database, {"schools": schools, "users": users, "students": students})

    async def school_staff(self) -> Dict[str, Any]:
        school_id = self.identity.school_id
        since = utcnow().date() - timedelta(days=DEFAULT_WINDOW_DAYS)

        async def counts(session: AsyncSession) -> Dict[str, int]:
            async def count(model, *conditions) -> int:
                return (await session.execute(select(func.count()).select_from(model).where(*conditions))).scalar_one()

            return {
                "students": await count(Student, Student.school_id == school_id),
                "teachers": await count(User, User.school_id == school_id, User.role == UserRole.TEACHER.value),
                "parents": await count(User, User.school_id == school_id, User.role == UserRole.PARENT.value),
                "classes": await count(Class, Class.school_id == school_id),
            }

        async def pending_approvals(session: AsyncSession) -> int:
            return (await session.execute(
                select(func.count()).select_from(ReportCard).where(
                    ReportCard.school_id == school_id,
                    ReportCard.status == ReportCardStatus.GENERATED.value
                )
            )).scalar_one()

        async def recent_assignments(session: AsyncSession) -> List[Dict[str, Any]]:
            rows = (await session.execute(
                select(Assignment).where(Assignment.school_id == school_id)
                .order_by(Assignment.created_at.desc(), Assignment.id.desc()).limit(RECENT_ITEMS)
            )).scalars().all()
            return [_assignment(a) for a in rows]

        return await compose(self.database, {
            "counts": counts,
            "upcoming_events": self._upcoming_events(),
            "attendance": attendance_branch(select(Student.id).where(Student.school_id == school_id), since),
            "pending_report_card_approvals": pending_approvals,
            "recent_assignments": recent_assignments,
        })

    async def teacher(self) -> Dict[str, Any]:
        teacher_id = self.actor_id
        class_stmt = self.scoped(select(Class), Class, ResourceKind.CLASS)

        async def classes(session: AsyncSession) -> List[Dict[str, Any]]:
            rows = (await session.execute(class_stmt.order_by(Class.name))).scalars().all()
            return [
                {"id": c.id, "name": c.name, "supervised": c.supervisor_id == teacher_id, "capacity": c.capacity}
                for c in rows
            ]

        async def subjects(session: AsyncSession) -> List[int]:
            rows = await session.execute(
                select(subject_teachers.c.subject_id).where(subject_teachers.c.teacher_id == teacher_id)
            )
            return sorted(rows.scalars().all())

        async def recent_assignments(session: AsyncSession) -> List[Dict[str, Any]]:
            rows = (await session.execute(
                select(Assignment).where(Assignment.teacher_id == teacher_id)
                .order_by(Assignment.created_at.desc(), Assignment.id.desc()).limit(RECENT_ITEMS)
            )).scalars().all()
            return [_assignment(a) for a in rows]

        async def pending_submissions(session: AsyncSession) -> int:
            return (await session.execute(
                select(func.count()).select_from(Submission)
                .join(Assignment, Assignment.id == Submission.assignment_id)
                .where(Assignment.teacher_id == teacher_id, Submission.graded_at.is_(None))
            )).scalar_one()

        return await compose(self.database, {
            "classes": classes,
            "subject_ids": subjects,
            "recent_assignments": recent_assignments,
            "pending_submissions": pending_submissions,
            "upcoming_events": self._upcoming_events(),
        })

    async def parent(self) -> Dict[str, Any]:
        children = list((await self.db.execute(
            self.scoped(select(Student), Student, ResourceKind.STUDENT).order_by(Student.name)
        )).scalars().all())
        since = utcnow().date() - timedelta(days=DEFAULT_WINDOW_DAYS)

        branches = {
            f"child_{child.id}": attendance_branch([child.id], since)
            for child in children
        }

        async def unread(session: AsyncSession) -> int:
            return (await session.execute(
                select(func.count()).select_from(Notification).where(
                    Notification.user_id == self.actor_id,
                    Notification.is_read.is_(False)
                )
            )).scalar_one()

        async def recent_results(session: AsyncSession) -> List[Dict[str, Any]]:
            rows = (await session.execute(
                select(ExamResult).where(ExamResult.student_id.in_([child.id for child in children]))
                .order_by(ExamResult.uploaded_at.desc()).limit(RECENT_ITEMS)
            )).scalars().all()
            return [
                {
                    "student_id": r.student_id,
                    "exam_id": r.exam_id,
                    "assignment_id": r.assignment_id,
                    "percentage": r.percentage,
                    "grade": r.grade,
                    "uploaded_at": r.uploaded_at
                }
                for r in rows
            ]

        branches.update({
            "unread_notifications": unread,
            "recent_results": recent_results,
            "upcoming_events": self._upcoming_events(),
        })
        parts = await compose(self.database, branches)

        return {
            "children": [
                {
                    "id": child.id,
                    "name": child.name,
                    "surname": child.surname,
                    "class_id": child.class_id,
                    "attendance": parts.pop(f"child_{child.id}")
                }
                for child in children
            ],
            **parts
        }
