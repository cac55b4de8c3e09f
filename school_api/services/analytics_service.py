"""
Read-only aggregations for the analytics and dashboard endpoints.

``compose`` runs independent branches concurrently, each on its own session
from the application's ``Database`` handle, and merges their results by
name. Branches are plain coroutines ``branch(session) -> value``. A branch
that raises fails the whole composition.
"""
import asyncio
from datetime import date, datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy import and_, distinct, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_api.core.database import Database
from school_api.core.logging import log_function_call, logger
from school_api.core.tenancy import ResourceKind
from school_api.models import (
    Assignment,
    Attendance,
    Class,
    Event,
    EventRSVP,
    ExamResult,
    Guardianship,
    Notification,
    Student,
    Subject,
    Submission,
    User,
    utcnow
)
from school_api.schemas.enums import AssignmentType, RSVPResponse, UserRole
from school_api.services.base_service import BaseService
from school_api.services.grading import classify_risk, format_rate, grade_for

Branch = Callable[[AsyncSession], Awaitable[Any]]

DEFAULT_WINDOW_DAYS = 30
RESULTS_WINDOW_DAYS = 90
EVENTS_WINDOW_DAYS = 90
TOP_PERFORMERS = 5
TOP_PERFORMER_MIN_RESULTS = 3
STRUGGLING_LIMIT = 10


@log_function_call(logger)
async def compose(database: Database, branches: Dict[str, Branch]) -> Dict[str, Any]:
    """Run every branch concurrently and return ``{name: result}``"""

    async def run(name: str, branch: Branch):
        async with database.session() as session:
            return name, await branch(session)

    results = await asyncio.gather(*(run(name, branch) for name, branch in branches.items()))
    return dict(results)


def _rate_value(rate: str) -> float:
    return float(rate)


def _round(value: Optional[float]) -> float:
    return round(float(value), 2) if value is not None else 0.0


# Shared branch builders

def attendance_branch(student_ids, since: Optional[date] = None, until: Optional[date] = None) -> Branch:
    async def branch(session: AsyncSession) -> Dict[str, Any]:
        stmt = select(Attendance.present, func.count()).where(Attendance.student_id.in_(student_ids))
        if since is not None:
            stmt = stmt.where(Attendance.date >= since)
        if until is not None:
            stmt = stmt.where(Attendance.date <= until)
        rows = await session.execute(stmt.group_by(Attendance.present))
        counts = {bool(present): total for present, total in rows.all()}
        present = counts.get(True, 0)
        absent = counts.get(False, 0)
        return {
            "total_records": present + absent,
            "present_count": present,
            "absent_count": absent,
            "attendance_rate": format_rate(present, present + absent)
        }
    return branch


def _window(start: Optional[date], end: Optional[date], default_days: Optional[int]):
    """An explicit range wins; otherwise the last ``default_days`` days, or everything when None"""
    if default_days is None:
        return start, end
    if start is None:
        start = (end or utcnow().date()) - timedelta(days=default_days)
    return start, end


def _as_datetime(day: Optional[date], end_of_day: bool = False) -> Optional[datetime]:
    if day is None:
        return None
    return datetime.combine(day, datetime.max.time() if end_of_day else datetime.min.time())


class AnalyticsService(BaseService):
    """
    Access checks run on the request session through the tenant filter;
    the aggregations themselves fan out over fresh sessions.
    """

    def __init__(self, db: AsyncSession, identity, database: Database):
        super().__init__(db, identity)
        self.database = database

    async def _school(self, school_id: Optional[int]) -> int:
        return await self.target_school(school_id)

    # School overview

    async def school_overview(self, school_id: Optional[int] = None, days: int = DEFAULT_WINDOW_DAYS) -> Dict[str, Any]:
        school_id = await self._school(school_id)
        now = utcnow()
        since = now.date() - timedelta(days=days)
        school_students = select(Student.id).where(Student.school_id == school_id)

        async def overview(session: AsyncSession) -> Dict[str, int]:
            async def count(model, *conditions) -> int:
                return (await session.execute(select(func.count()).select_from(model).where(*conditions))).scalar_one()

            parents = select(func.count(distinct(Guardianship.parent_id))).where(
                Guardianship.student_id.in_(school_students)
            )
            return {
                "total_students": await count(Student, Student.school_id == school_id),
                "total_teachers": await count(User, User.school_id == school_id, User.role == UserRole.TEACHER.value),
                "total_parents": (await session.execute(parents)).scalar_one(),
                "total_classes": await count(Class, Class.school_id == school_id),
                "active_assignments": await count(Assignment, Assignment.school_id == school_id, Assignment.due_date >= now),
                "recent_events": await count(
                    Event, Event.school_id == school_id,
                    Event.start_time >= now - timedelta(days=days), Event.start_time <= now
                ),
            }

        async def academic(session: AsyncSession) -> Dict[str, Any]:
            rows = await session.execute(
                select(ExamResult.grade, func.count())
                .where(
                    ExamResult.school_id == school_id,
                    ExamResult.grade.is_not(None),
                    ExamResult.uploaded_at >= now - timedelta(days=RESULTS_WINDOW_DAYS)
                )
                .group_by(ExamResult.grade)
                .order_by(ExamResult.grade)
            )
            return {"grade_distribution": [{"grade": grade, "count": total} for grade, total in rows.all()]}

        analytics = await compose(self.database, {
            "overview": overview,
            "attendance": attendance_branch(school_students, since),
            "academic": academic,
        })
        logger.info("School analytics retrieved", extra={"user_id": self.actor_id, "school_id": school_id})
        return analytics

    # Student

    async def student_analytics(
        self,
        student_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None
    ) -> Dict[str, Any]:
        student = await self.get_visible(Student, student_id, ResourceKind.STUDENT, "Student")
        since, until = _window(start, end, None)
        att_since, att_until = _window(start, end, DEFAULT_WINDOW_DAYS)
        created_from, created_to = _as_datetime(since), _as_datetime(until, end_of_day=True)

        def in_window(column):
            conditions = []
            if created_from is not None:
                conditions.append(column >= created_from)
            if created_to is not None:
                conditions.append(column <= created_to)
            return conditions

        async def assignments(session: AsyncSession) -> Dict[str, Any]:
            audience = or_(
                Assignment.class_id == student.class_id,
                and_(
                    Assignment.assignment_type == AssignmentType.CLASS_WIDE.value,
                    Assignment.school_id == student.school_id
                )
            )
            total = (await session.execute(
                select(func.count()).select_from(Assignment).where(audience, *in_window(Assignment.created_at))
            )).scalar_one()
            submitted = (await session.execute(
                select(func.count()).select_from(Submission)
                .join(Assignment, Assignment.id == Submission.assignment_id)
                .where(Submission.student_id == student.id, *in_window(Assignment.created_at))
            )).scalar_one()
            return {
                "total_assignments": total,
                "submitted_assignments": submitted,
                "submission_rate": format_rate(submitted, total)
            }

        async def results(session: AsyncSession) -> Dict[str, Any]:
            conditions = [ExamResult.student_id == student.id, *in_window(ExamResult.uploaded_at)]
            avg = (await session.execute(select(func.avg(ExamResult.percentage)).where(*conditions))).scalar_one()
            recent = (await session.execute(
                select(ExamResult).where(*conditions).order_by(ExamResult.uploaded_at.desc()).limit(10)
            )).scalars().all()
            return {
                "average_score": _round(avg),
                "recent_results": [
                    {
                        "id": result.id,
                        "exam_id": result.exam_id,
                        "assignment_id": result.assignment_id,
                        "subject_id": result.subject_id,
                        "score": result.score,
                        "max_score": result.max_score,
                        "percentage": result.percentage,
                        "grade": result.grade,
                        "uploaded_at": result.uploaded_at
                    }
                    for result in recent
                ]
            }

        async def subjects(session: AsyncSession) -> List[Dict[str, Any]]:
            rows = await session.execute(
                select(
                    Subject.id,
                    Subject.name,
                    func.count(ExamResult.id),
                    func.avg(ExamResult.percentage),
                    func.max(ExamResult.percentage),
                    func.min(ExamResult.percentage)
                )
                .join(Subject, Subject.id == ExamResult.subject_id)
                .where(ExamResult.student_id == student.id, *in_window(ExamResult.uploaded_at))
                .group_by(Subject.id, Subject.name)
                .order_by(func.avg(ExamResult.percentage).desc())
            )
            return [
                {
                    "subject_id": subject_id,
                    "subject_name": name,
                    "total_results": total,
                    "average_percentage": _round(avg),
                    "best_score": _round(best),
                    "lowest_score": _round(lowest),
                    "grade": grade_for(_round(avg))
                }
                for subject_id, name, total, avg, best, lowest in rows.all()
            ]

        parts = await compose(self.database, {
            "assignments": assignments,
            "results": results,
            "subjects": subjects,
            "attendance": attendance_branch([student.id], att_since, att_until),
        })

        average_score = parts["results"]["average_score"]
        attendance_rate = parts["attendance"]["attendance_rate"]
        logger.info(
            "Student analytics retrieved",
            extra={"user_id": self.actor_id, "school_id": student.school_id}
        )
        return {
            "student": {
                "id": student.id,
                "name": student.name,
                "surname": student.surname,
                "registration_number": student.registration_number
            },
            "academic": {
                **parts["assignments"],
                "average_score": average_score,
                "recent_results": parts["results"]["recent_results"],
                "subject_performance": parts["subjects"]
            },
            "attendance": parts["attendance"],
            "risk_level": classify_risk(average_score, _rate_value(attendance_rate))
        }

    # Class

    async def class_analytics(
        self,
        class_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None
    ) -> Dict[str, Any]:
        klass = await self.get_visible(Class, class_id, ResourceKind.CLASS, "Class")
        student_ids = list((await self.db.execute(
            select(Student.id).where(Student.class_id == klass.id, Student.is_active.is_(True))
        )).scalars().all())
        since, until = _window(start, end, DEFAULT_WINDOW_DAYS)
        window_from, window_to = _as_datetime(since), _as_datetime(until, end_of_day=True)

        def results_in_window():
            conditions = [ExamResult.student_id.in_(student_ids), ExamResult.uploaded_at >= window_from]
            if window_to is not None:
                conditions.append(ExamResult.uploaded_at <= window_to)
            return conditions

        async def academic(session: AsyncSession) -> Dict[str, Any]:
            row = (await session.execute(
                select(
                    func.avg(ExamResult.percentage),
                    func.max(ExamResult.percentage),
                    func.min(ExamResult.percentage),
                    func.count(ExamResult.id)
                ).where(*results_in_window())
            )).one()
            return {
                "class_average": _round(row[0]),
                "highest_score": _round(row[1]),
                "lowest_score": _round(row[2]),
                "total_results": row[3]
            }

        async def assignments(session: AsyncSession) -> Dict[str, Any]:
            conditions = [Assignment.class_id == klass.id, Assignment.created_at >= window_from]
            if window_to is not None:
                conditions.append(Assignment.created_at <= window_to)
            total = (await session.execute(
                select(func.count()).select_from(Assignment).where(*conditions)
            )).scalar_one()
            submissions = (await session.execute(
                select(func.count()).select_from(Submission)
                .join(Assignment, Assignment.id == Submission.assignment_id)
                .where(Submission.student_id.in_(student_ids), *conditions)
            )).scalar_one()
            return {
                "total_assignments": total,
                "total_submissions": submissions,
                "submission_rate": format_rate(submissions, total * len(student_ids))
            }

        async def top_performers(session: AsyncSession) -> List[Dict[str, Any]]:
            avg = func.avg(ExamResult.percentage)
            rows = await session.execute(
                select(Student.id, Student.name, Student.surname, avg, func.count(ExamResult.id))
                .join(ExamResult, ExamResult.student_id == Student.id)
                .where(*results_in_window())
                .group_by(Student.id, Student.name, Student.surname)
                .having(func.count(ExamResult.id) >= TOP_PERFORMER_MIN_RESULTS)
                .order_by(avg.desc())
                .limit(TOP_PERFORMERS)
            )
            return [
                {"id": sid, "name": name, "surname": surname, "average_score": _round(score), "result_count": total}
                for sid, name, surname, score, total in rows.all()
            ]

        async def struggling(session: AsyncSession) -> List[Dict[str, Any]]:
            students = (await session.execute(
                select(Student.id, Student.name, Student.surname).where(Student.id.in_(student_ids))
            )).all()
            averages = dict((await session.execute(
                select(ExamResult.student_id, func.avg(ExamResult.percentage))
                .where(*results_in_window())
                .group_by(ExamResult.student_id)
            )).all())

            att_conditions = [Attendance.student_id.in_(student_ids), Attendance.date >= since]
            if until is not None:
                att_conditions.append(Attendance.date <= until)
            marks: Dict[int, List[int]] = {}
            for sid, present, total in (await session.execute(
                select(Attendance.student_id, Attendance.present, func.count())
                .where(*att_conditions)
                .group_by(Attendance.student_id, Attendance.present)
            )).all():
                marks.setdefault(sid, [0, 0])[0 if present else 1] += total

            flagged = []
            for sid, name, surname in students:
                avg_score = _round(averages.get(sid))
                present, absent = marks.get(sid, (0, 0))
                rate = format_rate(present, present + absent)
                # No attendance taken yet does not flag a student on its own
                effective = _rate_value(rate) if present + absent else 100.0
                if avg_score < 60 or effective < 80:
                    flagged.append({
                        "id": sid,
                        "name": name,
                        "surname": surname,
                        "average_score": avg_score,
                        "attendance_rate": rate,
                        "risk_level": classify_risk(avg_score, _rate_value(rate))
                    })
            flagged.sort(key=lambda item: (item["average_score"], _rate_value(item["attendance_rate"])))
            return flagged[:STRUGGLING_LIMIT]

        parts = await compose(self.database, {
            "attendance": attendance_branch(student_ids, since, until),
            "academic": academic,
            "assignments": assignments,
            "top_performers": top_performers,
            "struggling_students": struggling,
        })
        logger.info(
            f"Class analytics retrieved for {len(student_ids)} students",
            extra={"user_id": self.actor_id, "school_id": klass.school_id}
        )
        return {
            "class": {"id": klass.id, "name": klass.name, "grade_id": klass.grade_id, "total_students": len(student_ids)},
            "attendance": parts["attendance"],
            "academic": parts["academic"],
            "assignments": parts["assignments"],
            "insights": {
                "top_performers": parts["top_performers"],
                "struggling_students": parts["struggling_students"]
            }
        }

    # Parent engagement

    async def parent_engagement(self, school_id: Optional[int] = None) -> Dict[str, Any]:
        school_id = await self._school(school_id)
        now = utcnow()
        school_parents = select(Guardianship.parent_id).join(
            Student, Student.id == Guardianship.student_id
        ).where(Student.school_id == school_id)

        async def overview(session: AsyncSession) -> Dict[str, Any]:
            total = (await session.execute(
                select(func.count(distinct(User.id))).where(User.id.in_(school_parents))
            )).scalar_one()
            active = (await session.execute(
                select(func.count(distinct(User.id))).where(
                    User.id.in_(school_parents),
                    User.last_login >= now - timedelta(days=DEFAULT_WINDOW_DAYS)
                )
            )).scalar_one()
            engaged = (await session.execute(
                select(func.count(distinct(Notification.user_id))).where(
                    Notification.user_id.in_(school_parents),
                    Notification.is_read.is_(True)
                )
            )).scalar_one()
            return {
                "total_parents": total,
                "active_parents": active,
                "parents_reading_notifications": engaged,
                "engagement_rate": format_rate(engaged, total)
            }

        async def events(session: AsyncSession) -> Dict[str, Any]:
            recent = select(Event.id).where(
                Event.school_id == school_id,
                Event.rsvp_required.is_(True),
                Event.start_time >= now - timedelta(days=EVENTS_WINDOW_DAYS)
            )
            total_events = (await session.execute(
                select(func.count()).select_from(recent.subquery())
            )).scalar_one()
            rows = await session.execute(
                select(EventRSVP.response, func.count())
                .where(EventRSVP.event_id.in_(recent), EventRSVP.user_id.in_(school_parents))
                .group_by(EventRSVP.response)
            )
            by_response = {response: total for response, total in rows.all()}
            return {
                "total_events": total_events,
                "total_rsvps": sum(by_response.values()),
                "attending_count": by_response.get(RSVPResponse.ATTENDING.value, 0)
            }

        async def app_usage(session: AsyncSession) -> Dict[str, Any]:
            rows = await session.execute(
                select(Notification.is_read, func.count())
                .where(
                    Notification.user_id.in_(school_parents),
                    Notification.created_at >= now - timedelta(days=DEFAULT_WINDOW_DAYS)
                )
                .group_by(Notification.is_read)
            )
            counts = {bool(is_read): total for is_read, total in rows.all()}
            read = counts.get(True, 0)
            total = read + counts.get(False, 0)
            return {"total_notifications": total, "read_notifications": read, "read_rate": format_rate(read, total)}

        analytics = await compose(self.database, {
            "overview": overview,
            "events": events,
            "app_usage": app_usage,
        })
        logger.info("Parent engagement analytics retrieved", extra={"user_id": self.actor_id, "school_id": school_id})
        return analytics
