from typing import Dict, Iterable, List, Optional

from sqlalchemy import delete, insert, or_, select

from school_api.core.errors import BusinessRuleError, ConflictError, NotFoundError
from school_api.core.pagination import Pagination
from school_api.core.tenancy import ResourceKind
from school_api.models import (
    Assignment,
    Attendance,
    Class,
    ExamQuestion,
    ExamSession,
    Lesson,
    Room,
    Subject,
    TimetableSlot,
    subject_teachers
)
from school_api.schemas.academic import (
    LessonCreateRequest,
    LessonUpdateRequest,
    RoomCreateRequest,
    RoomUpdateRequest,
    SubjectCreateRequest,
    SubjectUpdateRequest
)
from school_api.schemas.enums import UserRole
from school_api.services.base_service import BaseService


class SubjectService(BaseService):

    async def teacher_ids_for(self, subject_ids: Iterable[int]) -> Dict[int, List[int]]:
        subject_ids = list(subject_ids)
        mapping: Dict[int, List[int]] = {subject_id: [] for subject_id in subject_ids}
        if not subject_ids:
            return mapping
        rows = await self.db.execute(
            select(subject_teachers.c.subject_id, subject_teachers.c.teacher_id)
            .where(subject_teachers.c.subject_id.in_(subject_ids))
            .order_by(subject_teachers.c.teacher_id)
        )
        for subject_id, teacher_id in rows.all():
            mapping[subject_id].append(teacher_id)
        return mapping

    async def is_assigned(self, subject_id: int, teacher_id: int) -> bool:
        row = await self.db.execute(
            select(subject_teachers.c.subject_id).where(
                subject_teachers.c.subject_id == subject_id,
                subject_teachers.c.teacher_id == teacher_id
            )
        )
        return row.first() is not None

    async def create_subject(self, data: SubjectCreateRequest) -> Subject:
        school_id = await self.target_school(data.school_id)
        await self.ensure_unique(
            Subject,
            [Subject.school_id == school_id, Subject.code == data.code],
            f"Subject with code {data.code} already exists in this school"
        )
        for teacher_id in data.teacher_ids:
            await self.ensure_member(teacher_id, school_id, [UserRole.TEACHER], "Teacher")

        async with self.transaction():
            subject = Subject(school_id=school_id, name=data.name, code=data.code, description=data.description)
            self.db.add(subject)
            await self.db.flush()
            if data.teacher_ids:
                await self.db.execute(insert(subject_teachers), [
                    {"subject_id": subject.id, "teacher_id": teacher_id}
                    for teacher_id in sorted(set(data.teacher_ids))
                ])

        await self.db.refresh(subject)
        self.log_write("created", "Subject", subject.id, school_id)
        return subject

    async def list_subjects(self, pagination: Pagination, search: Optional[str] = None, school_id: Optional[int] = None):
        stmt = select(Subject)
        if search:
            term = self.like(search)
            stmt = stmt.where(or_(Subject.name.ilike(term), Subject.code.ilike(term)))
        return await self.list_page(
            stmt, Subject, pagination, ResourceKind.SCHOOL, school_id, order_by=[Subject.name]
        )

    async def get_subject(self, subject_id: int) -> Subject:
        return await self.get_visible(Subject, subject_id, ResourceKind.SCHOOL, "Subject")

    async def update_subject(self, subject_id: int, data: SubjectUpdateRequest) -> Subject:
        subject = await self.get_subject(subject_id)
        updates = data.model_dump(exclude_unset=True)
        if updates.get("code"):
            await self.ensure_unique(
                Subject,
                [Subject.school_id == subject.school_id, Subject.code == updates["code"]],
                f"Subject with code {updates['code']} already exists in this school",
                exclude_id=subject.id
            )
        self.apply_updates(subject, updates)
        await self.commit(subject)
        self.log_write("updated", "Subject", subject.id, subject.school_id)
        return subject

    async def delete_subject(self, subject_id: int) -> None:
        subject = await self.get_subject(subject_id)
        counts = {
            "lessons": await self.count(Lesson, Lesson.subject_id == subject.id),
            "assignments": await self.count(Assignment, Assignment.subject_id == subject.id),
            "examQuestions": await self.count(ExamQuestion, ExamQuestion.subject_id == subject.id),
        }
        self.ensure_no_dependents(counts, "Cannot delete subject with existing dependencies")

        async with self.transaction():
            await self.db.execute(delete(subject_teachers).where(subject_teachers.c.subject_id == subject.id))
            await self.db.delete(subject)
        self.log_write("deleted", "Subject", subject_id, subject.school_id)

    async def assign_teacher(self, subject_id: int, teacher_id: int) -> Subject:
        subject = await self.get_subject(subject_id)
        await self.ensure_member(teacher_id, subject.school_id, [UserRole.TEACHER], "Teacher")
        if await self.is_assigned(subject.id, teacher_id):
            raise ConflictError("Teacher is already assigned to this subject")

        async with self.transaction():
            await self.db.execute(insert(subject_teachers).values(subject_id=subject.id, teacher_id=teacher_id))
        self.log_write(f"assigned teacher {teacher_id}", "Subject", subject.id, subject.school_id)
        return subject

    async def remove_teacher(self, subject_id: int, teacher_id: int) -> Subject:
        subject = await self.get_subject(subject_id)
        if not await self.is_assigned(subject.id, teacher_id):
            raise NotFoundError("Teacher is not assigned to this subject")

        async with self.transaction():
            await self.db.execute(
                delete(subject_teachers).where(
                    subject_teachers.c.subject_id == subject.id,
                    subject_teachers.c.teacher_id == teacher_id
                )
            )
        self.log_write(f"removed teacher {teacher_id}", "Subject", subject.id, subject.school_id)
        return subject


class LessonService(BaseService):

    async def _validate_links(self, school_id: int, subject_id: int, class_id: int, teacher_id: int) -> None:
        await self.ensure_in_tenant(Subject, subject_id, school_id, "Subject")
        await self.ensure_in_tenant(Class, class_id, school_id, "Class")
        await self.ensure_member(teacher_id, school_id, [UserRole.TEACHER], "Teacher")
        if not await SubjectService(self.db, self.identity).is_assigned(subject_id, teacher_id):
            raise BusinessRuleError("Teacher is not assigned to teach this subject")

    async def create_lesson(self, data: LessonCreateRequest) -> Lesson:
        school_id = await self.target_school(data.school_id)
        await self._validate_links(school_id, data.subject_id, data.class_id, data.teacher_id)

        lesson = Lesson(
            school_id=school_id,
            name=data.name,
            subject_id=data.subject_id,
            class_id=data.class_id,
            teacher_id=data.teacher_id
        )
        self.db.add(lesson)
        await self.commit(lesson)
        self.log_write("created", "Lesson", lesson.id, school_id)
        return lesson

    async def list_lessons(
        self,
        pagination: Pagination,
        class_id: Optional[int] = None,
        subject_id: Optional[int] = None,
        teacher_id: Optional[int] = None,
        school_id: Optional[int] = None
    ):
        stmt = select(Lesson)
        if class_id is not None:
            stmt = stmt.where(Lesson.class_id == class_id)
        if subject_id is not None:
            stmt = stmt.where(Lesson.subject_id == subject_id)
        if teacher_id is not None:
            stmt = stmt.where(Lesson.teacher_id == teacher_id)
        return await self.list_page(stmt, Lesson, pagination, ResourceKind.CLASS, school_id)

    async def get_lesson(self, lesson_id: int) -> Lesson:
        return await self.get_visible(Lesson, lesson_id, ResourceKind.CLASS, "Lesson")

    async def update_lesson(self, lesson_id: int, data: LessonUpdateRequest) -> Lesson:
        lesson = await self.get_lesson(lesson_id)
        updates = data.model_dump(exclude_unset=True)
        link_fields = ("subject_id", "class_id", "teacher_id")
        if any(updates.get(field) is not None for field in link_fields):
            await self._validate_links(
                lesson.school_id,
                updates.get("subject_id") or lesson.subject_id,
                updates.get("class_id") or lesson.class_id,
                updates.get("teacher_id") or lesson.teacher_id
            )
        self.apply_updates(lesson, {k: v for k, v in updates.items() if v is not None})
        await self.commit(lesson)
        self.log_write("updated", "Lesson", lesson.id, lesson.school_id)
        return lesson

    async def delete_lesson(self, lesson_id: int) -> None:
        lesson = await self.get_lesson(lesson_id)
        counts = {
            "timetableSlots": await self.count(TimetableSlot, TimetableSlot.lesson_id == lesson.id),
            "attendance": await self.count(Attendance, Attendance.lesson_id == lesson.id),
        }
        self.ensure_no_dependents(counts, "Cannot delete lesson with timetable slots or attendance")
        await self.delete(lesson)
        self.log_write("deleted", "Lesson", lesson_id, lesson.school_id)


class RoomService(BaseService):

    async def create_room(self, data: RoomCreateRequest) -> Room:
        school_id = await self.target_school(data.school_id)
        await self.ensure_unique(
            Room,
            [Room.school_id == school_id, Room.code == data.code],
            f"Room with code {data.code} already exists in this school"
        )
        room = Room(
            school_id=school_id,
            name=data.name,
            code=data.code,
            capacity=data.capacity,
            room_type=data.room_type
        )
        self.db.add(room)
        await self.commit(room)
        self.log_write("created", "Room", room.id, school_id)
        return room

    async def list_rooms(
        self,
        pagination: Pagination,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
        min_capacity: Optional[int] = None,
        school_id: Optional[int] = None
    ):
        stmt = select(Room)
        if search:
            term = self.like(search)
            stmt = stmt.where(or_(Room.name.ilike(term), Room.code.ilike(term)))
        if is_active is not None:
            stmt = stmt.where(Room.is_active.is_(is_active))
        if min_capacity is not None:
            stmt = stmt.where(Room.capacity >= min_capacity)
        return await self.list_page(stmt, Room, pagination, ResourceKind.SCHOOL, school_id, order_by=[Room.code])

    async def get_room(self, room_id: int) -> Room:
        return await self.get_visible(Room, room_id, ResourceKind.SCHOOL, "Room")

    async def update_room(self, room_id: int, data: RoomUpdateRequest) -> Room:
        room = await self.get_room(room_id)
        updates = data.model_dump(exclude_unset=True)
        if updates.get("code"):
            await self.ensure_unique(
                Room,
                [Room.school_id == room.school_id, Room.code == updates["code"]],
                f"Room with code {updates['code']} already exists in this school",
                exclude_id=room.id
            )
        self.apply_updates(room, updates)
        await self.commit(room)
        self.log_write("updated", "Room", room.id, room.school_id)
        return room

    async def delete_room(self, room_id: int) -> None:
        room = await self.get_room(room_id)
        counts = {
            "examSessions": await self.count(ExamSession, ExamSession.room_id == room.id),
            "timetableSlots": await self.count(TimetableSlot, TimetableSlot.room_id == room.id),
        }
        self.ensure_no_dependents(counts, "Cannot delete room with scheduled sessions")
        await self.delete(room)
        self.log_write("deleted", "Room", room_id, room.school_id)
