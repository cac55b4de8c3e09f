from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_api.core.database import get_db
from school_api.core.pagination import Pagination, pagination_params
from school_api.core.permissions import require_any_role, require_school_staff
from school_api.core.tenancy import Identity
from school_api.models import Subject
from school_api.schemas.academic import (
    AssignTeacherRequest,
    ClassCreateRequest,
    ClassResponse,
    ClassUpdateRequest,
    GradeCreateRequest,
    GradeResponse,
    GradeUpdateRequest,
    LessonCreateRequest,
    LessonResponse,
    LessonUpdateRequest,
    RoomCreateRequest,
    RoomResponse,
    RoomUpdateRequest,
    SubjectCreateRequest,
    SubjectResponse,
    SubjectUpdateRequest
)
from school_api.services.class_service import ClassService, GradeService
from school_api.services.subject_service import LessonService, RoomService, SubjectService

grades_router = APIRouter(tags=["Grades"])
classes_router = APIRouter(tags=["Classes"])
subjects_router = APIRouter(tags=["Subjects"])
lessons_router = APIRouter(tags=["Lessons"])
rooms_router = APIRouter(tags=["Rooms"])


# Grades

@grades_router.post("", status_code=status.HTTP_201_CREATED)
async def create_grade(
    data: GradeCreateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    grade = await GradeService(db, identity).create_grade(data)
    return {"message": "Grade created", "grade": GradeResponse.model_validate(grade)}


@grades_router.get("")
async def list_grades(
    school_id: Optional[int] = Query(None),
    pagination: Pagination = Depends(pagination_params),
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    grades, meta = await GradeService(db, identity).list_grades(pagination, school_id)
    return {
        "message": "Grades retrieved",
        "grades": [GradeResponse.model_validate(grade) for grade in grades],
        "pagination": meta
    }


@grades_router.get("/{grade_id}")
async def get_grade(
    grade_id: int,
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    grade = await GradeService(db, identity).get_grade(grade_id)
    return {"message": "Grade retrieved", "grade": GradeResponse.model_validate(grade)}


@grades_router.patch("/{grade_id}")
async def update_grade(
    grade_id: int,
    data: GradeUpdateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    grade = await GradeService(db, identity).update_grade(grade_id, data)
    return {"message": "Grade updated", "grade": GradeResponse.model_validate(grade)}


@grades_router.delete("/{grade_id}")
async def delete_grade(
    grade_id: int,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    await GradeService(db, identity).delete_grade(grade_id)
    return {"message": "Grade deleted"}


# Classes

@classes_router.post("", status_code=status.HTTP_201_CREATED)
async def create_class(
    data: ClassCreateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    new_class = await ClassService(db, identity).create_class(data)
    return {"message": "Class created", "class": ClassResponse.model_validate(new_class)}


@classes_router.get("")
async def list_classes(
    search: Optional[str] = Query(None),
    grade_id: Optional[int] = Query(None),
    supervisor_id: Optional[int] = Query(None),
    school_id: Optional[int] = Query(None),
    pagination: Pagination = Depends(pagination_params),
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    classes, meta = await ClassService(db, identity).list_classes(
        pagination, search, grade_id, supervisor_id, school_id
    )
    return {
        "message": "Classes retrieved",
        "classes": [ClassResponse.model_validate(c) for c in classes],
        "pagination": meta
    }


@classes_router.get("/{class_id}")
async def get_class(
    class_id: int,
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    service = ClassService(db, identity)
    school_class = await service.get_class(class_id)
    return {
        "message": "Class retrieved",
        "class": ClassResponse.model_validate(school_class),
        **await service.class_details(school_class)
    }


@classes_router.patch("/{class_id}")
async def update_class(
    class_id: int,
    data: ClassUpdateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    school_class = await ClassService(db, identity).update_class(class_id, data)
    return {"message": "Class updated", "class": ClassResponse.model_validate(school_class)}


@classes_router.delete("/{class_id}")
async def delete_class(
    class_id: int,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    await ClassService(db, identity).delete_class(class_id)
    return {"message": "Class deleted"}


# Subjects

async def _subject_payload(service: SubjectService, subject: Subject) -> SubjectResponse:
    teacher_ids = (await service.teacher_ids_for([subject.id]))[subject.id]
    return SubjectResponse.model_validate(subject).model_copy(update={"teacher_ids": teacher_ids})


@subjects_router.post("", status_code=status.HTTP_201_CREATED)
async def create_subject(
    data: SubjectCreateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    service = SubjectService(db, identity)
    subject = await service.create_subject(data)
    return {"message": "Subject created", "subject": await _subject_payload(service, subject)}


@subjects_router.get("")
async def list_subjects(
    search: Optional[str] = Query(None),
    school_id: Optional[int] = Query(None),
    pagination: Pagination = Depends(pagination_params),
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    service = SubjectService(db, identity)
    subjects, meta = await service.list_subjects(pagination, search, school_id)
    teachers = await service.teacher_ids_for(subject.id for subject in subjects)
    return {
        "message": "Subjects retrieved",
        "subjects": [
            SubjectResponse.model_validate(subject).model_copy(update={"teacher_ids": teachers[subject.id]})
            for subject in subjects
        ],
        "pagination": meta
    }


@subjects_router.get("/{subject_id}")
async def get_subject(
    subject_id: int,
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    service = SubjectService(db, identity)
    subject = await service.get_subject(subject_id)
    return {"message": "Subject retrieved", "subject": await _subject_payload(service, subject)}


@subjects_router.patch("/{subject_id}")
async def update_subject(
    subject_id: int,
    data: SubjectUpdateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    service = SubjectService(db, identity)
    subject = await service.update_subject(subject_id, data)
    return {"message": "Subject updated", "subject": await _subject_payload(service, subject)}


@subjects_router.delete("/{subject_id}")
async def delete_subject(
    subject_id: int,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    await SubjectService(db, identity).delete_subject(subject_id)
    return {"message": "Subject deleted"}


@subjects_router.post("/{subject_id}/teachers")
async def assign_teacher(
    subject_id: int,
    data: AssignTeacherRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    service = SubjectService(db, identity)
    subject = await service.assign_teacher(subject_id, data.teacher_id)
    return {"message": "Teacher assigned to subject", "subject": await _subject_payload(service, subject)}


@subjects_router.delete("/{subject_id}/teachers/{teacher_id}")
async def remove_teacher(
    subject_id: int,
    teacher_id: int,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    service = SubjectService(db, identity)
    subject = await service.remove_teacher(subject_id, teacher_id)
    return {"message": "Teacher removed from subject", "subject": await _subject_payload(service, subject)}


# Lessons

@lessons_router.post("", status_code=status.HTTP_201_CREATED)
async def create_lesson(
    data: LessonCreateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    lesson = await LessonService(db, identity).create_lesson(data)
    return {"message": "Lesson created", "lesson": LessonResponse.model_validate(lesson)}


@lessons_router.get("")
async def list_lessons(
    class_id: Optional[int] = Query(None),
    subject_id: Optional[int] = Query(None),
    teacher_id: Optional[int] = Query(None),
    school_id: Optional[int] = Query(None),
    pagination: Pagination = Depends(pagination_params),
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    lessons, meta = await LessonService(db, identity).list_lessons(
        pagination, class_id, subject_id, teacher_id, school_id
    )
    return {
        "message": "Lessons retrieved",
        "lessons": [LessonResponse.model_validate(lesson) for lesson in lessons],
        "pagination": meta
    }


@lessons_router.get("/{lesson_id}")
async def get_lesson(
    lesson_id: int,
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    lesson = await LessonService(db, identity).get_lesson(lesson_id)
    return {"message": "Lesson retrieved", "lesson": LessonResponse.model_validate(lesson)}


@lessons_router.patch("/{lesson_id}")
async def update_lesson(
    lesson_id: int,
    data: LessonUpdateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    lesson = await LessonService(db, identity).update_lesson(lesson_id, data)
    return {"message": "Lesson updated", "lesson": LessonResponse.model_validate(lesson)}


@lessons_router.delete("/{lesson_id}")
async def delete_lesson(
    lesson_id: int,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    await LessonService(db, identity).delete_lesson(lesson_id)
    return {"message": "Lesson deleted"}


# Rooms

@rooms_router.post("", status_code=status.HTTP_201_CREATED)
async def create_room(
    data: RoomCreateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    room = await RoomService(db, identity).create_room(data)
    return {"message": "Room created", "room": RoomResponse.model_validate(room)}


@rooms_router.get("")
async def list_rooms(
    search: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None),
    min_capacity: Optional[int] = Query(None, ge=1),
    school_id: Optional[int] = Query(None),
    pagination: Pagination = Depends(pagination_params),
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    rooms, meta = await RoomService(db, identity).list_rooms(pagination, search, is_active, min_capacity, school_id)
    return {
        "message": "Rooms retrieved",
        "rooms": [RoomResponse.model_validate(room) for room in rooms],
        "pagination": meta
    }


@rooms_router.get("/{room_id}")
async def get_room(
    room_id: int,
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    room = await RoomService(db, identity).get_room(room_id)
    return {"message": "Room retrieved", "room": RoomResponse.model_validate(room)}


@rooms_router.patch("/{room_id}")
async def update_room(
    room_id: int,
    data: RoomUpdateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    room = await RoomService(db, identity).update_room(room_id, data)
    return {"message": "Room updated", "room": RoomResponse.model_validate(room)}


@rooms_router.delete("/{room_id}")
async def delete_room(
    room_id: int,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    await RoomService(db, identity).delete_room(room_id)
    return {"message": "Room deleted"}
