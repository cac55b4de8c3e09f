from collections import Counter
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import func, select

from school_api.core.errors import BusinessRuleError, NotFoundError
from school_api.core.pagination import Pagination
from school_api.core.tenancy import ResourceKind
from school_api.models import (
    Curriculum,
    CurriculumProgress,
    CurriculumSubject,
    Grade,
    LearningObjective,
    Student,
    Subject,
    utcnow
)
from school_api.schemas.curriculum import (
    CurriculumCreateRequest,
    CurriculumSubjectCreateRequest,
    CurriculumUpdateRequest,
    LearningObjectiveCreateRequest,
    LearningObjectiveResponse,
    ProgressResponse,
    ProgressUpdateRequest
)
from school_api.schemas.enums import ProgressStatus
from school_api.services.base_service import BaseService

FINISHED_STATES = (ProgressStatus.COMPLETED.value, ProgressStatus.MASTERED.value)


def progress_statistics(records: Sequence[CurriculumProgress]) -> Dict[str, Any]:
    """Status counts and the mean of the recorded assessment scores (0 when none)"""
    statuses = Counter(record.status for record in records)
    scores = [record.assessment_score for record in records if record.assessment_score is not None]
    return {
        "total": len(records),
        "not_started": statuses[ProgressStatus.NOT_STARTED.value],
        "in_progress": statuses[ProgressStatus.IN_PROGRESS.value],
        "completed": statuses[ProgressStatus.COMPLETED.value],
        "mastered": statuses[ProgressStatus.MASTERED.value],
        "average_score": round(sum(scores) / len(scores), 2) if scores else 0.0
    }


def _progress(record: CurriculumProgress) -> Dict[str, Any]:
    return ProgressResponse.model_validate(record).model_dump()


class CurriculumService(BaseService):
    """
    Curricula of a school. A curriculum lists subjects per grade, each with
    learning objectives; progress records place a student against one
    objective.
    """

    async def _ensure_version_free(self, school_id: int, name: str, version: str, exclude_id: Optional[int] = None):
        await self.ensure_unique(
            Curriculum,
            [Curriculum.school_id == school_id, Curriculum.name == name, Curriculum.version == version],
            "Curriculum with this name and version already exists",
            exclude_id
        )

    # Curricula

    async def create_curriculum(self, data: CurriculumCreateRequest) -> Curriculum:
        school_id = await self.target_school(data.school_id)
        await self._ensure_version_free(school_id, data.name, data.version)

        curriculum = Curriculum(
            school_id=school_id,
            name=data.name,
            description=data.description,
            version=data.version
        )
        self.db.add(curriculum)
        await self.commit(curriculum)
        self.log_write("created", "Curriculum", curriculum.id, school_id)
        return curriculum

    async def list_curricula(self, pagination: Pagination, is_active: Optional[bool] = None, school_id: Optional[int] = None):
        stmt = select(Curriculum)
        if is_active is not None:
            stmt = stmt.where(Curriculum.is_active.is_(is_active))
        return await self.list_page(
            stmt, Curriculum, pagination, ResourceKind.SCHOOL, school_id,
            order_by=[Curriculum.created_at.desc(), Curriculum.id.desc()]
        )

    async def subject_counts(self, curriculum_ids: Iterable[int]) -> Dict[int, int]:
        ids = list(curriculum_ids)
        if not ids:
            return {}
        rows = await self.db.execute(
            select(CurriculumSubject.curriculum_id, func.count())
            .where(CurriculumSubject.curriculum_id.in_(ids))
            .group_by(CurriculumSubject.curriculum_id)
        )
        return dict(rows.all())

    async def get_curriculum(self, curriculum_id: int) -> Curriculum:
        return await self.get_visible(Curriculum, curriculum_id, ResourceKind.SCHOOL, "Curriculum")

    async def _objectives(self, curriculum_subject_ids: Iterable[int]) -> Dict[int, List[Dict[str, Any]]]:
        """Objectives per curriculum subject, each with how many progress records point at it"""
        ids = list(curriculum_subject_ids)
        if not ids:
            return {}
        rows = await self.db.execute(
            select(LearningObjective, func.count(CurriculumProgress.id))
            .outerjoin(CurriculumProgress, CurriculumProgress.learning_objective_id == LearningObjective.id)
            .where(LearningObjective.curriculum_subject_id.in_(ids))
            .group_by(LearningObjective.id)
            .order_by(LearningObjective.created_at, LearningObjective.id)
        )
        grouped: Dict[int, List[Dict[str, Any]]] = {}
        for objective, progress_count in rows.all():
            grouped.setdefault(objective.curriculum_subject_id, []).append({
                **LearningObjectiveResponse.model_validate(objective).model_dump(),
                "progress_count": progress_count
            })
        return grouped

    async def curriculum_details(self, curriculum: Curriculum) -> List[Dict[str, Any]]:
        rows = (await self.db.execute(
            select(CurriculumSubject, Subject, Grade)
            .join(Subject, Subject.id == CurriculumSubject.subject_id)
            .join(Grade, Grade.id == CurriculumSubject.grade_id)
            .where(CurriculumSubject.curriculum_id == curriculum.id)
            .order_by(Grade.level, Subject.name)
        )).all()
        objectives = await self._objectives(item.id for item, _, _ in rows)
        return [
            {
                "id": item.id,
                "subject": {"id": subject.id, "name": subject.name, "code": subject.code},
                "grade": {"id": grade.id, "name": grade.name, "level": grade.level},
                "hours_per_week": item.hours_per_week,
                "is_core": item.is_core,
                "prerequisite_ids": item.prerequisite_ids or [],
                "learning_objectives": objectives.get(item.id, [])
            }
            for item, subject, grade in rows
        ]

    async def update_curriculum(self, curriculum_id: int, data: CurriculumUpdateRequest) -> Curriculum:
        curriculum = await self.get_curriculum(curriculum_id)
        updates = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        if "name" in updates or "version" in updates:
            await self._ensure_version_free(
                curriculum.school_id,
                updates.get("name", curriculum.name),
                updates.get("version", curriculum.version),
                exclude_id=curriculum.id
            )

        self.apply_updates(curriculum, updates)
        await self.commit(curriculum)
        self.log_write("updated", "Curriculum", curriculum.id, curriculum.school_id)
        return curriculum

    async def delete_curriculum(self, curriculum_id: int) -> None:
        curriculum = await self.get_curriculum(curriculum_id)
        counts = {"subjects": await self.count(CurriculumSubject, CurriculumSubject.curriculum_id == curriculum.id)}
        self.ensure_no_dependents(counts, "Cannot delete curriculum with existing subjects")
        await self.delete(curriculum)
        self.log_write("deleted", "Curriculum", curriculum_id, curriculum.school_id)

    # Subjects and objectives

    async def add_subject(self, data: CurriculumSubjectCreateRequest) -> CurriculumSubject:
        curriculum = await self.get_curriculum(data.curriculum_id)
        school_id = curriculum.school_id
        await self.ensure_in_tenant(Subject, data.subject_id, school_id, "Subject")
        await self.ensure_in_tenant(Grade, data.grade_id, school_id, "Grade")
        prerequisites = sorted(set(data.prerequisite_ids))
        if data.subject_id in prerequisites:
            raise BusinessRuleError("A subject cannot be its own prerequisite")
        for subject_id in prerequisites:
            await self.ensure_in_tenant(Subject, subject_id, school_id, "Prerequisite subject")
        await self.ensure_unique(
            CurriculumSubject,
            [
                CurriculumSubject.curriculum_id == curriculum.id,
                CurriculumSubject.subject_id == data.subject_id,
                CurriculumSubject.grade_id == data.grade_id
            ],
            "Subject already exists in this curriculum for this grade"
        )

        item = CurriculumSubject(
            school_id=school_id,
            curriculum_id=curriculum.id,
            subject_id=data.subject_id,
            grade_id=data.grade_id,
            hours_per_week=data.hours_per_week,
            is_core=data.is_core,
            prerequisite_ids=prerequisites
        )
        self.db.add(item)
        await self.commit(item)
        self.log_write(f"added subject {data.subject_id} for grade {data.grade_id}", "Curriculum", curriculum.id, school_id)
        return item

    async def get_curriculum_subject(self, curriculum_subject_id: int) -> CurriculumSubject:
        return await self.get_visible(CurriculumSubject, curriculum_subject_id, ResourceKind.SCHOOL, "Curriculum subject")

    async def create_objective(self, data: LearningObjectiveCreateRequest) -> LearningObjective:
        item = await self.get_curriculum_subject(data.curriculum_subject_id)
        objective = LearningObjective(
            school_id=item.school_id,
            curriculum_subject_id=item.id,
            title=data.title,
            description=data.description,
            objective_type=data.objective_type.value,
            blooms_level=data.blooms_level.value
        )
        self.db.add(objective)
        await self.commit(objective)
        self.log_write("created", "LearningObjective", objective.id, objective.school_id)
        return objective

    async def list_objectives(self, curriculum_subject_id: int) -> List[Dict[str, Any]]:
        item = await self.get_curriculum_subject(curriculum_subject_id)
        return (await self._objectives([item.id])).get(item.id, [])

    # Progress

    async def record_progress(self, data: ProgressUpdateRequest) -> CurriculumProgress:
        """Create or replace the student's standing against one objective"""
        student = await self.get_visible(Student, data.student_id, ResourceKind.STUDENT, "Student")
        objective = await self.get_visible(
            LearningObjective, data.learning_objective_id, ResourceKind.SCHOOL, "Learning objective"
        )
        if objective.school_id != student.school_id:
            raise NotFoundError("Learning objective not found")

        stmt = select(CurriculumProgress).where(
            CurriculumProgress.student_id == student.id,
            CurriculumProgress.learning_objective_id == objective.id
        )
        record = (await self.db.execute(stmt)).scalar_one_or_none()
        if record is None:
            record = CurriculumProgress(
                school_id=student.school_id,
                student_id=student.id,
                learning_objective_id=objective.id
            )
            self.db.add(record)

        now = utcnow()
        record.status = data.status.value
        record.mastery_level = data.mastery_level.value
        record.notes = data.notes
        record.assessment_score = data.assessment_score
        if data.assessment_score is not None:
            record.assessment_date = now
        if record.status in FINISHED_STATES:
            record.completed_at = record.completed_at or now
        else:
            record.completed_at = None
        record.recorded_by_id = self.actor_id

        await self.commit(record)
        self.log_write(f"progress {record.status} on objective {objective.id}", "Student", student.id, student.school_id)
        return record

    async def student_progress(self, student_id: int, curriculum_id: Optional[int] = None) -> Dict[str, Any]:
        student = await self.get_visible(Student, student_id, ResourceKind.STUDENT, "Student")
        stmt = (
            select(CurriculumProgress, LearningObjective, CurriculumSubject, Curriculum, Subject)
            .join(LearningObjective, LearningObjective.id == CurriculumProgress.learning_objective_id)
            .join(CurriculumSubject, CurriculumSubject.id == LearningObjective.curriculum_subject_id)
            .join(Curriculum, Curriculum.id == CurriculumSubject.curriculum_id)
            .join(Subject, Subject.id == CurriculumSubject.subject_id)
            .where(CurriculumProgress.student_id == student.id)
        )
        if curriculum_id is not None:
            stmt = stmt.where(Curriculum.id == curriculum_id)
        rows = (await self.db.execute(
            stmt.order_by(Subject.name, LearningObjective.created_at, LearningObjective.id)
        )).all()

        progress = [
            {
                **_progress(record),
                "objective": {
                    "id": objective.id,
                    "title": objective.title,
                    "objective_type": objective.objective_type,
                    "blooms_level": objective.blooms_level
                },
                "curriculum": {"id": curriculum.id, "name": curriculum.name, "version": curriculum.version},
                "subject": {"id": subject.id, "name": subject.name, "code": subject.code},
                "grade_id": item.grade_id
            }
            for record, objective, item, curriculum, subject in rows
        ]
        return {
            "student": {
                "id": student.id,
                "name": student.full_name,
                "registration_number": student.registration_number,
                "class_id": student.class_id,
                "grade_id": student.grade_id
            },
            "progress": progress,
            "statistics": progress_statistics([row[0] for row in rows])
        }

    async def curriculum_progress(
        self,
        curriculum_id: int,
        grade_id: Optional[int] = None,
        subject_id: Optional[int] = None
    ) -> Dict[str, Any]:
        """Progress under one curriculum grouped by student; teachers see only students they teach"""
        curriculum = await self.get_curriculum(curriculum_id)
        stmt = (
            select(CurriculumProgress, Student, LearningObjective, CurriculumSubject)
            .join(Student, Student.id == CurriculumProgress.student_id)
            .join(LearningObjective, LearningObjective.id == CurriculumProgress.learning_objective_id)
            .join(CurriculumSubject, CurriculumSubject.id == LearningObjective.curriculum_subject_id)
            .where(CurriculumSubject.curriculum_id == curriculum.id)
        )
        if grade_id is not None:
            stmt = stmt.where(CurriculumSubject.grade_id == grade_id)
        if subject_id is not None:
            stmt = stmt.where(CurriculumSubject.subject_id == subject_id)
        stmt = self.scoped(stmt, CurriculumProgress, ResourceKind.STUDENT)
        rows = (await self.db.execute(
            stmt.order_by(Student.surname, Student.name, Student.id, LearningObjective.id)
        )).all()

        by_student: Dict[int, Dict[str, Any]] = {}
        records: Dict[int, List[CurriculumProgress]] = {}
        for record, student, objective, item in rows:
            entry = by_student.setdefault(student.id, {
                "student": {
                    "id": student.id,
                    "name": student.full_name,
                    "registration_number": student.registration_number,
                    "class_id": student.class_id
                },
                "objectives": []
            })
            entry["objectives"].append({
                **_progress(record),
                "title": objective.title,
                "subject_id": item.subject_id,
                "grade_id": item.grade_id
            })
            records.setdefault(student.id, []).append(record)

        for student_id, entry in by_student.items():
            entry["statistics"] = progress_statistics(records[student_id])

        return {
            "curriculum": {"id": curriculum.id, "name": curriculum.name, "version": curriculum.version},
            "student_progress": list(by_student.values())
        }
