# school_api/core/tenancy.py
"""
Tenant filter resolution.

Every query against school data is intersected with a predicate derived from
the caller's identity. The predicate is a small tagged value:

* ``Unrestricted``       super admins (optionally narrowed to one school)
* ``TenantScoped``       everything inside the caller's school
* ``RelationshipScoped`` rows reachable through a teaching or guardianship edge
* ``FailClosed``         matches nothing

``resolve_filter`` is pure: it looks at the identity and the kind of resource
and never touches the database. Turning a predicate into SQL happens in
``clause()``, which builds subqueries over classes, lessons and guardianships.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from sqlalchemy import false, or_, select, true
from sqlalchemy.sql.elements import ColumnElement

from school_api.models.academic import Class, Lesson
from school_api.models.student import Guardianship, Student
from school_api.schemas.enums import UserRole


@dataclass(frozen=True)
class Identity:
    """The authenticated caller as seen by filters and guards"""
    id: int
    role: str
    school_id: Optional[int] = None

    @property
    def role_enum(self) -> Optional[UserRole]:
        return UserRole.parse(self.role)


class ResourceKind(str, Enum):
    TENANT = "tenant"      # the school row itself
    SCHOOL = "school"      # carries a school id only
    CLASS = "class"        # carries a class edge
    STUDENT = "student"    # carries a student edge


class Relation(str, Enum):
    TEACHER_CLASSES = "teacher_classes"
    TEACHER_STUDENTS = "teacher_students"
    GUARDIAN_STUDENTS = "guardian_students"
    GUARDIAN_CLASSES = "guardian_classes"
    GUARDIAN_SCHOOLS = "guardian_schools"


def _hint_column(model, hint: str):
    name = getattr(model, hint, None)
    if not name:
        return None
    return getattr(model, name)


def tenant_column(model):
    return _hint_column(model, "__tenant_column__")


def teacher_class_ids(teacher_id: int, school_id: int):
    """Classes a teacher supervises or teaches a lesson in, within one school"""
    lesson_classes = select(Lesson.class_id).where(Lesson.teacher_id == teacher_id)
    return select(Class.id).where(
        Class.school_id == school_id,
        or_(Class.supervisor_id == teacher_id, Class.id.in_(lesson_classes))
    )


def guardian_student_ids(parent_id: int):
    return select(Guardianship.student_id).where(Guardianship.parent_id == parent_id)


def guardian_class_ids(parent_id: int):
    return select(Student.class_id).where(
        Student.id.in_(guardian_student_ids(parent_id)),
        Student.class_id.is_not(None)
    )


def guardian_school_ids(parent_id: int):
    return select(Student.school_id).where(Student.id.in_(guardian_student_ids(parent_id)))


@dataclass(frozen=True)
class Unrestricted:
    school_id: Optional[int] = None

    def clause(self, model) -> ColumnElement:
        if self.school_id is None:
            return true()
        column = tenant_column(model)
        return column == self.school_id if column is not None else true()

    def allows_school(self, school_id: Optional[int]) -> bool:
        return self.school_id is None or self.school_id == school_id


@dataclass(frozen=True)
class TenantScoped:
    school_id: int

    def clause(self, model) -> ColumnElement:
        column = tenant_column(model)
        if column is None:
            return false()
        return column == self.school_id

    def allows_school(self, school_id: Optional[int]) -> bool:
        return school_id == self.school_id


@dataclass(frozen=True)
class RelationshipScoped:
    relation: Relation
    principal_id: int
    school_id: Optional[int] = None

    def clause(self, model) -> ColumnElement:
        class_col = _hint_column(model, "__class_column__")
        student_col = _hint_column(model, "__student_column__")
        school_col = tenant_column(model)

        if self.relation == Relation.TEACHER_CLASSES:
            if class_col is None or school_col is None:
                return false()
            return (school_col == self.school_id) & class_col.in_(
                teacher_class_ids(self.principal_id, self.school_id)
            )

        if self.relation == Relation.TEACHER_STUDENTS:
            if student_col is None or school_col is None:
                return false()
            taught = select(Student.id).where(
                Student.class_id.in_(teacher_class_ids(self.principal_id, self.school_id))
            )
            return (school_col == self.school_id) & student_col.in_(taught)

        if self.relation == Relation.GUARDIAN_STUDENTS:
            if student_col is None:
                return false()
            return student_col.in_(guardian_student_ids(self.principal_id))

        if self.relation == Relation.GUARDIAN_CLASSES:
            if class_col is None:
                return false()
            return class_col.in_(guardian_class_ids(self.principal_id))

        if self.relation == Relation.GUARDIAN_SCHOOLS:
            if school_col is None:
                return false()
            return school_col.in_(guardian_school_ids(self.principal_id))

        return false()

    def allows_school(self, school_id: Optional[int]) -> bool:
        # Relationship scopes read across edges; writes stay inside the own school
        return self.school_id is not None and school_id == self.school_id


@dataclass(frozen=True)
class FailClosed:
    reason: str = "unrecognised role"

    def clause(self, model) -> ColumnElement:
        return false()

    def allows_school(self, school_id: Optional[int]) -> bool:
        return False


TenantPredicate = Union[Unrestricted, TenantScoped, RelationshipScoped, FailClosed]


def resolve_filter(
    identity: Optional[Identity],
    kind: ResourceKind = ResourceKind.SCHOOL,
    school_id: Optional[int] = None
) -> TenantPredicate:
    """
    Map a caller to the predicate restricting what it may see.

    ``school_id`` is honoured only for super admins, where it narrows the
    result to one school. Tenant roles without a school and unknown roles
    resolve to ``FailClosed``.
    """
    if identity is None:
        return FailClosed("no identity")

    role = identity.role_enum
    if role is None:
        return FailClosed(f"unrecognised role {identity.role!r}")

    if role == UserRole.SUPER_ADMIN:
        return Unrestricted(school_id)

    if role in (UserRole.SCHOOL_ADMIN, UserRole.PRINCIPAL):
        if identity.school_id is None:
            return FailClosed("no school assigned")
        return TenantScoped(identity.school_id)

    if role == UserRole.TEACHER:
        if identity.school_id is None:
            return FailClosed("no school assigned")
        if kind == ResourceKind.CLASS:
            return RelationshipScoped(Relation.TEACHER_CLASSES, identity.id, identity.school_id)
        if kind == ResourceKind.STUDENT:
            return RelationshipScoped(Relation.TEACHER_STUDENTS, identity.id, identity.school_id)
        return TenantScoped(identity.school_id)

    if role == UserRole.PARENT:
        if kind == ResourceKind.STUDENT:
            return RelationshipScoped(Relation.GUARDIAN_STUDENTS, identity.id, identity.school_id)
        if kind == ResourceKind.CLASS:
            return RelationshipScoped(Relation.GUARDIAN_CLASSES, identity.id, identity.school_id)
        return RelationshipScoped(Relation.GUARDIAN_SCHOOLS, identity.id, identity.school_id)

    return FailClosed(f"no policy for role {role.value}")
