import pytest
from sqlalchemy.sql.elements import False_

from school_api.core.tenancy import (
    FailClosed,
    Identity,
    Relation,
    RelationshipScoped,
    ResourceKind,
    TenantScoped,
    Unrestricted,
    resolve_filter,
)
from school_api.models import Student


class TestResolveFilter:
    def test_super_admin_is_unrestricted(self):
        identity = Identity(id=1, role="super_admin")
        assert resolve_filter(identity) == Unrestricted()

    def test_super_admin_can_narrow_to_school(self):
        identity = Identity(id=1, role="super_admin")
        assert resolve_filter(identity, ResourceKind.STUDENT, school_id=7) == Unrestricted(7)

    @pytest.mark.parametrize("role", ["school_admin", "principal"])
    def test_school_staff_scoped_to_own_school(self, role):
        identity = Identity(id=2, role=role, school_id=3)
        assert resolve_filter(identity, ResourceKind.CLASS) == TenantScoped(3)

    def test_school_staff_cannot_widen_with_school_id(self):
        identity = Identity(id=2, role="school_admin", school_id=3)
        assert resolve_filter(identity, ResourceKind.SCHOOL, school_id=9) == TenantScoped(3)

    def test_teacher_reaches_classes_through_teaching(self):
        identity = Identity(id=4, role="teacher", school_id=3)
        assert resolve_filter(identity, ResourceKind.CLASS) == RelationshipScoped(
            Relation.TEACHER_CLASSES, 4, 3
        )
        assert resolve_filter(identity, ResourceKind.STUDENT) == RelationshipScoped(
            Relation.TEACHER_STUDENTS, 4, 3
        )

    def test_teacher_school_resources_are_tenant_scoped(self):
        identity = Identity(id=4, role="teacher", school_id=3)
        assert resolve_filter(identity, ResourceKind.SCHOOL) == TenantScoped(3)

    def test_parent_reaches_through_guardianship(self):
        identity = Identity(id=5, role="parent", school_id=3)
        assert resolve_filter(identity, ResourceKind.STUDENT).relation == Relation.GUARDIAN_STUDENTS
        assert resolve_filter(identity, ResourceKind.CLASS).relation == Relation.GUARDIAN_CLASSES
        assert resolve_filter(identity, ResourceKind.SCHOOL).relation == Relation.GUARDIAN_SCHOOLS

    def test_unknown_role_fails_closed(self):
        assert isinstance(resolve_filter(Identity(id=6, role="janitor", school_id=3)), FailClosed)

    def test_missing_identity_fails_closed(self):
        assert isinstance(resolve_filter(None), FailClosed)

    def test_tenant_role_without_school_fails_closed(self):
        assert isinstance(resolve_filter(Identity(id=7, role="teacher")), FailClosed)


class TestPredicates:
    def test_fail_closed_matches_nothing(self):
        assert isinstance(FailClosed().clause(Student), False_)
        assert not FailClosed().allows_school(1)

    def test_tenant_scoped_allows_only_own_school(self):
        predicate = TenantScoped(3)
        assert predicate.allows_school(3)
        assert not predicate.allows_school(4)

    def test_unrestricted_allows_any_school(self):
        assert Unrestricted().allows_school(42)
        assert not Unrestricted(1).allows_school(2)
