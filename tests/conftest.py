import os
import tempfile
from datetime import date
from types import SimpleNamespace

# Must be set before school_api reads its settings
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="school-api-logs-"))
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from school_api import create_app
from school_api.core.database import Database
from school_api.core.security import create_access_token, get_password_hash
from school_api.models import Class, Grade, Guardianship, School, Student, Subject, User
from school_api.schemas.enums import UserRole, VerificationStatus

PASSWORD = "Password123!"


@pytest.fixture(scope="session")
def password_hash():
    return get_password_hash(PASSWORD)


@pytest_asyncio.fixture
async def database(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await db.connect()
    await db.create_all()
    yield db
    await db.drop_all()
    await db.disconnect()


@pytest.fixture
def app(database):
    return create_app(database)


@pytest_asyncio.fixture
async def client(app):
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def session(database):
    async with database.session() as s:
        yield s


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}


def make_user(role: UserRole, key: str, password_hash: str, school_id=None) -> User:
    return User(
        email=f"{key}@schoolmail.com",
        username=key,
        password_hash=password_hash,
        name=key.capitalize(),
        surname="Tester",
        role=role.value,
        school_id=school_id,
        is_active=True,
        is_verified=True
    )


def make_student(school_id: int, key: str, class_id=None, grade_id=None) -> Student:
    return Student(
        school_id=school_id,
        registration_number=key.upper(),
        name=key.capitalize(),
        surname="Pupil",
        sex="FEMALE",
        birthday=date(2012, 5, 1),
        class_id=class_id,
        grade_id=grade_id,
        is_active=True
    )


@pytest_asyncio.fixture
async def world(session, password_hash):
    """
    Two approved schools and one pending school:

    * school A: admin, principal, teacher (supervises class 1A), second
      teacher with no classes, parent of student a1, students in 1A and 1B
    * school B: admin and one student
    """
    school_a = School(
        name="Alpha Academy", email="office@alpha-academy.com", registration_number="ALPHA-001",
        verification_status=VerificationStatus.APPROVED.value
    )
    school_b = School(
        name="Beta College", email="office@beta-college.com", registration_number="BETA-001",
        verification_status=VerificationStatus.APPROVED.value
    )
    pending = School(
        name="Gamma School", email="office@gamma-school.com", registration_number="GAMMA-001",
        verification_status=VerificationStatus.PENDING.value
    )
    session.add_all([school_a, school_b, pending])
    await session.flush()

    super_admin = make_user(UserRole.SUPER_ADMIN, "root", password_hash)
    admin_a = make_user(UserRole.SCHOOL_ADMIN, "admina", password_hash, school_a.id)
    principal_a = make_user(UserRole.PRINCIPAL, "principala", password_hash, school_a.id)
    teacher_a = make_user(UserRole.TEACHER, "teachera", password_hash, school_a.id)
    idle_teacher = make_user(UserRole.TEACHER, "idleteacher", password_hash, school_a.id)
    parent_a = make_user(UserRole.PARENT, "parenta", password_hash, school_a.id)
    admin_b = make_user(UserRole.SCHOOL_ADMIN, "adminb", password_hash, school_b.id)
    pending_admin = make_user(UserRole.SCHOOL_ADMIN, "pendingadmin", password_hash, pending.id)
    session.add_all([super_admin, admin_a, principal_a, teacher_a, idle_teacher, parent_a, admin_b, pending_admin])
    await session.flush()

    grade_a = Grade(school_id=school_a.id, name="Grade 1", level=1)
    session.add(grade_a)
    await session.flush()

    class_a1 = Class(school_id=school_a.id, name="1A", capacity=30, grade_id=grade_a.id, supervisor_id=teacher_a.id)
    class_a2 = Class(school_id=school_a.id, name="1B", capacity=30, grade_id=grade_a.id)
    session.add_all([class_a1, class_a2])
    await session.flush()

    subject_a = Subject(school_id=school_a.id, name="Mathematics", code="MATH")
    session.add(subject_a)

    student_a1 = make_student(school_a.id, "amina", class_a1.id, grade_a.id)
    student_a2 = make_student(school_a.id, "brian", class_a2.id, grade_a.id)
    student_b1 = make_student(school_b.id, "carla")
    session.add_all([student_a1, student_a2, student_b1])
    await session.flush()

    session.add(Guardianship(student_id=student_a1.id, parent_id=parent_a.id, relationship="mother", is_primary=True))
    await session.commit()

    return SimpleNamespace(
        school_a=school_a,
        school_b=school_b,
        pending=pending,
        super_admin=super_admin,
        admin_a=admin_a,
        principal_a=principal_a,
        teacher_a=teacher_a,
        idle_teacher=idle_teacher,
        parent_a=parent_a,
        admin_b=admin_b,
        pending_admin=pending_admin,
        grade_a=grade_a,
        class_a1=class_a1,
        class_a2=class_a2,
        subject_a=subject_a,
        student_a1=student_a1,
        student_a2=student_a2,
        student_b1=student_b1,
    )


@pytest.fixture
def headers():
    return auth_headers
