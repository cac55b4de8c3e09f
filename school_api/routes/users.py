from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_api.core.database import get_db
from school_api.core.pagination import Pagination, pagination_params
from school_api.core.permissions import require_admin, require_any_role, require_school_staff
from school_api.core.tenancy import Identity
from school_api.schemas.student import StudentResponse
from school_api.schemas.user import (
    LinkChildRequest,
    ParentCreateRequest,
    ParentUpdateRequest,
    PrincipalCreateRequest,
    PrincipalUpdateRequest,
    PrincipalVerifyRequest,
    TeacherCreateRequest,
    TeacherUpdateRequest,
    UserResponse
)
from school_api.services.user_service import UserService

principals_router = APIRouter(tags=["Principals"])
teachers_router = APIRouter(tags=["Teachers"])
parents_router = APIRouter(tags=["Parents"])


# Principals

@principals_router.post("", status_code=status.HTTP_201_CREATED)
async def create_principal(
    data: PrincipalCreateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    principal, generated = await UserService(db, identity).create_principal(data)
    response: Dict[str, Any] = {"message": "Principal created", "principal": UserResponse.model_validate(principal)}
    if generated is not None:
        response["generated_credentials"] = {"email": principal.email, "password": generated}
    return response


@principals_router.get("")
async def list_principals(
    search: Optional[str] = Query(None),
    school_id: Optional[int] = Query(None),
    pagination: Pagination = Depends(pagination_params),
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    principals, meta = await UserService(db, identity).list_principals(pagination, search, school_id)
    return {
        "message": "Principals retrieved",
        "principals": [UserResponse.model_validate(principal) for principal in principals],
        "pagination": meta
    }


@principals_router.get("/{principal_id}")
async def get_principal(
    principal_id: int,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    principal = await UserService(db, identity).get_principal(principal_id)
    return {"message": "Principal retrieved", "principal": UserResponse.model_validate(principal)}


@principals_router.patch("/{principal_id}")
async def update_principal(
    principal_id: int,
    data: PrincipalUpdateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    principal = await UserService(db, identity).update_principal(principal_id, data)
    return {"message": "Principal updated", "principal": UserResponse.model_validate(principal)}


@principals_router.put("/{principal_id}/verify")
async def verify_principal(
    principal_id: int,
    data: PrincipalVerifyRequest,
    identity: Identity = Depends(require_admin()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    principal = await UserService(db, identity).verify_principal(principal_id, data)
    return {
        "message": f"Principal {data.status.value.lower()}",
        "principal": UserResponse.model_validate(principal),
        "approval_status": data.status.value
    }


@principals_router.delete("/{principal_id}")
async def delete_principal(
    principal_id: int,
    identity: Identity = Depends(require_admin()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    await UserService(db, identity).delete_principal(principal_id)
    return {"message": "Principal deleted"}


# Teachers

@teachers_router.post("", status_code=status.HTTP_201_CREATED)
async def create_teacher(
    data: TeacherCreateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    teacher = await UserService(db, identity).create_teacher(data)
    return {"message": "Teacher created", "teacher": UserResponse.model_validate(teacher)}


@teachers_router.get("")
async def list_teachers(
    search: Optional[str] = Query(None),
    school_id: Optional[int] = Query(None),
    pagination: Pagination = Depends(pagination_params),
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    teachers, meta = await UserService(db, identity).list_teachers(pagination, search, school_id)
    return {
        "message": "Teachers retrieved",
        "teachers": [UserResponse.model_validate(teacher) for teacher in teachers],
        "pagination": meta
    }


@teachers_router.get("/{teacher_id}")
async def get_teacher(
    teacher_id: int,
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    service = UserService(db, identity)
    teacher = await service.get_teacher(teacher_id)
    return {
        "message": "Teacher retrieved",
        "teacher": UserResponse.model_validate(teacher),
        **await service.teacher_details(teacher)
    }


@teachers_router.patch("/{teacher_id}")
async def update_teacher(
    teacher_id: int,
    data: TeacherUpdateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    teacher = await UserService(db, identity).update_teacher(teacher_id, data)
    return {"message": "Teacher updated", "teacher": UserResponse.model_validate(teacher)}


@teachers_router.delete("/{teacher_id}")
async def delete_teacher(
    teacher_id: int,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    await UserService(db, identity).delete_teacher(teacher_id)
    return {"message": "Teacher deleted"}


# Parents

@parents_router.post("", status_code=status.HTTP_201_CREATED)
async def create_parent(
    data: ParentCreateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    parent = await UserService(db, identity).create_parent(data)
    return {"message": "Parent created", "parent": UserResponse.model_validate(parent)}


@parents_router.get("")
async def list_parents(
    search: Optional[str] = Query(None),
    school_id: Optional[int] = Query(None),
    pagination: Pagination = Depends(pagination_params),
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    parents, meta = await UserService(db, identity).list_parents(pagination, search, school_id)
    return {
        "message": "Parents retrieved",
        "parents": [UserResponse.model_validate(parent) for parent in parents],
        "pagination": meta
    }


@parents_router.get("/{parent_id}")
async def get_parent(
    parent_id: int,
    identity: Identity = Depends(require_any_role()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    service = UserService(db, identity)
    parent = await service.get_parent(parent_id)
    children = await service.children_of(parent.id)
    return {
        "message": "Parent retrieved",
        "parent": UserResponse.model_validate(parent),
        "children": [StudentResponse.model_validate(child) for child in children]
    }


@parents_router.patch("/{parent_id}")
async def update_parent(
    parent_id: int,
    data: ParentUpdateRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    parent = await UserService(db, identity).update_parent(parent_id, data)
    return {"message": "Parent updated", "parent": UserResponse.model_validate(parent)}


@parents_router.delete("/{parent_id}")
async def delete_parent(
    parent_id: int,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    await UserService(db, identity).delete_parent(parent_id)
    return {"message": "Parent deleted"}


@parents_router.post("/{parent_id}/children", status_code=status.HTTP_201_CREATED)
async def link_child(
    parent_id: int,
    data: LinkChildRequest,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    link = await UserService(db, identity).link_child(parent_id, data)
    return {
        "message": "Child linked to parent",
        "link": {
            "id": link.id,
            "parent_id": link.parent_id,
            "student_id": link.student_id,
            "relationship": link.relationship,
            "is_primary": link.is_primary
        }
    }


@parents_router.delete("/{parent_id}/children/{student_id}")
async def unlink_child(
    parent_id: int,
    student_id: int,
    identity: Identity = Depends(require_school_staff()),
    db: AsyncSession = Depends(get_db)
) -> Dict[str, Any]:
    await UserService(db, identity).unlink_child(parent_id, student_id)
    return {"message": "Child unlinked from parent"}
