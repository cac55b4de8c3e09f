from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_api.core.config import settings
from school_api.core.database import Database
from school_api.core.errors import register_exception_handlers
from school_api.core.logging import logger
from school_api.core.security import get_password_hash
from school_api.middleware.request_id import RequestIDMiddleware
from school_api.models.user import User
from school_api.routes import (
    academic,
    analytics,
    assignments,
    attendance,
    auth,
    calendar,
    curricula,
    dashboard,
    events,
    exams,
    fees,
    materials,
    notifications,
    report_cards,
    schools,
    students,
    timetables,
    users,
)
from school_api.schemas.enums import UserRole

API_PREFIX = "/api/v1"


def create_app(database: Optional[Database] = None) -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description="Multi-tenant API for running schools: people, academics, assessment and communication",
        version=settings.VERSION,
        docs_url="/api/docs" if settings.DEBUG else None,
        redoc_url="/api/redoc" if settings.DEBUG else None,
    )
    app.state.database = database or Database.from_settings()

    register_exception_handlers(app)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware)

    # Include routers
    app.include_router(auth.router, prefix=f"{API_PREFIX}/auth")
    app.include_router(schools.router, prefix=f"{API_PREFIX}/schools")
    app.include_router(users.principals_router, prefix=f"{API_PREFIX}/principals")
    app.include_router(users.teachers_router, prefix=f"{API_PREFIX}/teachers")
    app.include_router(users.parents_router, prefix=f"{API_PREFIX}/parents")
    app.include_router(students.router, prefix=f"{API_PREFIX}/students")
    app.include_router(academic.grades_router, prefix=f"{API_PREFIX}/grades")
    app.include_router(academic.classes_router, prefix=f"{API_PREFIX}/classes")
    app.include_router(academic.subjects_router, prefix=f"{API_PREFIX}/subjects")
    app.include_router(academic.lessons_router, prefix=f"{API_PREFIX}/lessons")
    app.include_router(academic.rooms_router, prefix=f"{API_PREFIX}/rooms")
    app.include_router(calendar.router, prefix=f"{API_PREFIX}/academic-calendar")
    app.include_router(exams.router, prefix=f"{API_PREFIX}/exams")
    app.include_router(timetables.router, prefix=f"{API_PREFIX}/timetables")
    app.include_router(assignments.router, prefix=f"{API_PREFIX}/assignments")
    app.include_router(attendance.router, prefix=f"{API_PREFIX}/attendance")
    app.include_router(report_cards.router, prefix=f"{API_PREFIX}/report-cards")
    app.include_router(notifications.router, prefix=f"{API_PREFIX}/notifications")
    app.include_router(events.router, prefix=f"{API_PREFIX}/events")
    app.include_router(materials.router, prefix=f"{API_PREFIX}/materials")
    app.include_router(curricula.router, prefix=f"{API_PREFIX}/curricula")
    app.include_router(fees.router, prefix=f"{API_PREFIX}/fees")
    app.include_router(analytics.router, prefix=f"{API_PREFIX}/analytics")
    app.include_router(dashboard.router, prefix=f"{API_PREFIX}/dashboard")

    @app.get("/health", tags=["Health"])
    async def health():
        return {
            "status": "ok",
            "version": settings.VERSION,
            "database": "connected" if app.state.database.is_connected else "disconnected"
        }

    @app.on_event("startup")
    async def startup_event():
        db_handle: Database = app.state.database
        await db_handle.connect()
        if settings.AUTO_CREATE_TABLES:
            await db_handle.create_all()
        async with db_handle.session() as session:
            await create_super_admin(session)
        logger.info("Application startup completed")

    @app.on_event("shutdown")
    async def shutdown_event():
        await app.state.database.disconnect()
        logger.info("Application shutdown completed")

    return app


async def create_super_admin(db: AsyncSession) -> Optional[User]:
    """Seed the platform operator account from SUPER_ADMIN_EMAIL / SUPER_ADMIN_PASSWORD"""
    if not settings.SUPER_ADMIN_EMAIL or not settings.SUPER_ADMIN_PASSWORD:
        return None

    result = await db.execute(select(User).where(User.role == UserRole.SUPER_ADMIN.value))
    super_admin = result.scalars().first()
    if super_admin:
        logger.info("Super admin already exists")
        return super_admin

    super_admin = User(
        name="Super",
        surname="Admin",
        username="superadmin",
        email=settings.SUPER_ADMIN_EMAIL.lower(),
        role=UserRole.SUPER_ADMIN.value,
        password_hash=get_password_hash(settings.SUPER_ADMIN_PASSWORD),
        school_id=None,
        is_active=True,
        is_verified=True
    )
    db.add(super_admin)
    await db.commit()
    logger.info("Super admin created successfully")
    return super_admin
