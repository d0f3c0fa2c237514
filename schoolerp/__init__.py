# schoolerp/__init__.py
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from schoolerp.core.config import Settings, get_logging_config, get_settings
from schoolerp.core.database import DirectoryDatabase
from schoolerp.core.errors import register_exception_handlers
from schoolerp.core.logging import configure_logging, logger
from schoolerp.core.tenancy import TenantRegistry
from schoolerp.middleware.request_id import RequestIDMiddleware
from schoolerp.routes import attendance, class_subjects, health, leave, results, schools, sos


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(**get_logging_config(settings))

    app = FastAPI(
        title=settings.APP_NAME,
        description="Multi-school ERP API: leave requests, SOS alerts, attendance and results",
        version=settings.VERSION,
        docs_url="/api/docs" if settings.DEBUG else None,
        redoc_url="/api/redoc" if settings.DEBUG else None,
    )

    directory = DirectoryDatabase(settings.DATABASE_URL, echo=settings.DEBUG)
    app.state.settings = settings
    app.state.directory = directory
    app.state.registry = TenantRegistry(directory, settings)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    # Include routers
    app.include_router(health.router, prefix="/api", tags=["Health"])
    app.include_router(schools.router, prefix="/api/schools", tags=["Schools"])
    app.include_router(leave.router, prefix="/api/leave", tags=["Leave Requests"])
    app.include_router(sos.router, prefix="/api/sos", tags=["SOS Alerts"])
    app.include_router(attendance.router, prefix="/api/attendance", tags=["Attendance"])
    app.include_router(class_subjects.router, prefix="/api/class-subjects", tags=["Class Subjects"])
    app.include_router(results.router, prefix="/api/results", tags=["Results"])

    @app.on_event("startup")
    async def startup_event():
        await app.state.directory.init()
        logger.info("Application startup completed")

    @app.on_event("shutdown")
    async def shutdown_event():
        await app.state.registry.close_all()
        await app.state.directory.close()
        logger.info("Application shutdown completed")

    return app
