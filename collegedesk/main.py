from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from collegedesk.api.v1.admissions.router import router as admissions_router
from collegedesk.api.v1.auth.router import router as auth_router
from collegedesk.api.v1.colleges.router import router as colleges_router
from collegedesk.api.v1.fees.router import router as fees_router
from collegedesk.api.v1.users.router import router as users_router
from collegedesk.core.logging_config import setup_logging


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(title="College Admin Backend")

    # CORS: allow frontend to call this API
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(auth_router)
    app.include_router(colleges_router)
    app.include_router(users_router)
    app.include_router(admissions_router)
    app.include_router(fees_router)

    return app


app = create_app()
