# ---------------------------------------------------------
# backend/main.py
# Collaborative Project & Task Tracker - Backend
#
# Run: uvicorn backend.main:app --reload (from repo root)
#
# - FastAPI + SQLite (PostgreSQL when DATABASE_URL is set)
# - /projects : projects, collaborators, tasks, messages
# - /tasks    : task details, updates, subtasks
# - /users/me : profile mirror of the identity provider
# - /notifications : per-user feed (polling)
# ---------------------------------------------------------

from __future__ import annotations

from typing import Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

try:
    from backend.config import CORS_ORIGINS, IS_DEV, IS_PROD
    from backend.db import init_db
    from backend.errors import ServiceError
    from backend.routes_projects import router as projects_router
    from backend.routes_tasks import router as tasks_router
    from backend.routes_users import router as users_router
except ModuleNotFoundError:
    from config import CORS_ORIGINS, IS_DEV, IS_PROD
    from db import init_db
    from errors import ServiceError
    from routes_projects import router as projects_router
    from routes_tasks import router as tasks_router
    from routes_users import router as users_router


# Error kind -> HTTP status
ERROR_STATUS: Dict[str, int] = {
    "InvalidArgument": 400,
    "PermissionDenied": 403,
    "NotFound": 404,
    "AlreadyExists": 409,
    "Internal": 500,
}


# ---------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------
app = FastAPI(title="Project Tracker Backend", version="0.1")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS if IS_PROD else ["*"],  # Restrict origins in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

init_db()


@app.exception_handler(ServiceError)
def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    status = ERROR_STATUS.get(exc.kind, 500)
    if IS_DEV or status >= 500:
        print(f"[API] {request.method} {request.url.path} -> {status} {exc.kind}: {exc.message}")
    return JSONResponse(status_code=status, content={"detail": exc.message, "error": exc.kind})


@app.exception_handler(RequestValidationError)
def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Malformed request bodies are reported like any other InvalidArgument
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    detail = f"{location}: {message}" if location else message
    if IS_DEV:
        print(f"[API] {request.method} {request.url.path} -> 400 InvalidArgument: {detail}")
    return JSONResponse(status_code=400, content={"detail": detail, "error": "InvalidArgument"})


# ---------------------------------------------------------
# Routes
# ---------------------------------------------------------
@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


app.include_router(users_router)
app.include_router(projects_router)
app.include_router(tasks_router)
