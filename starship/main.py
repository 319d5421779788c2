from fastapi import FastAPI, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import text

from starship.db.base import get_db
from starship.core.config import settings
from starship.core.logging import setup_logging
from starship.routers import users as users_router
from starship.routers import tasks as tasks_router
from starship.routers import points as points_router
from starship.routers import rewards as rewards_router
from starship.routers import punishments as punishments_router
from starship.core.errors import (
    StarshipException,
    starship_exception_handler,
    validation_exception_handler,
    unhandled_exception_handler,
)

setup_logging()

app = FastAPI(
    title="StarshipPlan API",
    description=(
        "**Household task and reward tracker**\n\n"
        "Parents define recurring tasks, rewards and punishment rules; children "
        "complete tasks to earn star coins and experience for their starship.\n\n"
        "All error responses follow the `{code, message, details}` envelope."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Exception handlers (most specific first) ---
app.add_exception_handler(StarshipException, starship_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Routers ---
app.include_router(users_router.router)
app.include_router(points_router.router)
app.include_router(points_router.leaderboard_router)
app.include_router(tasks_router.router)
app.include_router(rewards_router.router)
app.include_router(punishments_router.router)


@app.get("/health", tags=["health"], summary="Health check")
def health(db: Session = Depends(get_db)):
    """
    Returns `{"status": "ok", "db": "ok"}` when both the API and the database
    are reachable. Returns HTTP 503 if the DB is down.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except Exception:
        db_status = "unreachable"

    if db_status != "ok":
        return JSONResponse(
            status_code=503,
            content={"status": "error", "db": db_status},
        )
    return {"status": "ok", "db": "ok", "env": settings.APP_ENV}
