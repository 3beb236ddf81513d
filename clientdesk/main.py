import uvicorn
from sqlalchemy import text

from clientdesk.core.observability import (
    http_exception_handler,
    request_logging_middleware,
    setup_observability,
    unhandled_exception_handler,
    validation_exception_handler,
)
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from clientdesk.core.config import settings
from clientdesk.db.session import engine
from clientdesk.routers import clients

app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    description=(
        "Client 360 financial API: KPIs, payment risk, profitability and activity timeline.\n\n"
        "Swagger quick test flow:\n"
        "1. Obtain an access token (`sub` = user id) from your identity tooling.\n"
        "2. Click **Authorize** and paste it as a bearer token.\n"
        "3. Call `/clients/{client_id}/overview` or any of the per-view endpoints.\n"
        "Pass `?locale=es` to get Spanish labels."
    ),
    swagger_ui_parameters={
        "persistAuthorization": True,
        "displayRequestDuration": True,
        "defaultModelsExpandDepth": 1,
    },
    openapi_tags=[
        {"name": "health", "description": "Service status and quick links."},
        {"name": "clients", "description": "Client 360 financial views: KPIs, risk, profitability, timeline and ledgers."},
    ],
)

setup_observability()
app.middleware("http")(request_logging_middleware)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

cors_origins = settings.cors_origins or ["http://localhost:3000"]
allow_all_origins = "*" in cors_origins
env_value = settings.env.lower().strip()
allow_origin_regex = settings.cors_origin_regex

if (
    not allow_origin_regex
    and env_value in {"dev", "development", "staging", "stage"}
):
    allow_origin_regex = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if allow_all_origins else cors_origins,
    allow_origin_regex=allow_origin_regex,
    allow_credentials=not allow_all_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(clients.router)


@app.get("/", tags=["health"])
def root():
    return {
        "app": settings.app_name,
        "docs": "/docs",
        "health": "/health",
        "ready": "/ready",
    }


@app.get("/health", tags=["health"])
def health():
    return {"ok": True}


@app.get("/ready", tags=["health"])
def ready():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except Exception:
        return {"ok": False}
    return {"ok": True}


def run() -> None:
    uvicorn.run("clientdesk.main:app", host=settings.api_host, port=settings.api_port, log_level="info")


if __name__ == "__main__":
    run()
