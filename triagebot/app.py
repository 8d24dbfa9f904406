# --- imports (top of triagebot/app.py) ---
import json
import logging
from datetime import datetime

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from triagebot.config.settings import get_settings
from triagebot.middleware.tracing import TRACE_ID_CTX_VAR, TracingMiddleware
from triagebot.models import init_db
from triagebot.routes import ai_routes, consultations_routes
from triagebot.services.triage import build_engine
from triagebot.utils.exceptions import (
    AppError,
    handle_app_error,
    handle_http_exception,
    handle_request_validation,
    handle_unhandled_exception,
)

app = FastAPI(title="Triagebot", version="0.1.0")


# --- logging setup ---
class JsonFormatter(logging.Formatter):
    def format(self, record):  # type: ignore[override]
        message = record.msg if isinstance(record.msg, dict) else record.getMessage()
        payload = {
            "timestamp": datetime.utcnow().isoformat(timespec="seconds") + "Z",
            "level": record.levelname,
            "function": record.funcName,
            "message": message,
            "trace_id": TRACE_ID_CTX_VAR.get() or None,
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging() -> logging.Logger:
    logger = logging.getLogger("triagebot")
    logger.setLevel(logging.INFO)
    if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(JsonFormatter())
        logger.addHandler(handler)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    return logger


logger = configure_logging()

app.add_middleware(TracingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- error envelope ---
app.add_exception_handler(StarletteHTTPException, handle_http_exception)
app.add_exception_handler(AppError, handle_app_error)
app.add_exception_handler(RequestValidationError, handle_request_validation)
app.add_exception_handler(Exception, handle_unhandled_exception)


@app.on_event("startup")
def _startup():
    init_db()
    app.state.triage_engine = build_engine(get_settings())
    logger.info({"function": "startup", "status": "ready"})


@app.on_event("shutdown")
async def _shutdown():
    engine = getattr(app.state, "triage_engine", None)
    if engine is not None:
        await engine.aclose()


app.include_router(consultations_routes.router)
app.include_router(ai_routes.router)


@app.get("/healthz")
def healthz():
    settings = get_settings()
    engine = getattr(app.state, "triage_engine", None)
    return {
        "status": "ok",
        "engine_ready": engine is not None,
        "generation_configured": settings.generation_configured,
        "zero_shot_enabled": settings.zero_shot_enabled,
        "gemini_model": settings.gemini_model,
        "zero_shot_model": settings.zero_shot_model,
    }
