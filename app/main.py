import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.exceptions import ValidationError
from app.core.logging import configure_logging
from app.api.v1.router import api_router
from app.services.push import PushDispatcher
from app.services.registry import build_store

logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.LOG_LEVEL)
    logger.info(f"--- 🚀 Iniciando {settings.PROJECT_NAME} (registro: {settings.REGISTRY_BACKEND}) ---")

    if settings.uses_placeholder_stream_credentials:
        logger.warning("⚠️ Credenciais de demonstração do provedor de chat em uso. Não use em produção.")

    app.state.registry = build_store(settings.REGISTRY_BACKEND, settings.SQLALCHEMY_DATABASE_URI)
    app.state.dispatcher = PushDispatcher.from_settings(settings)
    yield

app = FastAPI(
    title=settings.PROJECT_NAME,
    lifespan=lifespan
)

origins = list({
    "http://localhost:3000",
    settings.FRONTEND_URL,
})

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    # Toda resposta de erro sai como {success: false, error, details?}
    if isinstance(exc.detail, dict):
        content = {"success": False, **exc.detail}
    else:
        content = {"success": False, "error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    # Campo ausente/inválido é 400, não o 422 padrão do FastAPI
    details = [
        {"field": ".".join(str(p) for p in err["loc"] if p != "body"), "reason": err["type"], "message": err["msg"]}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "Missing or invalid fields", "details": details},
    )

@app.exception_handler(ValidationError)
async def relay_validation_error_handler(request: Request, exc: ValidationError):
    content = {"success": False, "error": str(exc)}
    if exc.details is not None:
        content["details"] = exc.details
    return JSONResponse(status_code=400, content=content)

app.include_router(api_router, prefix=settings.API_PREFIX)

@app.get("/")
def root():
    return {"message": f"{settings.PROJECT_NAME} está rodando!"}
