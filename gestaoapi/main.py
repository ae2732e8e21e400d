import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gestaoapi.config import config
from gestaoapi.database import database
from gestaoapi.forms.errors import FormsError
from gestaoapi.logging_conf import configure_logging
from gestaoapi.routers.directorate import router as directorate_router
from gestaoapi.routers.form import router as form_router
from gestaoapi.routers.response import router as response_router
from gestaoapi.routers.strategy import router as strategy_router
from gestaoapi.routers.user import router as user_router
from gestaoapi.security import ensure_bootstrap_admin

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    # connect database
    await database.connect()
    await ensure_bootstrap_admin()
    yield
    # disconnect database
    await database.disconnect()


app = FastAPI(
    title="Gestão API",
    description="API do painel de governança: formulários, respostas e gestão estratégica",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(FormsError)
async def forms_error_handler(request: Request, exc: FormsError):
    logger.debug(
        f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}"
    )
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.include_router(user_router, prefix="/api/users", tags=["Users"])
app.include_router(form_router, prefix="/api/forms", tags=["Forms"])
app.include_router(response_router, prefix="/api/forms", tags=["Responses"])
app.include_router(directorate_router, prefix="/api/directorates", tags=["Directorates"])
app.include_router(strategy_router, prefix="/api/strategy", tags=["Strategy"])
