from fastapi import FastAPI

from purchasing.app.api.exception_handlers import register_exception_handlers
from purchasing.app.api.v1.router import router as v1_router
from purchasing.app.core.config import settings
from purchasing.app.core.log import configure_logging

configure_logging()

app = FastAPI(title=settings.PROJECT_NAME, version="0.1.0")
register_exception_handlers(app)
app.include_router(v1_router, prefix=settings.API_V1_STR)
