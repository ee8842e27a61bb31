import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from app.api import auth, loans, routes
from app.core.config import settings
from app.core.database import SessionLocal
from app.core.init_db import create_tables, seed_roles
from app.services.media import IMAGES_DIR

logging.basicConfig(level=settings.log_level,
                    format="%(asctime)s %(levelname)s %(name)s - %(message)s")
logger = logging.getLogger("library")

create_tables()
with SessionLocal() as db:
    seed_roles(db)

app = FastAPI(title="Online Library Management System")
app.include_router(routes.router)
app.include_router(loans.router)
app.include_router(auth.router)

images_root = Path(settings.media_root) / IMAGES_DIR
images_root.mkdir(parents=True, exist_ok=True)
app.mount(f"/{IMAGES_DIR}", StaticFiles(directory=str(images_root)), name=IMAGES_DIR)


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/health")
def health():
    return {"status": "ok"}
