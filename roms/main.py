import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from roms.middleware import RequestIdMiddleware
from roms.db import Base, engine
from roms.config import settings
from roms.errors import RomsError
from roms.schemas.common import ErrorOut
from roms.util.logging import configure_logging
import roms.models  # noqa: F401  (register tables)

from roms.routers import menu, cart, orders, pos

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger("roms")

app = FastAPI(
    title="ROMS API",
    version="1.0.0",
    docs_url=None if settings.APP_ENV == "prod" else "/docs",
)

@app.on_event("startup")
def init_db():
    Base.metadata.create_all(bind=engine)

# Middlewares
app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RomsError)
async def roms_error_handler(request: Request, exc: RomsError):
    logger.warning(
        "%s: %s",
        exc.code,
        exc.message,
        extra={"status": exc.status_code, "route": request.url.path},
    )
    body = ErrorOut(detail=exc.message, code=exc.code)
    return JSONResponse(body.model_dump(), status_code=exc.status_code)


app.include_router(menu.router)
app.include_router(cart.router)
app.include_router(orders.router)
app.include_router(pos.router)

@app.get("/healthz")
def healthz():
    return {"ok": True}
