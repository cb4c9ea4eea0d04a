import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from karigardesk import config
from karigardesk.api import dashboard, designs, ingest, orders, portal
from karigardesk.db.session import create_tables
from karigardesk.errors import (
    IllegalTransitionError,
    ImageReadError,
    NotFoundError,
    SpreadsheetReadError,
    StorageUnavailableError,
)

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("karigardesk")

app = FastAPI(title="Karigar Desk")

# CORS for frontend dev
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(orders.router, prefix="", tags=["orders"])
app.include_router(designs.router, prefix="", tags=["designs"])
app.include_router(ingest.router, prefix="/ingest", tags=["ingest"])
app.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
app.include_router(portal.router, prefix="/portal", tags=["portal"])

app.state.portal_session = portal.new_portal_session()


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    logger.info("Not found %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(IllegalTransitionError)
async def illegal_transition_handler(request: Request, exc: IllegalTransitionError):
    logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(SpreadsheetReadError)
async def spreadsheet_handler(request: Request, exc: SpreadsheetReadError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(ImageReadError)
async def image_handler(request: Request, exc: ImageReadError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(StorageUnavailableError)
async def storage_handler(request: Request, exc: StorageUnavailableError):
    logger.error("Storage unavailable during %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.exception_handler(ValueError)
async def bad_value_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.on_event("startup")
def on_startup():
    if config.STORAGE_URL:
        logger.info("Using remote storage at %s", config.STORAGE_URL)
        return
    create_tables()


@app.get("/")
async def root():
    return {"status": "ok", "service": "karigardesk"}
