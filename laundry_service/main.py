import os
import uuid
import logging

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.exceptions import HTTPException as StarletteHTTPException
from dotenv import load_dotenv

from laundry_service import __version__, seed
from laundry_service.database import database, engine, metadata
from laundry_service.events import RoomNotificationSink
from laundry_service.routers import auth, services, orders, tracking, drivers, statistics, realtime
from laundry_service.ws_manager import manager

load_dotenv()

# ------------------------- CONFIG -------------------------
APP_ENV = os.getenv("APP_ENV", "production")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

logger = logging.getLogger("laundry-service")
logger.setLevel(logging.INFO)
if not logger.handlers:
    handler = logging.StreamHandler()
    fmt = "[%(asctime)s] [%(levelname)s] %(message)s"
    handler.setFormatter(logging.Formatter(fmt))
    logger.addHandler(handler)

app = FastAPI(title="QuickSpin Laundry Service", version=__version__)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)

app.state.notifier = RoomNotificationSink(manager)


# ------------------------- MIDDLEWARE -------------------------
@app.middleware("http")
async def add_trace_id(request: Request, call_next):
    trace_id = request.headers.get("x-trace-id") or str(uuid.uuid4())
    request.state.trace_id = trace_id
    response = await call_next(request)
    response.headers["x-trace-id"] = trace_id
    logger.info(f"[TRACE {trace_id}] {request.method} {request.url.path} → {response.status_code}")
    return response


# ------------------------- ERRORS -------------------------
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(part) for part in err["loc"] if part != "body"), "message": err["msg"]}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "Validation failed", "errors": errors},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    trace_id = getattr(request.state, "trace_id", None)
    logger.exception(f"[TRACE {trace_id}] 🔥 Unhandled error on {request.method} {request.url.path}: {exc}")
    content = {"success": False, "message": "Server error"}
    if APP_ENV == "development":
        content["error"] = str(exc)
    return JSONResponse(status_code=500, content=content)


# ------------------------- STARTUP / SHUTDOWN -------------------------
@app.on_event("startup")
async def startup():
    logger.info("Connecting database...")
    metadata.create_all(engine)
    await database.connect()
    await seed.run()
    logger.info("Startup complete.")


@app.on_event("shutdown")
async def shutdown():
    logger.info("Disconnecting database...")
    await database.disconnect()


# ------------------------- ROUTES -------------------------
app.include_router(auth.router)
app.include_router(services.router)
app.include_router(orders.router)
app.include_router(tracking.router)
app.include_router(drivers.router)
app.include_router(statistics.router)
app.include_router(realtime.router)


@app.get("/")
def root():
    return {
        "message": "Welcome to the QuickSpin Laundry API",
        "version": __version__,
        "endpoints": ["/auth", "/services", "/orders", "/tracking", "/drivers", "/statistics", "/ws"],
    }


@app.get("/health")
async def health():
    return {"status": "ok", "service": "laundry-service", "database": database.is_connected}


@app.get("/metrics")
def metrics():
    """Prometheus metrics endpoint."""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
