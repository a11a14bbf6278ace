from logging_config import setup_logging

# Initialize logging BEFORE anything else
setup_logging()

from contextlib import asynccontextmanager
from logging_config import get_logger, request_id_var
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from middleware.request_lifecycle import RequestLifecycleMiddleware
from routes import ban_requests, groups, messages, notifications, posts, realtime, users
from config import config
from database import Store, db
from errors import Conflict, DomainError, Forbidden, InfrastructureError, InvalidInput, NoRecipients, NotFound
from services.container import build_services
from utils.realtime import SessionRegistry

logger = get_logger("app")

STATUS_BY_ERROR = [
    (NotFound, 404),
    (NoRecipients, 404),
    (Forbidden, 403),
    (InvalidInput, 400),
    (Conflict, 409),
    (InfrastructureError, 500),
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    services = app.state.services
    if config.BACKGROUND_TASKS:
        await services.start_background()
    yield
    await services.stop_background()


app = FastAPI(title="CampusLink API", lifespan=lifespan)

# One store and one transport shared by every service
app.state.services = build_services(Store(db), SessionRegistry())

# CORS remains here as it's a global setting
app.add_middleware(
    CORSMiddleware,
    allow_origins=[config.FRONTEND_URL] if config.ENV == "production" else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request lifecycle middleware (request ID, context vars, duration logging)
app.add_middleware(RequestLifecycleMiddleware)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    status_code = next((code for error, code in STATUS_BY_ERROR if isinstance(exc, error)), 400)
    if status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status_code,
            content={"detail": InfrastructureError.detail, "request_id": request_id_var.get("-")},
        )
    return JSONResponse(status_code=status_code, content={"detail": exc.detail})


# REGISTER ROUTERS
app.include_router(notifications.router)
app.include_router(messages.router)
app.include_router(groups.router)
app.include_router(posts.router)
app.include_router(users.router)
app.include_router(ban_requests.router)
app.include_router(realtime.router)

logger.info("All routers registered, CampusLink API ready")

@app.get("/")
async def root():
    return {"status": "online", "message": "CampusLink API is running"}
