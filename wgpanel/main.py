"""
WireGuard Peer Panel - FastAPI Application
Main entrypoint for the admin dashboard.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .config import TEMPLATES_DIR, WG_CONFIG_PATH, LOGO_URL
from .errors import PanelError, ParseMalformed, PeerNotFound, DuplicatePeer, AddressInUse, InvalidAddress
from .wg import WireGuardError
from .auth import router as auth_router, require_auth
from .users import router as users_router
from .configfile import router as config_router
from .limiter import limiter
from .logs import configure_logging

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ParseMalformed: 400,
    InvalidAddress: 400,
    PeerNotFound: 404,
    DuplicatePeer: 409,
    AddressInUse: 409,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler - runs on startup/shutdown."""
    configure_logging()
    logger.info("Config file path: %s", WG_CONFIG_PATH)
    if not WG_CONFIG_PATH.exists():
        logger.warning("Configuration file not found or not accessible: %s", WG_CONFIG_PATH)
    yield


app = FastAPI(
    title="WireGuard Peer Panel",
    description="Admin panel for the peers of a WireGuard server",
    version="1.0.0",
    lifespan=lifespan
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

app.include_router(auth_router, prefix="/api/auth", tags=["auth"])
app.include_router(users_router)
app.include_router(config_router)


@app.exception_handler(PanelError)
async def panel_error_handler(request: Request, exc: PanelError):
    status_code = ERROR_STATUS.get(type(exc), 400)
    return JSONResponse(status_code=status_code, content={"success": False, "error": str(exc)})


@app.exception_handler(WireGuardError)
async def wireguard_error_handler(request: Request, exc: WireGuardError):
    logger.error("WireGuard operation failed on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": "WireGuard operation failed", "details": str(exc)}
    )


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {"status": "healthy", "service": "wg-peer-panel"}


@app.get("/login", response_class=HTMLResponse)
async def login_page(request: Request):
    """Login page."""
    if require_auth(request):
        return RedirectResponse(url="/", status_code=303)

    return templates.TemplateResponse(request, "login.html", {"logo_url": LOGO_URL})


@app.get("/", response_class=HTMLResponse)
async def dashboard(request: Request):
    """Admin dashboard - main page. The page itself loads data with the stored token."""
    return templates.TemplateResponse(request, "index.html", {"logo_url": LOGO_URL})
