# ChefHub API Main Entry Point
import logging
import sys

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from .errors import register_exception_handlers
from .infra.ratelimit import limiter
from .settings import settings
from .storage.local import media_root
from .routers.ready import router as ready_router
from .routers.auth import router as auth_router
from .routers.uploads import router as uploads_router
from .routers.home import router as home_router
from .routers.chef import router as chef_router
from .routers.orders import router as orders_router
from .routers.chat import router as chat_router
from .routers.notifications import router as notifications_router
from .routers.addresses import router as addresses_router

# Configure structured logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger("chefhub")

app = FastAPI(title="ChefHub API", version="0.1.0")
app.state.limiter = limiter
register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ready_router, prefix="/api", tags=["ready"])
app.include_router(auth_router, prefix="/api", tags=["auth"])
app.include_router(uploads_router, prefix="/api", tags=["uploads"])
app.include_router(home_router, prefix="/api", tags=["discovery"])
app.include_router(chef_router, prefix="/api", tags=["chef"])
app.include_router(orders_router, prefix="/api", tags=["orders"])
app.include_router(chat_router, prefix="/api", tags=["chat"])
app.include_router(notifications_router, prefix="/api", tags=["notifications"])
app.include_router(addresses_router, prefix="/api", tags=["addresses"])

if settings.storage_backend == "local":
    _media = media_root()
    _media.mkdir(parents=True, exist_ok=True)
    app.mount(settings.media_base_url, StaticFiles(directory=str(_media)), name="media")

logger.info(f"ChefHub API ready (push={settings.push_mode}, payments={settings.payment_mode}, storage={settings.storage_backend})")
