# backend/main.py
import logging

from dotenv import load_dotenv

load_dotenv()

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config import settings
from database import SessionLocal, init_db
from services.users import ensure_bootstrap_admin
from utils.errors import register_exception_handlers
from utils.keys import KeyMaterialError, get_key_provider
from utils.security import JWTAuthMiddleware

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

# Key material is checked before anything else: without it no token can be issued or verified
try:
    get_key_provider()
except KeyMaterialError as e:
    logger.error(f"Refusing to start: {e}")
    raise

# Database initialisation
init_db()

if "auth" in settings.enabled_services and settings.BOOTSTRAP_ADMIN_USERNAME:
    db = SessionLocal()
    try:
        ensure_bootstrap_admin(
            db,
            settings.BOOTSTRAP_ADMIN_USERNAME,
            settings.BOOTSTRAP_ADMIN_EMAIL,
            settings.BOOTSTRAP_ADMIN_PASSWORD,
        )
    finally:
        db.close()

app = FastAPI(title="LabFlow API", version="1.0.0")

app.add_middleware(JWTAuthMiddleware)

# CORS: configured origins plus localhost on any port
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_origin_regex=settings.CORS_ORIGIN_REGEX or None,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Router registration per enabled service
if "auth" in settings.enabled_services:
    from routes.auth import router as auth_router
    from routes.roles import router as roles_router
    from routes.users import router as users_router

    app.include_router(auth_router)
    app.include_router(users_router)
    app.include_router(roles_router)

if "lab" in settings.enabled_services:
    from routes.labs import router as labs_router
    from routes.orders import router as orders_router

    app.include_router(labs_router)
    app.include_router(orders_router)

logger.info(f"Serving services: {', '.join(settings.enabled_services)}")


@app.get("/")
def read_root():
    return {"message": "LabFlow API is running", "services": settings.enabled_services}


@app.get("/health")
def health():
    return {"status": "UP"}
