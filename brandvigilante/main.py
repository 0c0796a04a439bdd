import asyncio
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from brandvigilante.auth.middleware import SessionAuthMiddleware
from brandvigilante.auth.rate_limit import login_rate_limiter
from brandvigilante.cleanup_sessions import cleanup_expired
from brandvigilante.core import config
from brandvigilante.core.cache import cache
from brandvigilante.core.errors import register_exception_handlers
from brandvigilante.core.tasks import cancel_tasks, start_periodic
from brandvigilante.database import Base, engine, ensure_user_schema
from brandvigilante.models import (  # noqa: F401
    activity_log,
    brand,
    listing,
    marketplace,
    product,
    seller,
    session,
    token,
    trademark_term,
    user,
)
from brandvigilante.routes import (
    account_routes,
    admin_brand_routes,
    admin_marketplace_routes,
    admin_user_routes,
    api_routes,
    auth_routes,
    catalog_routes,
    google_routes,
    password_routes,
    verification_routes,
)

logger = logging.getLogger(__name__)

app = FastAPI(title='BrandVigilante')

app.add_middleware(SessionAuthMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

register_exception_handlers(app)

_background_tasks: list[asyncio.Task] = []


def configure_logging() -> None:
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )


@app.on_event('startup')
async def startup() -> None:
    configure_logging()
    config.validate_runtime_config()

    try:
        Base.metadata.create_all(bind=engine)
        ensure_user_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL or the DB_* settings.')

    _background_tasks.extend([
        start_periodic('rate-limit-sweep', config.CACHE_SWEEP_INTERVAL_SECONDS, login_rate_limiter.cleanup),
        start_periodic('cache-sweep', config.CACHE_SWEEP_INTERVAL_SECONDS, cache.cleanup),
        start_periodic('session-sweep', config.SESSION_SWEEP_INTERVAL_SECONDS, cleanup_expired),
    ])


@app.on_event('shutdown')
async def shutdown() -> None:
    await cancel_tasks(_background_tasks)


@app.get('/')
def root():
    return {'status': 'BrandVigilante API Running'}


app.include_router(auth_routes.router)
app.include_router(google_routes.router)
app.include_router(password_routes.router)
app.include_router(verification_routes.router)
app.include_router(account_routes.router)
app.include_router(admin_brand_routes.router)
app.include_router(admin_marketplace_routes.router)
app.include_router(admin_user_routes.router)
app.include_router(api_routes.router)
app.include_router(catalog_routes.router)
