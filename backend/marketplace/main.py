"""
Marketplace Backend
FastAPI application entry point

- Rate limiting with SlowAPI
- Domain errors mapped to status codes, everything else sanitized
- Health endpoint with DB ping
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from marketplace import __version__
from marketplace.api.routes import cart, orders, products, transaction, users
from marketplace.core.config import settings
from marketplace.core.database import AsyncSessionLocal, create_all
from marketplace.core.error_handler import ErrorSanitizationMiddleware, register_exception_handlers
from marketplace.core.rate_limit import limiter, rate_limit_exceeded_handler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup when explicitly configured to."""
    if settings.CREATE_TABLES_ON_STARTUP:
        await create_all()
        logger.info("Database tables created")
    logger.info(
        f"{settings.APP_NAME} started (environment={settings.ENVIRONMENT}, "
        f"rate_limit={'on' if settings.RATE_LIMIT_ENABLED else 'off'})"
    )
    yield
    logger.info(f"{settings.APP_NAME} shutting down")


app = FastAPI(
    lifespan=lifespan,
    title="Marketplace API",
    description="""
## Marketplace API

Peer-to-peer marketplace: users list products, fill a cart, preview a
per-seller transaction and confirm it into orders.

### Checkout
1. `PATCH /api/transaction` previews the cart (or one item) against live stock
2. `POST /api/orders` re-checks the confirmed transaction and creates one order per seller

If stock or prices moved in between, step 2 answers 200 with the corrected
transaction instead of creating orders.

### Rate Limits
- Auth endpoints: 5 requests/minute
- Checkout: 10 requests/minute
- General: 100 requests/minute
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "Health", "description": "Health check endpoints"},
        {"name": "Users", "description": "Accounts, login and profile"},
        {"name": "Products", "description": "Seller catalog management"},
        {"name": "Cart", "description": "Shopping cart operations"},
        {"name": "Transaction", "description": "Checkout preview"},
        {"name": "Orders", "description": "Order placement and history"},
    ],
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
register_exception_handlers(app)

# Error sanitization (catches unhandled exceptions)
app.add_middleware(ErrorSanitizationMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(users.router, prefix="/api/users", tags=["Users"])
app.include_router(products.router, prefix="/api/products", tags=["Products"])
app.include_router(cart.router, prefix="/api/cart", tags=["Cart"])
app.include_router(transaction.router, prefix="/api/transaction", tags=["Transaction"])
app.include_router(orders.router, prefix="/api/orders", tags=["Orders"])


@app.get("/", tags=["Health"])
async def root():
    return {
        "message": "Marketplace API",
        "version": __version__,
        "status": "operational"
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check with an actual DB ping. Returns 503 if the database is unreachable."""
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    try:
        async with AsyncSessionLocal() as db:
            await db.execute(text("SELECT 1"))
        health_status["database"] = "connected"
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"[health] Database ping failed: {type(e).__name__}: {e}")
        health_status["database"] = f"error: {type(e).__name__}"
        health_status["status"] = "unhealthy"
        return JSONResponse(status_code=503, content=health_status)

    return health_status
