# app/main.py
from contextlib import asynccontextmanager
import logging

from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI, Request

from app.core.config import get_settings
from app.core.errors import SubscriptionFailure
from app.core.supabase_client import create_supabase_client
from app.repositories.order_feed import SupabaseOrderFeed
from app.repositories.order_repo import OrderRepository
from app.services.order_index import LiveOrderIndex
from app.services.transition_engine import StatusTransitionEngine

# Routers
from app.routers.orders import router as orders_router

settings = get_settings()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn")


def _on_feed_failure(failure: SubscriptionFailure) -> None:
    # Reconnect policy belongs to the deployment; surface it loudly
    logger.error(f"❌ Order feed failed: {failure} (cause: {failure.__cause__!r})")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Connect to Supabase.
      - Open the live order feed (one subscription for the whole app).

    Shutdown:
      - Release the feed subscription.
    """
    logger.info("🔄 Startup: Connecting to Supabase...")
    try:
        client = await create_supabase_client(settings)
    except Exception as e:
        logger.error(f"❌ Startup: Supabase connection FAILED: {e}")
        raise

    repo = OrderRepository(
        client,
        table=settings.ORDERS_TABLE,
        created_field=settings.ORDERS_CREATED_FIELD,
    )
    feed = SupabaseOrderFeed(client, repo, schema=settings.ORDERS_SCHEMA)
    index = LiveOrderIndex(feed, on_error=_on_feed_failure)

    app.state.order_index = index
    app.state.transition_engine = StatusTransitionEngine(repo)

    async with index:
        logger.info(f"✅ Startup: order feed on '{settings.ORDERS_TABLE}' is live.")
        yield

    logger.info("Shutdown: order feed released.")


app = FastAPI(
    title=settings.PROJECT_NAME or "Order Board Backend",
    version="0.1.0",
    lifespan=lifespan,
)


# --- CORS configuration ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Versioned API prefix, e.g. /api/v1
app.include_router(orders_router, prefix=settings.API_V1_STR)


@app.get("/")
def root(request: Request):
    """Health check endpoint."""
    index = getattr(request.app.state, "order_index", None)
    return {
        "status": "ok",
        "service": "order-board-backend",
        "feed": index.feed_state if index is not None else "stopped",
    }
