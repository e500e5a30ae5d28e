"""Subscription box builder FastAPI application.

Serves the builder and the cart guard to the storefront theme, processing
commands synchronously via HTTP inside the subscriptions domain context.

Usage:
    uvicorn src.app:app --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay from domain.toml.
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers
from subscriptions.domain import subscriptions  # noqa: E402
from subscriptions.utils.logging import bind_box, clear_context, configure_logging

configure_logging()
subscriptions.init()

_DOMAIN_PREFIXES = ("/boxes", "/cart-guard")


def _box_id_from_path(path: str) -> str | None:
    parts = path.strip("/").split("/")
    if len(parts) >= 2 and parts[0] == "boxes":
        return parts[1]
    return None


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Subscription Box Builder API",
    description="Custom subscription boxes on top of the storefront cart",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the subscriptions domain context for builder and guard requests."""
    path = request.url.path
    if not path.startswith(_DOMAIN_PREFIXES):
        # Health check, docs, etc.
        return await call_next(request)

    clear_context()
    box_id = _box_id_from_path(path)
    if box_id:
        bind_box(box_id)
    with subscriptions.domain_context():
        response = await call_next(request)
    return response


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from subscriptions.api import box_router, guard_router  # noqa: E402

app.include_router(box_router)
app.include_router(guard_router)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domain": subscriptions.name})
