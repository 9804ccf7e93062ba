"""FastAPI application setup."""

from fastapi import FastAPI

from crm_rules.db.database import init_db
from crm_rules.api.routes import rules, processing
from crm_rules.config import PRODUCT_NAME, PRODUCT_TAGLINE, PRODUCT_VERSION, PRODUCT_DESCRIPTION

app = FastAPI(
    title=f"{PRODUCT_NAME} API",
    description=PRODUCT_DESCRIPTION,
    version=PRODUCT_VERSION,
)


@app.on_event("startup")
def startup():
    """Initialize database on startup."""
    init_db()


@app.get("/api/health")
def health():
    """Health check endpoint."""
    return {
        "name": PRODUCT_NAME,
        "version": PRODUCT_VERSION,
        "status": "ok",
        "tagline": PRODUCT_TAGLINE,
    }


# Mount API routers
app.include_router(rules.router, prefix="/api/rules", tags=["rules"])
app.include_router(processing.router, prefix="/api/process", tags=["processing"])
