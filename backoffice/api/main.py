from fastapi import FastAPI

from backoffice.common import configure_from_settings
from backoffice.core.config import get_settings
from backoffice.api.routers import permissions

settings = get_settings()
configure_from_settings(settings)

app = FastAPI(
    title=settings.app_name,
    description="Law firm admin panel back office",
    version="0.1.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# Include routers
app.include_router(permissions.router, prefix="/api")


@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": "0.1.0"}
