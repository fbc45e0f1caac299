"""FastAPI application: mounts every API router."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.apis.admin import router as admin_router
from app.apis.billing import router as billing_router
from app.apis.design_conversions import router as conversions_router
from app.apis.integrations import router as integrations_router
from app.apis.pages import router as pages_router
from app.apis.plugin_requests import router as plugins_router
from app.apis.pricing_plans import router as pricing_plans_router
from app.apis.profiles import router as profiles_router
from app.apis.setup import router as setup_router
from app.apis.site_settings import router as site_settings_router
from app.libs.config import get_settings


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.PROJECT_NAME, version=settings.VERSION)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    for router in (
        profiles_router,
        plugins_router,
        conversions_router,
        billing_router,
        admin_router,
        pages_router,
        integrations_router,
        site_settings_router,
        pricing_plans_router,
        setup_router,
    ):
        app.include_router(router, prefix="/api")

    @app.get("/api/health")
    async def health_check():
        return {"status": "healthy"}

    return app


app = create_app()
