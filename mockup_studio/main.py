from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mockup_studio.api.errors import register_exception_handlers
from mockup_studio.api.routers.account import router as account_router
from mockup_studio.api.routers.billing import router as billing_router
from mockup_studio.api.routers.guest import router as guest_router
from mockup_studio.api.routers.health import router as health_router
from mockup_studio.api.routers.studio import router as studio_router
from mockup_studio.shared.config import get_settings
from mockup_studio.shared.logging import configure_logging


ROUTERS = (health_router, guest_router, studio_router, billing_router, account_router)


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="Mockup Studio API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    for router in ROUTERS:
        app.include_router(router)
        # Hosting rewrites forward the same paths under /api.
        app.include_router(router, prefix="/api", include_in_schema=False)
    return app


app = create_app()


if __name__ == "__main__":
    import os

    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8080")))
