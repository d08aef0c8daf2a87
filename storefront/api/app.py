# storefront/api/app.py
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from . import auth, cart, categories, coupons, orders, products, wishlist
from ..config import Config
from ..database.database import Database
from ..errors import BusinessRuleError, InfrastructureError

logger = logging.getLogger(__name__)

def create_app(db=None) -> FastAPI:
    """Build the storefront API around a database handle"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await app.state.db.connect()
        try:
            yield
        finally:
            await app.state.db.close()

    app = FastAPI(title="Storefront API", lifespan=lifespan)
    app.state.db = db or Database()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=Config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(BusinessRuleError)
    async def business_rule_error_handler(request: Request, exc: BusinessRuleError) -> JSONResponse:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "code": exc.code, "message": str(exc)},
        )

    @app.exception_handler(InfrastructureError)
    async def infrastructure_error_handler(request: Request, exc: InfrastructureError) -> JSONResponse:
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(
            status_code=503,
            content={
                "success": False,
                "code": "SERVICE_UNAVAILABLE",
                "message": "Service temporarily unavailable, please retry",
            },
        )

    @app.get("/api/health")
    async def health():
        return {"success": True, "status": "ok"}

    for module in (auth, products, categories, cart, wishlist, orders, coupons):
        app.include_router(module.router, prefix="/api")

    return app
