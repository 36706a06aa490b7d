"""HTTP mapping for marketplace errors."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from marketplace.errors import MarketplaceError


async def marketplace_error_handler(request: Request, exc: MarketplaceError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"code": exc.code, "message": exc.message, "details": exc.messages}},
    )


def register_error_handlers(app: FastAPI) -> None:
    """Protean's own handlers first, then the marketplace taxonomy on top."""
    register_exception_handlers(app)
    app.add_exception_handler(MarketplaceError, marketplace_error_handler)
