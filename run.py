import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

import config
from utils.logging_config import setup_logging

# Initialize centralized logging configuration
setup_logging()

from db import create_db_and_tables
from utils.error_handler import handle_unexpected_error
from web.api_router import api_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown."""
    await create_db_and_tables()
    logging.info(f"[Startup] Storefront core ready ({config.RUNTIME_ENVIRONMENT.value}, {config.CURRENCY.value})")
    if not config.PAYMENT_GATEWAY_URL:
        logging.warning("[Startup] PAYMENT_GATEWAY_URL not set, only cash and pay later are available")

    yield

    logging.warning('Shutting down..')


app = FastAPI(lifespan=lifespan)
app.include_router(api_router)


# Health check endpoint (for Docker container monitoring)
@app.get("/health")
async def health_check():
    return {"status": "healthy"}


@app.exception_handler(Exception)
async def exception_handler(request: Request, exc: Exception):
    status_code, body = handle_unexpected_error(exc)
    return JSONResponse(status_code=status_code, content=body)


def main() -> None:
    uvicorn.run(app, host=config.WEBAPP_HOST, port=config.WEBAPP_PORT)


if __name__ == '__main__':
    main()
