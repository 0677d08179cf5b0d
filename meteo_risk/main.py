"""FastAPI application setup for the Météo Risk service."""

from fastapi import FastAPI

from .api import install_exception_handlers, router as api_router

app = FastAPI(title="Météo Risk")

install_exception_handlers(app)

# API routes
app.include_router(api_router, prefix="/v1")
