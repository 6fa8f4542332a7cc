"""API routes."""

from fastapi import APIRouter

from chatstore.routes import diagnostics

api_router = APIRouter()

# Diagnostics endpoints (connection reuse)
api_router.include_router(diagnostics.router, prefix="/v1/diagnostics", tags=["diagnostics"])
