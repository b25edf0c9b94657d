"""FastAPI application entry point."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routes import backups, catalogs, plans

app = FastAPI(
    title="Org Migrate API",
    description="API for planning phased org migrations and their rollbacks",
    version="0.1.0",
)

# CORS middleware for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://127.0.0.1:5173", "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(catalogs.router, prefix="/api/catalogs", tags=["catalogs"])
app.include_router(plans.router, prefix="/api/plans", tags=["plans"])
app.include_router(backups.router, prefix="/api", tags=["backups"])


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
