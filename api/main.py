"""
Live-Event Ticketing Core API - Main Application.

FastAPI application with CORS enabled for the browser client.
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import __version__
from api.dependencies import get_settings

logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Create FastAPI application
app = FastAPI(
    title="Live-Event Ticketing Core API",
    description="Event lifecycle, ticket issuance and checkout for live-streamed events",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Configure CORS - Allow all origins for development
# TODO: Restrict origins to the deployed site URL in production
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["Health"])
def health_check():
    """
    Health check endpoint.

    Returns the API status and version.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "service": "ticketing-core-api"
    }


@app.get("/", tags=["Root"])
def root():
    """
    Root endpoint with API information.
    """
    return {
        "message": "Live-Event Ticketing Core API",
        "version": __version__,
        "docs": "/docs",
        "health": "/health"
    }


# Import and include routers
from api.routers import checkout, events, jobs, payments, tickets

app.include_router(checkout.router, prefix="/api/v1", tags=["Checkout"])
app.include_router(tickets.router, prefix="/api/v1", tags=["Tickets"])
app.include_router(events.router, prefix="/api/v1", tags=["Events"])
app.include_router(jobs.router, prefix="/api/v1", tags=["Jobs"])
app.include_router(payments.router, prefix="/api/v1", tags=["Payments"])
