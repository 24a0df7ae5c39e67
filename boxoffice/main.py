import logging
import sys

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware

from boxoffice import __version__
from boxoffice.config import settings
from boxoffice.dependencies import get_store
from boxoffice.repositories.interfaces import BoxOfficeStore
from boxoffice.routers import admin, event, ticket, user

LOG_LEVEL = getattr(logging, settings.LOG_LEVEL, logging.INFO)
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s (%(filename)s:%(lineno)d)"
stream_handler = logging.StreamHandler(sys.stdout)
stream_handler.setFormatter(logging.Formatter(LOG_FORMAT))
logging.basicConfig(level=LOG_LEVEL, handlers=[stream_handler], force=True)

# Create FastAPI app
app = FastAPI(
    title="Box Office Dragon",
    description="Campus event ticketing: seat inventory, booking, returns, transfers and door validation",
    version=__version__,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(event.router)
app.include_router(ticket.router)
app.include_router(admin.router)
app.include_router(user.router)


@app.get("/health")
def health_check(store: BoxOfficeStore = Depends(get_store)):
    """Health check endpoint"""
    details = store.describe()
    return {
        "status": "healthy" if details.get("status") == "ok" else "degraded",
        "service": "Box Office Dragon",
        "version": __version__,
        "storage": details,
    }


@app.get("/")
def root():
    """Root endpoint"""
    return {
        "message": "Welcome to Box Office Dragon",
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "boxoffice.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
