"""
VisionLab Filter API
====================
FastAPI application for interactive image filtering and histogram
inspection.

Run with:
    uvicorn visionlab.main:app --reload --host 0.0.0.0 --port 8000
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from visionlab.api.routes import router
from visionlab.core.config import settings
from visionlab.core.pipeline import default_backend

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown events."""
    # Startup
    logger.info(f"Starting {settings.app_name} API...")
    default_backend.initialize()
    logger.info(f"Engine ready: {default_backend.is_ready}")
    logger.info(f"Upload limit: {settings.max_file_size_mb} MB")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name} API...")


# Create FastAPI app
app = FastAPI(
    title="VisionLab Filter API",
    description="""
## Image Processing Studio

Load an image, chain enhancement, blur and edge-detection filters, and
compare per-channel histograms before and after processing.

### Filters (applied in this fixed order)
- **Histogram equalization** and **CLAHE** for contrast
- **Gaussian** and **average** blur
- **Sharpen**
- **Sobel** and **Canny** edge detection

### Quick Start
1. Upload an image to `/image`
2. `PUT` a filter configuration to `/filters`
3. Download `/image/processed` and `/histogram/processed/chart`

Every configuration change is recomputed from the original image.
    """,
    version=settings.version,
    lifespan=lifespan
)

# CORS middleware for the browser front end
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router, prefix="/api/v1", tags=["Filters"])


# Root endpoint
@app.get("/")
async def root():
    """API root - provides basic information."""
    return {
        "name": f"{settings.app_name} Filter API",
        "version": settings.version,
        "docs_url": "/docs",
        "redoc_url": "/redoc",
        "health_check": "/api/v1/health"
    }


# Run with: python -m visionlab.main
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "visionlab.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
