"""
API Routes
==========
FastAPI endpoints for the filter session: upload, configure, reset and
inspect images and histograms.
"""

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import StreamingResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from visionlab.models.schemas import (
    FilterOptions, FilterInfo, ParameterInfo, HistogramResponse,
    ImageInfo, SessionStateResponse, HealthResponse
)
from visionlab.core.config import settings
from visionlab.core.errors import DecodeFailure, EngineNotReady, InvalidConfig
from visionlab.core.pipeline import (
    DEFAULT_CONFIG, PARAMETER_RANGES, STAGES, FilterPipeline
)
from visionlab.services.charts import THEMES, render_histogram_chart
from visionlab.services.imaging import decode_image, encode_png
from visionlab.services.session import RecomputeController, SessionSnapshot

import logging

logger = logging.getLogger(__name__)

router = APIRouter()

session = RecomputeController()


def get_session() -> RecomputeController:
    """Dependency returning the process-wide image session."""
    return session


def build_state_response(
    snapshot: SessionSnapshot,
    message: str,
    processing_time: float | None = None
) -> SessionStateResponse:
    """Convert a session snapshot into the API response model."""
    original = snapshot.original
    return SessionStateResponse(
        success=True,
        message=message,
        has_image=snapshot.has_image,
        image=ImageInfo(
            width=original.width,
            height=original.height,
            channels=original.channels
        ) if original is not None else None,
        options=FilterOptions.from_config(snapshot.config),
        applied_filters=snapshot.applied_filters,
        has_processed_image=snapshot.processed is not None,
        original_histogram=HistogramResponse.from_histogram(snapshot.original_histogram)
        if snapshot.original_histogram is not None else None,
        processed_histogram=HistogramResponse.from_histogram(snapshot.processed_histogram)
        if snapshot.processed_histogram is not None else None,
        generation=snapshot.generation,
        processing_time_seconds=processing_time
    )


def require_ready(controller: RecomputeController) -> None:
    if not controller.is_ready:
        raise HTTPException(status_code=503, detail="Processing backend is not ready")


# =========================================================================
# HEALTH CHECK
# =========================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check(controller: RecomputeController = Depends(get_session)):
    """Check API health and engine readiness."""
    return HealthResponse(
        status="healthy" if controller.is_ready else "starting",
        version=settings.version,
        engine_ready=controller.is_ready,
        timestamp=datetime.now()
    )


# =========================================================================
# FILTER CATALOG
# =========================================================================

@router.get("/filters/catalog", response_model=list[FilterInfo])
async def list_filters():
    """List pipeline stages in execution order, with parameter ranges."""
    catalog = []
    for order, stage in enumerate(STAGES):
        parameters = [
            ParameterInfo(
                name=name,
                minimum=PARAMETER_RANGES[name].minimum,
                maximum=PARAMETER_RANGES[name].maximum,
                step=PARAMETER_RANGES[name].step,
                parity=PARAMETER_RANGES[name].parity,
                default=getattr(DEFAULT_CONFIG, name)
            )
            for name in stage.parameters
        ]
        catalog.append(FilterInfo(
            id=stage.name,
            order=order,
            description=stage.description,
            parameters=parameters
        ))
    return catalog


# =========================================================================
# IMAGE UPLOAD / DOWNLOAD
# =========================================================================

@router.post("/image", response_model=SessionStateResponse)
async def upload_image(
    file: UploadFile = File(...),
    controller: RecomputeController = Depends(get_session)
):
    """
    Load a new original image into the session.

    The filter configuration is reset to defaults and the processed image
    is recomputed from the new original.
    """
    require_ready(controller)

    try:
        contents = await file.read()
        image = decode_image(contents, max_bytes=settings.max_file_size_bytes)
        logger.info(f"Uploaded image: {file.filename}, {image.width}x{image.height}")

        outcome = await run_in_threadpool(controller.load_image, image)
        return build_state_response(outcome.snapshot, f"Loaded {file.filename or 'image'}")

    except DecodeFailure as e:
        logger.warning(f"Upload rejected: {e}")
        raise HTTPException(status_code=400, detail=str(e))
    except EngineNotReady as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.exception(f"Upload failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/image/{which}")
async def download_image(
    which: Literal["original", "processed"],
    controller: RecomputeController = Depends(get_session)
):
    """Download the original or processed image as PNG."""
    snapshot = controller.snapshot()
    image = snapshot.original if which == "original" else snapshot.processed

    if image is None:
        raise HTTPException(status_code=404, detail=f"No {which} image available")

    return StreamingResponse(
        encode_png(image),
        media_type="image/png",
        headers={"X-Applied-Filters": ",".join(snapshot.applied_filters)}
    )


# =========================================================================
# FILTER CONFIGURATION
# =========================================================================

@router.get("/filters", response_model=FilterOptions)
async def get_filters(controller: RecomputeController = Depends(get_session)):
    """Current filter configuration."""
    return FilterOptions.from_config(controller.config)


@router.put("/filters", response_model=SessionStateResponse)
async def update_filters(
    options: FilterOptions,
    controller: RecomputeController = Depends(get_session)
):
    """
    Replace the filter configuration and recompute from the original.

    On failure the previous processed image and histograms are kept.
    """
    try:
        outcome = await run_in_threadpool(controller.update_config, options.to_config())
    except InvalidConfig as e:
        raise HTTPException(status_code=422, detail=str(e))
    except EngineNotReady as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.exception(f"Recompute failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    if outcome.superseded:
        message = "Superseded by a newer configuration"
    elif not outcome.snapshot.has_image:
        message = "Configuration stored; no image loaded"
    else:
        message = f"Applied {len(outcome.snapshot.applied_filters)} filter(s)"

    return build_state_response(outcome.snapshot, message)


@router.post("/reset", response_model=SessionStateResponse)
async def reset_filters(controller: RecomputeController = Depends(get_session)):
    """Restore default filters and clear the processed result."""
    snapshot = controller.reset()
    return build_state_response(snapshot, "Filters reset to defaults")


# =========================================================================
# HISTOGRAMS
# =========================================================================

@router.get("/histogram/{which}", response_model=HistogramResponse)
async def get_histogram(
    which: Literal["original", "processed"],
    controller: RecomputeController = Depends(get_session)
):
    """Per-channel histogram of the original or processed image."""
    snapshot = controller.snapshot()
    histogram = snapshot.original_histogram if which == "original" else snapshot.processed_histogram

    if histogram is None:
        raise HTTPException(status_code=404, detail=f"No {which} histogram available")

    return HistogramResponse.from_histogram(histogram)


@router.get("/histogram/{which}/chart")
async def get_histogram_chart(
    which: Literal["original", "processed"],
    theme: Literal["light", "dark"] = "light",
    controller: RecomputeController = Depends(get_session)
):
    """Histogram rendered as a PNG bar chart."""
    snapshot = controller.snapshot()
    histogram = snapshot.original_histogram if which == "original" else snapshot.processed_histogram

    if histogram is None:
        raise HTTPException(status_code=404, detail=f"No {which} histogram available")

    title = f"{which.capitalize()} Histogram"
    buffer = await run_in_threadpool(render_histogram_chart, histogram, title, theme)
    return StreamingResponse(buffer, media_type="image/png")


@router.get("/themes")
async def list_themes():
    """List available chart themes."""
    return {"themes": sorted(THEMES)}


# =========================================================================
# STATELESS PROCESSING
# =========================================================================

@router.post("/process")
async def process_image(
    file: UploadFile = File(...),
    options: str = Form("{}"),
    controller: RecomputeController = Depends(get_session)
):
    """
    Process an image without touching the session.

    ``options`` is a JSON object of filter options (camelCase). Returns the
    processed image as PNG.
    """
    require_ready(controller)

    try:
        filter_options = FilterOptions.model_validate_json(options)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.errors(include_url=False))

    try:
        contents = await file.read()
        image = decode_image(contents, max_bytes=settings.max_file_size_bytes)

        pipeline: FilterPipeline = controller.pipeline
        result = await run_in_threadpool(pipeline.process, image, filter_options.to_config())

        return StreamingResponse(
            encode_png(result.image),
            media_type="image/png",
            headers={
                "X-Applied-Filters": ",".join(result.applied_filters),
                "X-Processing-Time": f"{result.processing_time_seconds:.4f}"
            }
        )

    except DecodeFailure as e:
        raise HTTPException(status_code=400, detail=str(e))
    except InvalidConfig as e:
        raise HTTPException(status_code=422, detail=str(e))
    except EngineNotReady as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.exception(f"Processing failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))
