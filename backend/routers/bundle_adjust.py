"""Bundle adjustment API routes."""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from sparseba.core.adjustment.bundle_adjuster import BundleAdjuster
from sparseba.core.errors import ConfigurationError, MissingInputError
from sparseba.core.models.entities import Camera, Landmark, Track
from sparseba.core.models.results import BundleAdjustResult

router = APIRouter(prefix="/bundle-adjust", tags=["bundle-adjust"])


class BundleAdjustRequest(BaseModel):
    """Request model for a bundle adjustment run."""

    cameras: Optional[Dict[int, Camera]] = Field(default=None, description="Frame id to camera")
    landmarks: Optional[Dict[int, Landmark]] = Field(default=None, description="Track id to landmark")
    tracks: Optional[List[Track]] = Field(default=None, description="Feature tracks")
    settings: Dict[str, Any] = Field(default_factory=dict, description="Overrides of the default configuration")


@router.get("/configuration")
async def get_default_configuration() -> Dict[str, Any]:
    """Get the default bundle adjustment configuration."""
    return BundleAdjuster().get_configuration()


@router.post("")
def bundle_adjust(request: BundleAdjustRequest) -> BundleAdjustResult:
    """Optimize cameras and landmarks against the given tracks."""
    adjuster = BundleAdjuster()

    try:
        adjuster.set_configuration(request.settings)
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=f"Invalid configuration: {str(e)}")

    try:
        return adjuster.optimize(request.cameras, request.landmarks, request.tracks)
    except MissingInputError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=f"Invalid configuration: {str(e)}")
