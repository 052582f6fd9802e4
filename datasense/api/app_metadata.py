"""
App Metadata API Endpoints
"""
from fastapi import APIRouter, Depends, HTTPException
import logging

from datasense.dependencies import ServiceContainer, get_container
from datasense.models.api import SuggestionsRequest, SuggestionsResponse
from datasense.models.chat import AppMetadata
from datasense.services.app_metadata_service import AppMetadataService
from datasense.services.exceptions import CacheUnavailableError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/app-metadata", tags=["app-metadata"])


@router.get("/{owner_id}", response_model=AppMetadata)
async def get_app_metadata(
    owner_id: str,
    services: ServiceContainer = Depends(get_container)
):
    metadata = await services.app_metadata.get_app_metadata(owner_id)
    if metadata is None:
        raise HTTPException(status_code=404, detail="App metadata not found")
    return metadata


@router.put("/{owner_id}", response_model=AppMetadata)
async def save_app_metadata(
    owner_id: str,
    metadata: AppMetadata,
    services: ServiceContainer = Depends(get_container)
):
    try:
        return await services.app_metadata.save_app_metadata(owner_id, metadata)
    except CacheUnavailableError as e:
        logger.error(f"Failed to save app metadata for {owner_id}: {e}")
        raise HTTPException(status_code=503, detail="Failed to save app metadata")


@router.post("/suggestions", response_model=SuggestionsResponse)
async def welcome_suggestions(request: SuggestionsRequest):
    """Starter prompts for a new conversation, based on the schema when given."""
    return SuggestionsResponse(
        suggestions=AppMetadataService.generate_welcome_suggestions(request.database_schema)
    )
