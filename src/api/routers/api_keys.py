"""API router for provider API key checks."""

from fastapi import APIRouter

from models.schemas import KeyVerificationRequest, KeyVerificationResult
from services.key_verification import verify_api_key

router = APIRouter()


@router.post("/api-keys/verify", response_model=KeyVerificationResult, response_model_exclude_none=True)
async def verify_key(request: KeyVerificationRequest) -> KeyVerificationResult:
    """
    Check an API key with a minimal call to the provider.

    Invalid keys and network problems are reported in the body, never as an
    HTTP error.
    """
    return await verify_api_key(request.provider, request.api_key)
