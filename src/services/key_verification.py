"""Low-cost calls that check an API key before a full run."""

import logging

from config import settings
from models.domain import LLMProvider
from models.schemas import KeyVerificationResult
from services.errors import AuthenticationError, TransportError
from services.transport import bearer_headers, get_json, post_json

logger = logging.getLogger(__name__)

INVALID_KEY_MESSAGE = "Authentication failed. The API key is invalid or has been revoked."


def _verification_error(error: Exception, provider: LLMProvider) -> KeyVerificationResult:
    if isinstance(error, AuthenticationError):
        message = INVALID_KEY_MESSAGE
    elif isinstance(error, TransportError) and error.status_code is None:
        message = f"Could not connect to {provider.display_name}'s servers. Please check your network connection."
    else:
        message = str(error) or f"An unknown error occurred while verifying the {provider.display_name} key."
    logger.warning(f"{provider.value} key verification failed: {message}")
    return KeyVerificationResult(is_valid=False, error=message)


async def _verify_gemini(api_key: str) -> None:
    url = f"{settings.gemini_api_base}/models/{settings.gemini_verification_model}:generateContent"
    headers = {"x-goog-api-key": api_key, "Content-Type": "application/json"}
    body = {"contents": [{"role": "user", "parts": [{"text": "Hi"}]}]}
    await post_json(url, body, headers, LLMProvider.GEMINI.value)


async def _verify_openai(api_key: str) -> None:
    await get_json(f"{settings.openai_api_base}/models", bearer_headers(api_key), LLMProvider.OPENAI.value)


async def _verify_perplexity(api_key: str) -> None:
    body = {
        "model": settings.perplexity_verification_model,
        "messages": [{"role": "user", "content": "Hi"}],
        "max_tokens": 1,
    }
    await post_json(
        f"{settings.perplexity_api_base}/chat/completions",
        body,
        bearer_headers(api_key),
        LLMProvider.PERPLEXITY.value,
    )


VERIFIERS = {
    LLMProvider.GEMINI: _verify_gemini,
    LLMProvider.OPENAI: _verify_openai,
    LLMProvider.OPENAI_WEBSEARCH: _verify_openai,
    LLMProvider.PERPLEXITY: _verify_perplexity,
}


async def verify_api_key(provider: LLMProvider, api_key: str) -> KeyVerificationResult:
    try:
        await VERIFIERS[provider](api_key)
    except Exception as e:
        return _verification_error(e, provider)
    return KeyVerificationResult(is_valid=True)
