"""Error taxonomy for provider calls and the retryability classifier."""

import asyncio
from typing import Optional

import httpx
import openai


def is_retryable_status(status_code: Optional[int]) -> bool:
    return status_code is not None and (status_code == 429 or status_code >= 500)


class AnalysisError(Exception):
    pass


class ConfigurationError(AnalysisError):
    """A selected provider lacks a credential or model; the run must not start."""


class ProviderAPIError(AnalysisError):
    def __init__(self, message: str, status_code: Optional[int] = None, provider: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.provider = provider


class TransportError(ProviderAPIError):
    """Network failure or HTTP 429/5xx."""


class AuthenticationError(ProviderAPIError):
    pass


class ParseError(AnalysisError):
    """Model output or response envelope did not have the expected shape."""


def error_for_status(message: str, status_code: int, provider: Optional[str] = None) -> ProviderAPIError:
    if status_code == 401:
        return AuthenticationError(
            "Authentication failed. Please check your API key.", status_code=401, provider=provider
        )
    if is_retryable_status(status_code):
        return TransportError(message, status_code=status_code, provider=provider)
    return ProviderAPIError(message, status_code=status_code, provider=provider)


def _message_looks_transient(message: str) -> bool:
    lowered = message.lower()
    return "rate limit" in lowered or "503" in lowered


def is_retryable(error: BaseException) -> bool:
    if isinstance(error, TransportError):
        return True
    if isinstance(error, (AuthenticationError, ParseError, ConfigurationError)):
        return False
    if isinstance(error, ProviderAPIError):
        return is_retryable_status(error.status_code)
    if isinstance(error, (httpx.TransportError, asyncio.TimeoutError)):
        return True
    if isinstance(error, (openai.APIConnectionError, openai.RateLimitError, openai.InternalServerError)):
        return True
    if isinstance(error, openai.APIStatusError):
        return is_retryable_status(error.status_code)
    return _message_looks_transient(str(error))
