import logging
from typing import Optional

import httpx

from config import settings
from services.errors import AuthenticationError, ParseError, TransportError, error_for_status

logger = logging.getLogger(__name__)


def bearer_headers(api_key: str) -> dict:
    return {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.reason_phrase or f"HTTP {response.status_code}"
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    if isinstance(error, str) and error:
        return error
    return response.reason_phrase or f"HTTP {response.status_code}"


def _check_response(response: httpx.Response, provider: Optional[str]) -> dict:
    if response.is_error:
        message = _error_message(response)
        if "API key not valid" in message:
            raise AuthenticationError(message, status_code=response.status_code, provider=provider)
        raise error_for_status(message, response.status_code, provider=provider)
    try:
        return response.json()
    except ValueError as e:
        raise ParseError(f"{provider or 'provider'} returned a non-JSON response") from e


def _network_error(url: str, provider: Optional[str]) -> TransportError:
    hostname = httpx.URL(url).host
    return TransportError(
        f"Network Error: Failed to connect to {hostname}. Please check your internet connection "
        "and any firewalls or proxies that might be blocking the request.",
        provider=provider,
    )


async def post_json(url: str, body: dict, headers: dict, provider: Optional[str] = None) -> dict:
    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
        try:
            response = await client.post(url, json=body, headers=headers)
        except httpx.TransportError as e:
            logger.error(f"{provider} request to {url} failed: {e}")
            raise _network_error(url, provider) from e
    return _check_response(response, provider)


async def get_json(url: str, headers: dict, provider: Optional[str] = None) -> dict:
    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
        try:
            response = await client.get(url, headers=headers)
        except httpx.TransportError as e:
            logger.error(f"{provider} request to {url} failed: {e}")
            raise _network_error(url, provider) from e
    return _check_response(response, provider)
