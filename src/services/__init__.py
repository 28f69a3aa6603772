from .errors import (
    AnalysisError,
    AuthenticationError,
    ConfigurationError,
    ParseError,
    ProviderAPIError,
    TransportError,
)
from .key_verification import verify_api_key
from .metrics_service import calculate_run_summary, summarize_token_usage

__all__ = [
    "AnalysisError",
    "AuthenticationError",
    "ConfigurationError",
    "ParseError",
    "ProviderAPIError",
    "TransportError",
    "calculate_run_summary",
    "summarize_token_usage",
    "verify_api_key",
]
