"""Credential resolution for the providers selected in a run."""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

from config import settings
from models.domain import CREDENTIAL_FAMILIES, CredentialFamily, LLMProvider
from models.schemas import AnalysisConfiguration
from services.errors import ConfigurationError

logger = logging.getLogger(__name__)

ENV_API_KEYS = {
    CredentialFamily.GEMINI: lambda: settings.gemini_api_key,
    CredentialFamily.OPENAI: lambda: settings.openai_api_key,
    CredentialFamily.PERPLEXITY: lambda: settings.perplexity_api_key,
}

API_BASES = {
    CredentialFamily.GEMINI: lambda: settings.gemini_api_base,
    CredentialFamily.OPENAI: lambda: settings.openai_api_base,
    CredentialFamily.PERPLEXITY: lambda: settings.perplexity_api_base,
}

FAMILY_DISPLAY_NAMES = {
    CredentialFamily.GEMINI: "Google Gemini",
    CredentialFamily.OPENAI: "OpenAI",
    CredentialFamily.PERPLEXITY: "Perplexity",
}


@dataclass(frozen=True)
class ProviderCredentials:
    family: CredentialFamily
    api_key: str
    api_base: str


LLMClients = Dict[LLMProvider, ProviderCredentials]


def resolve_api_key(config: AnalysisConfiguration, family: CredentialFamily) -> Optional[str]:
    configured = getattr(config.api_keys, family.value)
    if configured:
        return configured
    return ENV_API_KEYS[family]()


def initialize_clients(config: AnalysisConfiguration) -> LLMClients:
    """Validate credentials and models for every selected provider.

    Providers of the same credential family share one ``ProviderCredentials``
    handle. Raises ``ConfigurationError`` before anything is started.
    """
    handles: Dict[CredentialFamily, ProviderCredentials] = {}
    clients: LLMClients = {}

    for provider in config.providers:
        family = CREDENTIAL_FAMILIES[provider]
        if family not in handles:
            api_key = resolve_api_key(config, family)
            if not api_key:
                raise ConfigurationError(f"{FAMILY_DISPLAY_NAMES[family]} API Key is missing.")
            handles[family] = ProviderCredentials(family=family, api_key=api_key, api_base=API_BASES[family]())

        if not config.models.get(provider):
            raise ConfigurationError(f"No model configured for {provider.display_name}.")

        clients[provider] = handles[family]

    logger.debug(f"Initialized clients for providers: {[p.value for p in clients]}")
    return clients
