import logging
import re
from typing import Any, Dict, List, Optional, Type

import openai
from openai import AsyncOpenAI

from config import settings
from models.domain import LLMProvider
from models.schemas import AnalysisConfiguration, BrandAnalysis, Citation
from services.base_llm import (
    BaseAnalysisAdapter,
    Completion,
    load_json,
    parse_brand_entries,
    parse_brands_object,
)
from services.clients import LLMClients
from services.errors import AuthenticationError, ParseError, TransportError, error_for_status
from services.transport import bearer_headers, post_json

logger = logging.getLogger(__name__)

FENCED_JSON_PATTERN = re.compile(r"```json\s*\n(.*?)\n?```", re.DOTALL)

GEMINI_ANALYSIS_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "brandName": {"type": "STRING"},
            "mentions": {"type": "INTEGER"},
            "sentiment": {
                "type": "STRING",
                "enum": ["Positive", "Neutral", "Negative", "Not Mentioned"],
            },
        },
        "required": ["brandName", "mentions", "sentiment"],
    },
}


class GeminiAdapter(BaseAnalysisAdapter):
    provider = LLMProvider.GEMINI
    analysis_prompt_style = "schema"

    def default_api_base(self) -> str:
        return settings.gemini_api_base

    def _build_payload(self, prompt: str, structured: bool) -> dict:
        payload = {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}
        if structured:
            payload["generationConfig"] = {
                "responseMimeType": "application/json",
                "responseSchema": GEMINI_ANALYSIS_SCHEMA,
            }
        return payload

    async def _complete(self, prompt: str, model: str, structured: bool = False) -> Completion:
        url = f"{self.api_base}/models/{model}:generateContent"
        headers = {"x-goog-api-key": self.api_key, "Content-Type": "application/json"}
        result = await post_json(url, self._build_payload(prompt, structured), headers, self.provider.value)
        return self._parse_response(result)

    def _parse_response(self, result: dict) -> Completion:
        candidates = result.get("candidates") or []
        if not candidates:
            block_reason = (result.get("promptFeedback") or {}).get("blockReason")
            if block_reason:
                raise ParseError(f"Google Gemini blocked the prompt: {block_reason}")
            raise ParseError("Invalid response structure from Google Gemini API.")
        parts = (candidates[0].get("content") or {}).get("parts", [])
        text = "".join(part.get("text", "") for part in parts if not part.get("thought"))
        usage = result.get("usageMetadata") or {}
        return Completion(
            text=text,
            input_tokens=usage.get("promptTokenCount") or 0,
            output_tokens=(usage.get("candidatesTokenCount") or 0) + (usage.get("thoughtsTokenCount") or 0),
            raw=result,
        )

    def _parse_brand_analyses(self, text: str) -> List[BrandAnalysis]:
        return parse_brand_entries(load_json(text))


def _map_openai_error(error: openai.APIError, provider: str) -> Exception:
    if isinstance(error, openai.AuthenticationError):
        return AuthenticationError(
            "Authentication failed. Please check your API key.", status_code=401, provider=provider
        )
    if isinstance(error, openai.APIStatusError):
        return error_for_status(error.message, error.status_code, provider=provider)
    if isinstance(error, openai.APIConnectionError):
        return TransportError(f"Network Error: {error}", provider=provider)
    return ParseError(f"Unexpected response from OpenAI: {error}")


class OpenAIAdapter(BaseAnalysisAdapter):
    provider = LLMProvider.OPENAI
    analysis_prompt_style = "json"

    def default_api_base(self) -> str:
        return settings.openai_api_base

    def _get_client(self) -> AsyncOpenAI:
        # Retries are owned by the pipeline, not the SDK.
        return AsyncOpenAI(
            api_key=self.api_key,
            base_url=self.api_base,
            max_retries=0,
            timeout=settings.http_timeout_seconds,
        )

    async def _complete(self, prompt: str, model: str, structured: bool = False) -> Completion:
        request_kwargs: Dict[str, Any] = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
        }
        if structured:
            request_kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self._get_client().chat.completions.create(**request_kwargs)
        except openai.APIError as e:
            logger.error(f"{self.provider.value} API error: {e}")
            raise _map_openai_error(e, self.provider.value) from e

        if not response.choices:
            raise ParseError("Invalid response structure from OpenAI Chat Completions API.")
        usage = response.usage
        return Completion(
            text=response.choices[0].message.content or "",
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            raw=response.model_dump(mode="json"),
        )

    def _parse_brand_analyses(self, text: str) -> List[BrandAnalysis]:
        return parse_brands_object(text)


class ChatCompletionsAdapter(BaseAnalysisAdapter):
    """Adapter speaking the chat-completions wire format over plain HTTP."""

    structured_response_format: Optional[dict] = None

    def _build_payload(self, prompt: str, model: str, structured: bool) -> dict:
        payload = {"model": model, "messages": [{"role": "user", "content": prompt}]}
        if structured and self.structured_response_format:
            payload["response_format"] = self.structured_response_format
        return payload

    async def _complete(self, prompt: str, model: str, structured: bool = False) -> Completion:
        url = f"{self.api_base}/chat/completions"
        result = await post_json(
            url, self._build_payload(prompt, model, structured), bearer_headers(self.api_key), self.provider.value
        )
        return self._parse_response(result)

    def _parse_response(self, result: dict) -> Completion:
        choices = result.get("choices") or []
        message = choices[0].get("message") if choices else None
        if not isinstance(message, dict):
            raise ParseError(f"Invalid response structure from {self.provider.display_name} API.")
        content = message.get("content")
        usage = result.get("usage") or {}
        return Completion(
            text=content if isinstance(content, str) else "",
            input_tokens=usage.get("prompt_tokens") or 0,
            output_tokens=usage.get("completion_tokens") or 0,
            raw=result,
        )


class OpenAIWebSearchAdapter(ChatCompletionsAdapter):
    provider = LLMProvider.OPENAI_WEBSEARCH
    analysis_prompt_style = "json"
    initial_trace_type = "initial_web_search"
    structured_response_format = {"type": "json_object"}

    def default_api_base(self) -> str:
        return settings.openai_api_base

    @property
    def analysis_model(self) -> str:
        return settings.websearch_analysis_model

    def _primary_text(self, completion: Completion) -> str:
        if not completion.text.strip():
            return "No text summary provided by the model."
        return completion.text

    def _answer_text(self, completion: Completion) -> str:
        return completion.text or "Could not generate an answer."

    def _extract_citations(self, raw: Any) -> Optional[List[Citation]]:
        message = raw["choices"][0]["message"]
        annotations = message.get("annotations")
        citations = []
        if not isinstance(annotations, list):
            return citations
        for annotation in annotations:
            if not isinstance(annotation, dict) or annotation.get("type") != "url_citation":
                continue
            url_citation = annotation.get("url_citation") or {}
            if url_citation.get("url"):
                citations.append(
                    Citation(index=len(citations) + 1, url=url_citation["url"], title=url_citation.get("title"))
                )
        return citations

    def _parse_brand_analyses(self, text: str) -> List[BrandAnalysis]:
        return parse_brands_object(text)


class PerplexityAdapter(ChatCompletionsAdapter):
    provider = LLMProvider.PERPLEXITY
    analysis_prompt_style = "fenced"

    def default_api_base(self) -> str:
        return settings.perplexity_api_base

    def _extract_citations(self, raw: Any) -> Optional[List[Citation]]:
        citations = []
        seen_urls = set()

        def add(url: Any, title: Optional[str]) -> None:
            if isinstance(url, str) and url not in seen_urls:
                seen_urls.add(url)
                citations.append(Citation(index=len(citations) + 1, url=url, title=title or None))

        for url in raw.get("citations") or []:
            add(url, None)
        for result in raw.get("search_results") or []:
            if isinstance(result, dict):
                add(result.get("url"), result.get("title"))
        return citations

    def _parse_brand_analyses(self, text: str) -> List[BrandAnalysis]:
        match = FENCED_JSON_PATTERN.search(text)
        if not match:
            raise ParseError("Analysis output has no ```json code block")
        return parse_brands_object(match.group(1))


ADAPTERS: Dict[LLMProvider, Type[BaseAnalysisAdapter]] = {
    LLMProvider.GEMINI: GeminiAdapter,
    LLMProvider.OPENAI: OpenAIAdapter,
    LLMProvider.OPENAI_WEBSEARCH: OpenAIWebSearchAdapter,
    LLMProvider.PERPLEXITY: PerplexityAdapter,
}


def create_adapter(provider: LLMProvider, clients: LLMClients, config: AnalysisConfiguration) -> BaseAnalysisAdapter:
    adapter_class = ADAPTERS.get(provider)
    if adapter_class is None:
        raise ValueError(f"No adapter for provider: {provider}")
    credentials = clients[provider]
    return adapter_class(api_key=credentials.api_key, model=config.models[provider], api_base=credentials.api_base)
