from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from models.domain import LLMProvider, MatchMode, Sentiment


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ApiKeys(CamelModel):
    gemini: Optional[str] = None
    openai: Optional[str] = None
    perplexity: Optional[str] = None


def _clean_entries(values: Optional[List[str]]) -> List[str]:
    if values is None:
        return []
    return [value.strip() for value in values if value and value.strip()]


class AnalysisConfiguration(CamelModel):
    providers: List[LLMProvider] = Field(..., min_length=1)
    models: Dict[LLMProvider, str] = Field(default_factory=dict)
    api_keys: ApiKeys = Field(default_factory=ApiKeys)
    client_name: str = Field(..., min_length=1)
    description: Optional[str] = None
    competitors: List[str] = Field(default_factory=list)
    prompts: List[str] = Field(..., min_length=1)
    additional_questions: List[str] = Field(default_factory=list)
    match_mode: MatchMode = MatchMode.EXACT

    @model_validator(mode="before")
    @classmethod
    def _accept_broad_match_flag(cls, data):
        # Saved configurations carry a boolean "broadMatch" instead of a mode.
        if isinstance(data, dict) and "broadMatch" in data and "matchMode" not in data and "match_mode" not in data:
            data = dict(data)
            data["match_mode"] = MatchMode.BROAD if data.pop("broadMatch") else MatchMode.EXACT
        return data

    @field_validator("providers")
    @classmethod
    def _dedupe_providers(cls, value: List[LLMProvider]) -> List[LLMProvider]:
        return list(dict.fromkeys(value))

    @field_validator("client_name")
    @classmethod
    def _strip_client_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("client name must not be blank")
        return value

    @field_validator("competitors", "additional_questions", mode="before")
    @classmethod
    def _clean_optional_lists(cls, value):
        return _clean_entries(value)

    @field_validator("prompts", mode="before")
    @classmethod
    def _clean_prompts(cls, value):
        cleaned = _clean_entries(value)
        if not cleaned:
            raise ValueError("at least one prompt is required")
        return cleaned

    @property
    def broad_match(self) -> bool:
        return self.match_mode == MatchMode.BROAD

    @property
    def known_brands(self) -> List[str]:
        seen = set()
        brands = []
        for brand in [self.client_name, *self.competitors]:
            key = brand.lower()
            if key not in seen:
                seen.add(key)
                brands.append(brand)
        return brands


class BrandAnalysis(CamelModel):
    brand_name: str
    mentions: int = Field(..., ge=0)
    sentiment: Sentiment

    @field_validator("sentiment", mode="before")
    @classmethod
    def _normalize_sentiment(cls, value):
        if isinstance(value, str):
            for sentiment in Sentiment:
                if value.strip().lower() == sentiment.value.lower():
                    return sentiment
        return value


class AdditionalAnswer(CamelModel):
    question: str
    answer: str


class Citation(CamelModel):
    index: int
    url: str
    title: Optional[str] = None


class TokenUsage(CamelModel):
    input_tokens: int = 0
    output_tokens: int = 0

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )


class ProviderResult(CamelModel):
    provider: LLMProvider
    response: str = ""
    brand_analyses: List[BrandAnalysis] = Field(default_factory=list)
    additional_answers: List[AdditionalAnswer] = Field(default_factory=list)
    raw_response: Optional[str] = None
    error: Optional[str] = None
    citations: Optional[List[Citation]] = None
    token_usage: Optional[TokenUsage] = None
    analysis_token_usage: Optional[TokenUsage] = None


class AnalysisResult(CamelModel):
    prompt: str
    provider_responses: List[ProviderResult]


class SentimentCounts(CamelModel):
    positive: int = 0
    neutral: int = 0
    negative: int = 0


class RunSummary(CamelModel):
    client_mentions: int = 0
    sentiment_counts: SentimentCounts = Field(default_factory=SentimentCounts)


class KeyVerificationRequest(CamelModel):
    provider: LLMProvider
    api_key: str = Field(..., min_length=1)


class KeyVerificationResult(CamelModel):
    is_valid: bool
    error: Optional[str] = None


class AnalysisRunResponse(CamelModel):
    results: List[AnalysisResult]
    summary: RunSummary
    tasks: List[dict]
