from models.domain import (
    LLMProvider,
    MatchMode,
    Sentiment,
    TaskStatus,
    WorkUnit,
)
from models.schemas import (
    AdditionalAnswer,
    AnalysisConfiguration,
    AnalysisResult,
    ApiKeys,
    BrandAnalysis,
    Citation,
    KeyVerificationResult,
    ProviderResult,
    RunSummary,
    TokenUsage,
)

__all__ = [
    "LLMProvider",
    "MatchMode",
    "Sentiment",
    "TaskStatus",
    "WorkUnit",
    "AdditionalAnswer",
    "AnalysisConfiguration",
    "AnalysisResult",
    "ApiKeys",
    "BrandAnalysis",
    "Citation",
    "KeyVerificationResult",
    "ProviderResult",
    "RunSummary",
    "TokenUsage",
]
