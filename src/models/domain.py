import enum
from dataclasses import dataclass
from typing import Optional


class LLMProvider(str, enum.Enum):
    GEMINI = "gemini"
    OPENAI = "openai"
    OPENAI_WEBSEARCH = "openai-websearch"
    PERPLEXITY = "perplexity"

    @property
    def display_name(self) -> str:
        return PROVIDER_DISPLAY_NAMES[self]


PROVIDER_DISPLAY_NAMES = {
    LLMProvider.GEMINI: "Google Gemini",
    LLMProvider.OPENAI: "OpenAI",
    LLMProvider.OPENAI_WEBSEARCH: "OpenAI Web Search",
    LLMProvider.PERPLEXITY: "Perplexity",
}


class CredentialFamily(str, enum.Enum):
    GEMINI = "gemini"
    OPENAI = "openai"
    PERPLEXITY = "perplexity"


CREDENTIAL_FAMILIES = {
    LLMProvider.GEMINI: CredentialFamily.GEMINI,
    LLMProvider.OPENAI: CredentialFamily.OPENAI,
    LLMProvider.OPENAI_WEBSEARCH: CredentialFamily.OPENAI,
    LLMProvider.PERPLEXITY: CredentialFamily.PERPLEXITY,
}


class MatchMode(str, enum.Enum):
    EXACT = "exact"
    BROAD = "broad"


class Sentiment(str, enum.Enum):
    POSITIVE = "Positive"
    NEUTRAL = "Neutral"
    NEGATIVE = "Negative"
    NOT_MENTIONED = "Not Mentioned"


class TaskStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.ERROR)


@dataclass(frozen=True)
class WorkUnit:
    """Progress record for one (prompt, provider) pair."""

    id: str
    description: str
    status: TaskStatus = TaskStatus.PENDING
    error: Optional[str] = None
    retries: Optional[int] = None

    def to_dict(self) -> dict:
        data = {"id": self.id, "description": self.description, "status": self.status.value}
        if self.error is not None:
            data["error"] = self.error
        if self.retries is not None:
            data["retries"] = self.retries
        return data


def work_unit_id(prompt_index: int, provider: LLMProvider) -> str:
    return f"prompt-{prompt_index}-{provider.value}"


def describe_work_unit(prompt: str, provider: LLMProvider, model_name: Optional[str]) -> str:
    short_prompt = prompt[:40] + "..." if len(prompt) > 40 else prompt
    return f'Analyzing "{short_prompt}" with {provider.display_name} ({model_name or "default"})'
