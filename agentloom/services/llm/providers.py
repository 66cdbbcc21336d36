"""Model provider identifiers and model-id parsing."""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from agentloom.core.config import settings


class ModelProvider(str, Enum):
    """Supported chat-model providers."""
    OPENAI = "openai"
    ANTHROPIC = "anthropic"


@dataclass(frozen=True)
class ModelSpec:
    """A provider plus an optional model name (None = provider default)."""
    provider: ModelProvider
    model: Optional[str] = None

    @classmethod
    def parse(cls, model_id: Optional[str]) -> "ModelSpec":
        """
        Parse "provider:model" ids. Ids without a known provider prefix
        use the configured default provider.

        >>> ModelSpec.parse("anthropic:claude-sonnet-4-5")
        ModelSpec(provider=<ModelProvider.ANTHROPIC: 'anthropic'>, model='claude-sonnet-4-5')
        """
        default = ModelProvider(settings.LLM_PROVIDER)
        if not model_id:
            return cls(default, settings.LLM_MODEL or None)

        prefix, sep, rest = model_id.partition(":")
        if sep:
            try:
                return cls(ModelProvider(prefix.lower()), rest or None)
            except ValueError:
                pass
        return cls(default, model_id)

    @property
    def model_id(self) -> str:
        return f"{self.provider.value}:{self.model or 'default'}"
