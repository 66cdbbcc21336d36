"""
Chatbot Configuration

Persona defaults and identifiers for the memory-backed chatbot.
"""
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional


DEFAULT_USER_ID = "default"
"""Owner of core/archival memory when a turn names no user"""


@dataclass(frozen=True)
class Persona:
    """Who the assistant is; rendered at the top of every system prompt."""
    name: str = "Loom"
    role: str = "general-purpose assistant with long-term memory"
    personality: str = "Friendly, patient and precise. Prefers clear answers over long ones."
    specialties: List[str] = field(default_factory=list)
    language: str = "the user's language"

    def merged(self, overrides: Optional[Dict[str, Any]] = None) -> "Persona":
        """Copy with the given fields replaced; unknown keys are ignored."""
        known = {k: v for k, v in (overrides or {}).items() if k in self.__dataclass_fields__ and v is not None}
        return replace(self, **known)


DEFAULT_PERSONA = Persona()
