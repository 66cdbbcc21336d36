"""
Memory Extraction

Reads a finished conversation and writes what is worth keeping into memory,
one LLM call per schema:

patch: the model returns field updates for a JSON profile kept in the
    user's ``profile`` core block (null clears a field).
insert: the model returns a list of {context, content} notes, each stored
    as an archival entry tagged with the session.

``schedule`` debounces per session: a new call within ``debounce_seconds``
replaces the pending one, so a burst of turns is extracted once. Once an
extraction has started it is never cancelled by a newer schedule.
"""
import asyncio
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Set

from agentloom.core.config import settings
from agentloom.models.dto.messages import ChatMessage
from agentloom.services.llm.clients.base import BaseLLMClient
from .archival import ArchivalMemory
from .memory_blocks import MemoryBlockManager
from .prompts import INSERT_INSTRUCTION, PATCH_INSTRUCTION, build_insert_prompt, build_patch_prompt
from .summarizer import Message, render_transcript

logger = logging.getLogger(__name__)

PROFILE_LABEL = "profile"
PROFILE_DESCRIPTION = "Structured facts about the user as JSON, maintained automatically from conversations."


class UpdateMode(str, Enum):
    PATCH = "patch"
    INSERT = "insert"


@dataclass(frozen=True)
class MemorySchema:
    """What to extract and how it is written back."""
    name: str
    description: str
    update_mode: UpdateMode
    parameters: Dict[str, Any]
    system_prompt: str = ""

    @property
    def properties(self) -> Dict[str, Any]:
        return self.parameters.get("properties") or {}


USER_PROFILE_SCHEMA = MemorySchema(
    name="user_profile",
    description="Basic facts about the user that stay true across conversations.",
    update_mode=UpdateMode.PATCH,
    parameters={
        "type": "object",
        "properties": {
            "preferred_name": {"type": "string", "description": "How the user likes to be addressed"},
            "age": {"type": "integer"},
            "occupation": {"type": "string"},
            "location": {"type": "string"},
            "interests": {"type": "array", "items": {"type": "string"}},
            "conversation_preferences": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Tone, format or language the user prefers",
            },
            "relationships": {
                "type": "array",
                "items": {"type": "string"},
                "description": "People the user mentions and how they relate",
            },
        },
    },
)

NOTES_SCHEMA = MemorySchema(
    name="notes",
    description="Events, plans, decisions and other specifics worth recalling in later conversations.",
    update_mode=UpdateMode.INSERT,
    parameters={
        "type": "array",
        "items": {
            "type": "object",
            "properties": {
                "context": {"type": "string", "description": "When or where this memory is relevant"},
                "content": {"type": "string", "description": "What to remember"},
            },
            "required": ["content"],
        },
    },
)

DEFAULT_MEMORY_SCHEMAS = (USER_PROFILE_SCHEMA, NOTES_SCHEMA)


@dataclass
class ExtractionResult:
    profile_fields: Dict[str, Any] = field(default_factory=dict)
    inserted_ids: List[str] = field(default_factory=list)
    failed_schemas: List[str] = field(default_factory=list)


class MemoryExtractor:
    """Turns conversations into profile updates and archival notes."""

    def __init__(
        self,
        llm: BaseLLMClient,
        memory: MemoryBlockManager,
        archival: Optional[ArchivalMemory] = None,
        debounce_seconds: Optional[float] = None,
        schemas: Sequence[MemorySchema] = DEFAULT_MEMORY_SCHEMAS,
    ):
        self.llm = llm
        self.memory = memory
        self.archival = archival
        self.debounce_seconds = settings.MEMORY_DEBOUNCE_SECONDS if debounce_seconds is None else debounce_seconds
        self.schemas = tuple(schemas)
        self._pending: Dict[str, asyncio.Task] = {}
        self._running: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    async def get_profile(self, user_id: str) -> Dict[str, Any]:
        block = await self.memory.get_block(user_id, PROFILE_LABEL)
        if block is None or not block.value.strip():
            return {}
        try:
            profile = json.loads(block.value)
        except ValueError:
            logger.warning(f"Profile block for user {user_id} is not valid JSON; starting a new profile")
            return {}
        return profile if isinstance(profile, dict) else {}

    async def extract(
        self,
        user_id: str,
        session_id: Optional[str],
        messages: Sequence[Message],
        schemas: Optional[Sequence[MemorySchema]] = None,
    ) -> ExtractionResult:
        """Run every schema over the conversation. A failing schema does not stop the others."""
        result = ExtractionResult()
        transcript = render_transcript(messages)
        if not transcript.strip():
            return result

        schemas = tuple(schemas) if schemas is not None else self.schemas
        outcomes = await asyncio.gather(
            *(self._apply(schema, user_id, session_id, transcript) for schema in schemas),
            return_exceptions=True,
        )
        for schema, outcome in zip(schemas, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, Exception):
                logger.warning(f"❌ Memory extraction '{schema.name}' failed for user {user_id}: {outcome}")
                result.failed_schemas.append(schema.name)
            elif schema.update_mode == UpdateMode.PATCH:
                result.profile_fields.update(outcome)
            else:
                result.inserted_ids.extend(outcome)

        logger.info(
            f"🧠 Extracted memory for user {user_id}: {len(result.profile_fields)} profile field(s), "
            f"{len(result.inserted_ids)} note(s), {len(result.failed_schemas)} failure(s)"
        )
        return result

    async def _apply(self, schema: MemorySchema, user_id: str, session_id: Optional[str], transcript: str) -> Any:
        if schema.update_mode == UpdateMode.PATCH:
            return await self._patch(schema, user_id, transcript)
        return await self._insert(schema, user_id, session_id, transcript)

    async def _ask(self, system_prompt: str, instruction: str, transcript: str) -> Any:
        response = await self.llm.ainvoke([
            ChatMessage.system(system_prompt),
            ChatMessage.user(f"{instruction}\n\nConversation:\n{transcript}"),
        ])
        return self.llm.parse_json_response(response.content)

    async def _patch(self, schema: MemorySchema, user_id: str, transcript: str) -> Dict[str, Any]:
        current = await self.get_profile(user_id)
        prompt = build_patch_prompt(
            schema.description,
            json.dumps(schema.parameters, indent=2),
            json.dumps(current, indent=2, ensure_ascii=False) if current else "",
            schema.system_prompt,
        )
        data = await self._ask(prompt, PATCH_INSTRUCTION, transcript)
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")

        allowed = schema.properties
        updates = {k: v for k, v in data.items() if not allowed or k in allowed}
        profile = dict(current)
        for key, value in updates.items():
            if value is None:
                profile.pop(key, None)
            else:
                profile[key] = value
        if profile == current:
            return {}

        written = await self.memory.upsert_block(
            user_id,
            PROFILE_LABEL,
            json.dumps(profile, ensure_ascii=False, sort_keys=True),
            description=PROFILE_DESCRIPTION,
        )
        if not written.success:
            raise ValueError(written.message)
        return updates

    async def _insert(self, schema: MemorySchema, user_id: str, session_id: Optional[str], transcript: str) -> List[str]:
        if self.archival is None:
            raise ValueError(f"schema '{schema.name}' inserts notes but no archival memory is configured")

        prompt = build_insert_prompt(schema.description, json.dumps(schema.parameters, indent=2), schema.system_prompt)
        data = await self._ask(prompt, INSERT_INSTRUCTION, transcript)
        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list):
            raise ValueError(f"expected a JSON array, got {type(data).__name__}")

        ids = []
        for item in data:
            if not isinstance(item, dict) or not str(item.get("content") or "").strip():
                continue
            ids.append(await self.archival.insert(
                user_id,
                str(item["content"]).strip(),
                context=item.get("context") or None,
                importance=0.5,
                session_id=session_id,
                metadata={"source": "extraction", "schema": schema.name},
            ))
        return ids

    # ------------------------------------------------------------------
    # Debounced background runs
    # ------------------------------------------------------------------

    @property
    def pending(self) -> int:
        """Scheduled runs still waiting out their debounce."""
        return sum(1 for task in self._pending.values() if not task.done())

    def schedule(
        self,
        session_id: str,
        user_id: str,
        messages: Sequence[Message],
        schemas: Optional[Sequence[MemorySchema]] = None,
    ) -> asyncio.Task:
        """Extract after ``debounce_seconds`` unless the session is scheduled again first."""
        previous = self._pending.get(session_id)
        if previous is not None and not previous.done():
            previous.cancel()
            logger.debug(f"Memory extraction for session {session_id} rescheduled")

        task = asyncio.create_task(self._run_later(session_id, user_id, list(messages), schemas))
        self._pending[session_id] = task
        return task

    async def _run_later(
        self,
        session_id: str,
        user_id: str,
        messages: List[Message],
        schemas: Optional[Sequence[MemorySchema]],
    ) -> Optional[ExtractionResult]:
        task = asyncio.current_task()
        try:
            await asyncio.sleep(self.debounce_seconds)
        finally:
            if self._pending.get(session_id) is task:
                del self._pending[session_id]

        self._running.add(task)
        try:
            return await self.extract(user_id, session_id, messages, schemas)
        except Exception as e:
            logger.error(f"❌ Unexpected error in memory extraction for session {session_id}: {e}", exc_info=True)
            return None
        finally:
            self._running.discard(task)

    async def flush(self) -> None:
        """Wait for every scheduled and running extraction."""
        while True:
            # A task cancelled before its first step never reaches its cleanup
            for key, task in list(self._pending.items()):
                if task.done():
                    del self._pending[key]
            tasks = [*self._pending.values(), *self._running]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    async def aclose(self) -> None:
        """Drop runs still in their debounce window, then wait for running ones."""
        for task in self._pending.values():
            task.cancel()
        await self.flush()
