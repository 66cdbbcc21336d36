"""Prompts for conversation summarization."""

SUMMARY_SYSTEM_PROMPT = """You are a memory-recall helper for an AI assistant.
You will receive a slice of conversation history that is about to leave the assistant's context window.

Extract the durable facts the assistant will need later:
- facts about the user (preferences, background, goals, constraints)
- decisions that were made and commitments the assistant gave
- open questions and unfinished tasks
- names, numbers, identifiers and dates that were mentioned

Write them as short bullet points. Record facts, not a narrative recap of who said what.
Skip greetings, filler and anything that is no longer true.
Keep the list compact; it may be re-read on every future turn."""


def build_summary_prompt(transcript: str, retain_count: int) -> str:
    if retain_count == 0:
        situation = "The assistant is about to forget all prior messages in this conversation."
    else:
        situation = (
            f"The assistant can only keep the last {retain_count} messages; "
            "everything below is about to be evicted."
        )

    return f"""{situation}

Conversation to summarize:
{transcript}

Return only the bullet points."""


# ============================================================================
# Memory extraction
# ============================================================================

PATCH_INSTRUCTION = "Extract the user profile updates as a JSON object. Return only valid JSON, no explanation."

INSERT_INSTRUCTION = "Extract notable memories as a JSON array. Return only valid JSON, no explanation."


def build_patch_prompt(description: str, parameters: str, current_profile: str, extra: str = "") -> str:
    return f"""You are a memory extraction assistant. Extract user information from the conversation and return a JSON object.

{description}
{extra}
Current user profile:
{current_profile or "No existing profile"}

Schema:
{parameters}

Instructions:
- Only extract information that is explicitly mentioned or strongly implied
- Return a JSON object with only the fields that should be updated
- Use null for fields that should be cleared
- Leave out fields for which the conversation has no new information
- Return an empty object {{}} if no updates are needed"""


def build_insert_prompt(description: str, parameters: str, extra: str = "") -> str:
    return f"""You are a memory extraction assistant. Extract notable memories from the conversation.

{description}
{extra}
Schema:
{parameters}

Instructions:
- Extract several memories if appropriate
- Each memory has a 'context' field (when or where it is relevant) and a 'content' field (what to remember)
- Return a JSON array of memories
- Return an empty array [] if nothing is worth remembering"""
