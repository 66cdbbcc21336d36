"""
Deep Research Prompts

Separates prompt wording (domain logic) from LLM calls (infrastructure).
"""
import json
from typing import Any, Dict, List


ANALYSIS_PROMPT = """Analyze the following research question: {question}

Return ONLY a JSON object in exactly this format, with no other text:

{{
  "core_theme": "the core theme of the question (string)",
  "keywords": ["keyword 1", "keyword 2", "keyword 3"],
  "complexity": "simple|medium|complex (exactly one of these)",
  "estimated_time": estimated research time in hours (number),
  "research_directions": ["direction 1", "direction 2", "direction 3"],
  "source_types": ["source type 1", "source type 2", "source type 3"]
}}

Requirements:
1. Return only the JSON object
2. complexity must be "simple", "medium" or "complex"
3. estimated_time must be a number (hours)
4. Every array holds 2-5 items
"""


PLAN_PROMPT = """You are a rigorous research planner. Based on the question analysis, produce an executable research plan.

Question: {question}
Analysis: {analysis}

Requirements:
1) Output must match the given structured schema.
2) Title and description must be specific and searchable, not generic.
3) objectives/methodology are clear, actionable verb phrases.
4) At least {min_sections} sections, ordered by priority (highest first), covering the main research directions.
5) No extra text or explanation.
"""


RESEARCH_SYSTEM_PROMPT = """You are an expert researcher. Complete the research for one report section.

- This is a single task: finish it in one go
- Use the available tools to search for information, then write the section
- Return the finished section as your final answer

Output requirements:
- Markdown with a clear heading structure
- Concrete data and facts
- Coherent, well-supported argument
- Reasonable length for one section
"""


SECTION_PROMPT = """**Original research question**: {question}

**Current section**:
- Title: {title}
- Description: {description}
- Priority: {priority}

**Requirements**:
1. Build this section around the original question "{question}"
2. Search for current, accurate information first
3. Analyze it and write structured content that answers the question
4. Markdown with headings and sub-headings
5. Typically 500-1500 words

Return the complete section content (Markdown) directly."""


CANVAS_SYSTEM_PROMPT = """You turn research results into a single self-contained report artifact.

Wrap the output in <canvasArtifact id="{artifact_id}"> ... </canvasArtifact>.
Use semantic structure (title, sections, key points) and keep every piece of section content.
After the artifact, add a short summary of what it contains."""


CANVAS_PROMPT = """Build a visual report from the research question and section content below.

Research question: {question}

Section content:
{sections}
"""


def build_analysis_prompt(question: str) -> str:
    return ANALYSIS_PROMPT.format(question=question)


def build_plan_prompt(question: str, analysis: Any, min_sections: int) -> str:
    return PLAN_PROMPT.format(
        question=question,
        analysis=json.dumps(analysis, ensure_ascii=False, indent=2),
        min_sections=min_sections,
    )


def build_section_prompt(question: str, section: Dict[str, Any]) -> str:
    return SECTION_PROMPT.format(
        question=question,
        title=section.get("title", ""),
        description=section.get("description", ""),
        priority=section.get("priority", ""),
    )


def build_canvas_prompt(question: str, sections: List[Dict[str, Any]]) -> str:
    body = "\n\n".join(f"## {s['title']}\n{s['content']}" for s in sections)
    return CANVAS_PROMPT.format(question=question, sections=body)
