from .research import (
    ANALYSIS_PROMPT,
    CANVAS_SYSTEM_PROMPT,
    RESEARCH_SYSTEM_PROMPT,
    build_analysis_prompt,
    build_canvas_prompt,
    build_plan_prompt,
    build_section_prompt,
)

__all__ = [
    "ANALYSIS_PROMPT",
    "CANVAS_SYSTEM_PROMPT",
    "RESEARCH_SYSTEM_PROMPT",
    "build_analysis_prompt",
    "build_canvas_prompt",
    "build_plan_prompt",
    "build_section_prompt",
]
