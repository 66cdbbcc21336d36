from .qa import (
    STAGE_FOOTERS,
    STAGE_HEADERS,
    completed_revise_prompt,
    other_prompt,
    review_prompt,
    test_cases_prompt,
    test_points_prompt,
)

__all__ = [
    "STAGE_FOOTERS",
    "STAGE_HEADERS",
    "completed_revise_prompt",
    "other_prompt",
    "review_prompt",
    "test_cases_prompt",
    "test_points_prompt",
]
