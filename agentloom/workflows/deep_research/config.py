"""
Deep Research Configuration

Progress weights and tuning constants for the research pipeline.
"""
import os


# ============================================================================
# Progress Milestones (percent)
# ============================================================================

PROGRESS_ANALYZED = 20
"""Set after analyze_question succeeds"""

PROGRESS_PLANNED = 30
"""Set after generate_plan succeeds"""

PROGRESS_RESEARCH_SHARE = 40
"""Split evenly across sections; each section adds 40 / total_sections"""

PROGRESS_COMPLETED = 100
"""Set after generate_canvas succeeds"""


# ============================================================================
# Plan / Research Limits
# ============================================================================

MIN_PLAN_SECTIONS = int(os.getenv("DEEP_RESEARCH_MIN_SECTIONS", "3"))
"""Structured plan must contain at least this many sections"""

RESEARCH_MAX_TOOL_STEPS = int(os.getenv("DEEP_RESEARCH_MAX_TOOL_STEPS", "25"))
"""Step ceiling for the per-section agent tool loop"""

UNTITLED_SECTION = "Untitled section"
