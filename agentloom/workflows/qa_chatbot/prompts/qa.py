"""
QA Chatbot Prompts

Stage instructions plus the fixed header/footer each stage's output carries
so the user always knows where they are and how to move on.
"""

TEST_POINTS_GUIDE = """## Test point analysis
1. Identify every functional module and business flow in the requirements
2. For each, list test points: happy path, boundaries, invalid input, error handling, permissions, compatibility
3. Flag ambiguities or missing requirements as open questions
4. Use a nested Markdown list grouped by module"""

TEST_CASES_GUIDE = """## Test case generation
For every test point write one or more cases as a Markdown table with columns:
ID | Module | Title | Preconditions | Steps | Expected result | Priority (P0-P3)
Cover positive, negative and boundary cases; steps must be concrete and reproducible."""

REVIEW_GUIDE = """## Test case review
1. Check coverage against the requirements and test points; add missing cases
2. Remove duplicates and merge overlapping cases
3. Fix vague steps or expected results
4. Re-prioritize where needed
5. Output the complete, final case table followed by a short list of review changes"""

STAGE_HEADERS = {
    "test_points": "📋 **Stage 1/3: Test point analysis**\n\n",
    "test_cases": "🧪 **Stage 2/3: Test case generation**\n\n",
    "review": "✅ **Stage 3/3: Test case review**\n\n",
}

STAGE_FOOTERS = {
    "test_points": '\n\n---\nReply "continue" to generate test cases, or tell me what to change.',
    "test_cases": '\n\n---\nReply "continue" to review the cases, or tell me what to change.',
    "review": "\n\n---\nAll stages complete. Tell me if anything should still be adjusted.",
}

REVISE_HEADER = "📝 **Adjusted test cases**\n\n"
REVISE_FOOTER = "\n\n---\nAdjusted as requested; let me know if anything else should change."

STAGE_DESCRIPTIONS = {
    "init": "No requirements have been provided yet",
    "test_points": "We are in the test point analysis stage",
    "test_cases": "We are in the test case generation stage",
    "review": "We are in the test case review stage",
    "completed": "The test cases are complete",
}


def _framing(stage: str) -> str:
    return (
        "Important:\n"
        f"1. Start your output with: {STAGE_HEADERS[stage]!r}\n"
        f"2. End your output with: {STAGE_FOOTERS[stage]!r}\n"
    )


def test_points_prompt(prd_content: str = "", previous: str = "", revise: bool = False) -> str:
    if revise:
        return (
            "You are an expert QA engineer. The user has feedback on the previous test point analysis; redo it accordingly.\n\n"
            f"{TEST_POINTS_GUIDE}\n\n## Original requirements\n\n{prd_content}\n\n"
            f"## Previous test points\n\n{previous}\n\n{_framing('test_points')}"
            "3. Output the complete revised analysis, not just the changes."
        )
    return (
        "You are an expert QA engineer. The user will provide a PRD; analyze its test points.\n\n"
        f"{TEST_POINTS_GUIDE}\n\n{_framing('test_points')}"
        "3. Start the analysis directly with no preamble."
    )


def test_cases_prompt(test_points: str, previous: str = "", revise: bool = False) -> str:
    if revise:
        return (
            "You are an expert QA engineer. The user has feedback on the previous test cases; regenerate them accordingly.\n\n"
            f"{TEST_CASES_GUIDE}\n\n## Test points\n\n{test_points}\n\n"
            f"## Previous test cases\n\n{previous}\n\n{_framing('test_cases')}"
            "3. Output the complete revised cases, not just the changes."
        )
    return (
        "You are an expert QA engineer. Generate test cases from the test points below.\n\n"
        f"{TEST_CASES_GUIDE}\n\n{_framing('test_cases')}"
        "3. Start directly with no preamble.\n\n"
        f"## Test points\n\n{test_points}"
    )


def review_prompt(prd_content: str, test_points: str, test_cases: str) -> str:
    return (
        "You are an expert QA engineer. Review and improve the test cases.\n\n"
        f"{REVIEW_GUIDE}\n\n{_framing('review')}"
        "3. Start the review directly with no preamble.\n\n"
        f"## Original requirements\n\n{prd_content}\n\n"
        f"## Test points\n\n{test_points}\n\n"
        f"## Cases under review\n\n{test_cases}"
    )


def completed_revise_prompt(prd_content: str, test_points: str, test_cases: str) -> str:
    return (
        "You are an expert QA engineer. The user wants adjustments to the final test cases.\n\n"
        f"{REVIEW_GUIDE}\n\n"
        f"## Original requirements\n\n{prd_content}\n\n"
        f"## Test points\n\n{test_points}\n\n"
        f"## Current test cases\n\n{test_cases}\n\n"
        "Important:\n"
        f"1. Start your output with: {REVISE_HEADER!r}\n"
        f"2. End your output with: {REVISE_FOOTER!r}\n"
        "3. Output the complete adjusted test cases."
    )


def other_prompt(stage: str) -> str:
    return (
        f"You are an expert QA engineer. {STAGE_DESCRIPTIONS.get(stage, STAGE_DESCRIPTIONS['completed'])}.\n\n"
        "The user may be asking a question or giving feedback. Answer from the context.\n"
        "If the message reads like a change request for the current output, apply it and output that stage's full content again.\n"
        "Otherwise just answer the question.\n\n"
        'Afterwards remind the user they can reply "continue" to move to the next stage, or suggest changes.'
    )
