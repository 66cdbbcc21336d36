"""
Tests for the deep research workflow with a scripted model.

Call order per run: analysis -> plan (structured) -> [approval interrupt]
-> one tool-loop call per section -> canvas.
"""
import json

import pytest

from agentloom.workflows.deep_research import build_deep_research_graph, create_initial_state, validate_state
from agentloom.workflows.deep_research.nodes import extract_feedback, next_section_index, route_after_plan
from agentloom.workflows.engine import END, INTERRUPT_KEY, Command, InMemoryCheckpointSaver, RunConfig, StepEvent

QUESTION = "How did coffee spread around the world?"

ANALYSIS = json.dumps({
    "core_theme": "Global spread of coffee",
    "keywords": ["coffee", "trade"],
    "complexity": "medium",
    "estimated_time": 2,
    "research_directions": ["origins", "trade routes"],
    "source_types": ["books"],
})


def plan_json(*titles: str) -> str:
    return json.dumps({
        "title": "Coffee's journey",
        "description": "From Ethiopia to the world",
        "objectives": ["Trace origins"],
        "methodology": ["Literature review"],
        "expected_outcome": "A timeline",
        "sections": [
            {"title": title, "description": f"About {title}", "priority": len(titles) - i}
            for i, title in enumerate(titles)
        ],
    })


PLAN = plan_json("Origins", "Trade routes", "Modern culture")


def run_config(llm, thread_id: str = "research-1") -> RunConfig:
    return RunConfig(thread_id=thread_id, configurable={"llm": llm, "tools": []})


# ============================================================================
# Full runs
# ============================================================================

class TestApprovalFlow:

    @pytest.mark.asyncio
    async def test_plan_waits_for_approval(self, make_llm):
        llm = make_llm([ANALYSIS, PLAN])
        graph = build_deep_research_graph(InMemoryCheckpointSaver())

        result = await graph.ainvoke(create_initial_state(QUESTION), run_config(llm))

        (payload,) = result[INTERRUPT_KEY]
        assert payload["type"] == "waiting_approval"
        assert [s["title"] for s in payload["plan"]["sections"]] == ["Origins", "Trade routes", "Modern culture"]
        assert result["status"] == "waiting_approval"
        assert result["approval_status"] == "pending"
        assert result["progress"] == 30
        assert result["analysis"]["core_theme"] == "Global spread of coffee"

        plan_call = llm.calls[1]["messages"]
        assert plan_call[0].role == "system"
        assert plan_call[0].content.startswith("Respond with a single JSON object")

    @pytest.mark.asyncio
    async def test_approve_runs_sections_then_canvas(self, make_llm):
        llm = make_llm([ANALYSIS, PLAN, "Ethiopia notes", "Yemen notes", "Cafe notes", "<html>report</html>"])
        graph = build_deep_research_graph(InMemoryCheckpointSaver())
        cfg = run_config(llm)

        await graph.ainvoke(create_initial_state(QUESTION), cfg)
        waiting = graph.get_state(cfg.for_thread()).interrupt_id
        events = [e async for e in graph.astream(Command(resume={"user_feedback": ""}, interrupt_id=waiting), cfg)]

        assert [e.node for e in events] == [
            "human_approval",
            "coordinate_research",
            "coordinate_research",
            "coordinate_research",
            "generate_canvas",
        ]
        assert all(isinstance(e, StepEvent) for e in events)
        progress = [e.values["progress"] for e in events]
        assert progress[0] == 30
        assert progress[1:4] == pytest.approx([30 + 40 / 3, 30 + 80 / 3, 70])
        assert progress[4] == 100

        final = events[-1].values
        assert final["status"] == "completed"
        assert final["approval_status"] == "approved"
        assert final["final_artifact"] == "<html>report</html>"
        assert [(c["section_index"], c["title"], c["content"]) for c in final["generated_content"]] == [
            (0, "Origins", "Ethiopia notes"),
            (1, "Trade routes", "Yemen notes"),
            (2, "Modern culture", "Cafe notes"),
        ]
        # Section calls bind no tools when none are configured
        assert all(call["tools"] is None for call in llm.calls[2:5])
        assert "Ethiopia notes" in llm.calls[5]["messages"][1].content
        assert not graph.get_state(cfg.for_thread()).is_waiting

    @pytest.mark.asyncio
    async def test_feedback_regenerates_plan(self, make_llm):
        revised = plan_json("Origins", "Trade routes", "Pricing", "Modern culture")
        llm = make_llm([ANALYSIS, PLAN, revised])
        graph = build_deep_research_graph(InMemoryCheckpointSaver())
        cfg = run_config(llm)

        await graph.ainvoke(create_initial_state(QUESTION), cfg)
        result = await graph.ainvoke(
            Command(resume="Add a section on pricing", interrupt_id=graph.get_state(cfg.for_thread()).interrupt_id), cfg
        )

        (payload,) = result[INTERRUPT_KEY]
        assert [s["title"] for s in payload["plan"]["sections"]][2] == "Pricing"
        assert result["approval_status"] == "pending"
        assert result["user_feedback"] == ""

        replan = llm.calls[2]["messages"]
        assert replan[-1].content == "Add a section on pricing"
        # The earlier plan is part of the conversation being continued
        assert any("Coffee's journey" in m.content for m in replan[1:-1])

    @pytest.mark.asyncio
    async def test_failed_section_is_recorded_and_run_continues(self, make_llm):
        llm = make_llm([ANALYSIS, PLAN, "Ethiopia notes", RuntimeError("search backend down"), "Cafe notes", "report"])
        graph = build_deep_research_graph(InMemoryCheckpointSaver())
        cfg = run_config(llm)

        await graph.ainvoke(create_initial_state(QUESTION), cfg)
        final = await graph.ainvoke(Command(resume="", interrupt_id=graph.get_state(cfg.for_thread()).interrupt_id), cfg)

        assert final["status"] == "completed"
        assert final["generated_content"][1]["content"] == "**Research failed**: search backend down"
        assert final["progress"] == 100


class TestFailures:

    @pytest.mark.asyncio
    async def test_unparseable_analysis_ends_run(self, make_llm):
        llm = make_llm(["I think coffee is great"])
        graph = build_deep_research_graph(InMemoryCheckpointSaver())

        result = await graph.ainvoke(create_initial_state(QUESTION), run_config(llm))

        assert INTERRUPT_KEY not in result
        assert result["status"] == "error"
        assert result["error"].startswith("Question analysis failed")
        assert result.get("plan") is None
        assert len(llm.calls) == 1
        assert graph.get_state({"thread_id": "research-1"}).next == ()

    @pytest.mark.asyncio
    async def test_invalid_plan_ends_run(self, make_llm):
        llm = make_llm([ANALYSIS, plan_json("Only one section")])
        graph = build_deep_research_graph(InMemoryCheckpointSaver())

        result = await graph.ainvoke(create_initial_state(QUESTION), run_config(llm))

        assert INTERRUPT_KEY not in result
        assert result["status"] == "error"
        assert result["error"].startswith("Plan generation failed")
        assert result["progress"] == 20

    @pytest.mark.asyncio
    async def test_missing_model(self):
        graph = build_deep_research_graph(InMemoryCheckpointSaver())

        result = await graph.ainvoke(create_initial_state(QUESTION), RunConfig(thread_id="no-llm"))

        assert result["status"] == "error"
        assert result["error"] == "LLM not configured"


# ============================================================================
# Helpers
# ============================================================================

class TestHelpers:

    def test_route_after_plan(self):
        assert route_after_plan({"status": "error"}) == END
        assert route_after_plan({"status": "waiting_approval"}) == "human_approval"

    def test_extract_feedback(self):
        assert extract_feedback("more depth") == "more depth"
        assert extract_feedback({"user_feedback": "a"}) == "a"
        assert extract_feedback({"userFeedback": "b"}) == "b"
        assert extract_feedback({"other": 1}) == ""
        assert extract_feedback(None) == ""

    def test_next_section_index(self):
        plan = {"sections": [{"title": "a"}, {"title": "b"}]}
        assert next_section_index({"plan": plan, "generated_content": []}) == 0
        assert next_section_index({"plan": plan, "generated_content": [{"section_index": 0}]}) == 1
        assert next_section_index({"plan": plan, "generated_content": [{"section_index": 0}, {"section_index": 1}]}) is None
        assert next_section_index({}) is None

    def test_initial_state(self):
        state = create_initial_state(QUESTION)
        assert state == {"question": QUESTION, "status": "analyzing", "progress": 0}
        assert validate_state(state)
        assert not validate_state({**state, "progress": True})
