#!/usr/bin/env python3
"""
agentloom runner

Drives the workflows from a terminal against the configured database:

    python main.py init-db
    python main.py research "How do vector databases index embeddings?" --thread r1
    python main.py approve --thread r1 [--feedback "Add a section on costs"]
    python main.py qa --thread q1        (interactive; paste a PRD, then "continue")
    python main.py chat --thread c1 --user ada   (interactive, memory-backed)
    python main.py state --thread r1
"""
import argparse
import asyncio
import json
import logging
import os
import sys
from typing import Any, Dict

from agentloom.core.config import settings
from agentloom.core.database import init_db
from agentloom.core.logging_config import configure_logging
from agentloom.services.workflow_service import WorkflowService
from agentloom.workflows.engine import GraphCancelledError, INTERRUPT_KEY

logger = logging.getLogger(__name__)


def configure_tracing() -> None:
    """LangSmith SDK reads its switches from os.environ."""
    if settings.LANGSMITH_TRACING:
        os.environ['LANGSMITH_TRACING'] = 'true'
        os.environ['LANGSMITH_API_KEY'] = settings.LANGSMITH_API_KEY
        os.environ['LANGSMITH_PROJECT'] = settings.LANGSMITH_PROJECT
        if settings.LANGSMITH_ENDPOINT:
            os.environ['LANGSMITH_ENDPOINT'] = settings.LANGSMITH_ENDPOINT
        logger.info(f"LangSmith tracing enabled (project: {settings.LANGSMITH_PROJECT})")
    else:
        os.environ['LANGSMITH_TRACING'] = 'false'


def print_research(result: Dict[str, Any]) -> None:
    if result.get(INTERRUPT_KEY):
        payload = result[INTERRUPT_KEY][0]
        print(f"\n⏸️  {payload['message']}\n")
        print(json.dumps(payload.get("plan"), ensure_ascii=False, indent=2))
        print("\nApprove with `approve --thread <id>` or send `--feedback` to revise.")
        return

    print(f"\nstatus={result.get('status')} progress={result.get('progress')}")
    if result.get("error"):
        print(f"error: {result['error']}")
    if result.get("final_artifact"):
        print("\n" + result["final_artifact"])


async def run_research(service: WorkflowService, args: argparse.Namespace) -> None:
    print_research(await service.start_research(args.thread, args.question, model_id=args.model))


async def run_approve(service: WorkflowService, args: argparse.Namespace) -> None:
    print_research(await service.resume_research(args.thread, args.feedback or "", model_id=args.model))


async def run_qa(service: WorkflowService, args: argparse.Namespace) -> None:
    print(f"QA chatbot on thread {args.thread} (stage: {service.get_qa_stage(args.thread)}). Empty line to quit.")
    while True:
        try:
            text = await asyncio.to_thread(input, "\nyou> ")
        except EOFError:
            break
        if not text.strip():
            break
        state = await service.send_qa_message(args.thread, text, model_id=args.model)
        print(f"\n[{state['stage']}] {state['messages'][-1]['content']}")


async def run_chat(service: WorkflowService, args: argparse.Namespace) -> None:
    print(f"Chat on thread {args.thread} as {args.user}. Empty line to quit.")
    try:
        while True:
            try:
                text = await asyncio.to_thread(input, "\nyou> ")
            except EOFError:
                break
            if not text.strip():
                break
            reply = await service.chat(args.thread, text, user_id=args.user, model_id=args.model)
            print(f"\n{reply.content}")
    finally:
        await service.aclose()


def show_state(service: WorkflowService, args: argparse.Namespace) -> None:
    snapshot = service.get_state(args.thread)
    print(json.dumps(
        {
            "checkpoint_id": snapshot.checkpoint_id,
            "next": list(snapshot.next),
            "waiting": snapshot.is_waiting,
            "values": snapshot.values,
        },
        ensure_ascii=False,
        indent=2,
        default=str,
    ))


def main():
    parser = argparse.ArgumentParser(description="Run agentloom workflows")
    parser.add_argument("--model", default=None, help='Model id, e.g. "openai:gpt-4o" or "anthropic:claude-sonnet-4-5"')
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create tables directly (SQLite / dev)")

    research = sub.add_parser("research", help="Start a deep research run")
    research.add_argument("question")
    research.add_argument("--thread", required=True)

    approve = sub.add_parser("approve", help="Answer the plan approval interrupt")
    approve.add_argument("--thread", required=True)
    approve.add_argument("--feedback", default="", help="Revision request (blank approves)")

    qa = sub.add_parser("qa", help="Interactive QA chatbot session")
    qa.add_argument("--thread", required=True)

    chat = sub.add_parser("chat", help="Interactive memory-backed chat session")
    chat.add_argument("--thread", required=True)
    chat.add_argument("--user", default="default", help="Owner of core and archival memory")

    state = sub.add_parser("state", help="Show a research thread's state")
    state.add_argument("--thread", required=True)

    args = parser.parse_args()

    configure_logging()
    configure_tracing()

    if args.command == "init-db":
        init_db()
        return

    service = WorkflowService()
    try:
        if args.command == "research":
            asyncio.run(run_research(service, args))
        elif args.command == "approve":
            asyncio.run(run_approve(service, args))
        elif args.command == "qa":
            asyncio.run(run_qa(service, args))
        elif args.command == "chat":
            asyncio.run(run_chat(service, args))
        elif args.command == "state":
            show_state(service, args)
    except (KeyboardInterrupt, GraphCancelledError):
        print("\n❌ Aborted")
        sys.exit(1)


if __name__ == "__main__":
    main()
