#!/usr/bin/env python3
"""Run automation for one Stash scene from the command line.

Opens the scene in a Patchright browser, runs the full session and prints
the summary. Without auto-apply, each scrape result is confirmed on stdin.

Usage:
    python scripts/run_automation.py 1234
    python scripts/run_automation.py 1234 --force stashdb --headed
    python scripts/run_automation.py 1234 --status-only
    python scripts/run_automation.py 1234 --unattended
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add backend to path when running as script
backend_dir = Path(__file__).resolve().parent.parent / "backend"
if backend_dir.exists():
    sys.path.insert(0, str(backend_dir))

from autoscrape.config import get_settings
from autoscrape.context import AppContext
from autoscrape.engine.automation import skip_decision
from autoscrape.schemas.automation import Decision, RunOptions

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger(__name__)

ANSWERS = {"a": Decision.APPLY, "s": Decision.SKIP, "c": Decision.CANCEL}


async def prompt_decision(session, provider, outcome, score) -> Decision:
    fields = ", ".join(outcome.data.present_fields()) if outcome.data else "nothing"
    print(f"\n{provider} returned {fields} (score {score})")
    while True:
        answer = await asyncio.to_thread(input, "[a]pply / [s]kip / [c]ancel? ")
        decision = ANSWERS.get(answer.strip().lower()[:1])
        if decision is not None:
            return decision


async def main(args) -> int:
    settings = get_settings()
    if args.headed:
        settings = settings.model_copy(update={"browser_headless": False})

    async with AppContext(settings) as ctx:
        if args.status_only:
            if ctx.surface is not None:
                await ctx.surface.goto_scene(args.scene_id)
            snapshot = await ctx.tracker.refresh(args.scene_id)
            for status in snapshot.sources:
                mark = "yes" if status.found else "no"
                print(f"{status.provider:12} {mark:4} {status.confidence:3}%  {status.strategy_name or ''}")
            print(f"{'organized':12} {'yes' if snapshot.organized else 'no'}")
            print(f"Completion: {snapshot.percentage}%")
            for recommendation in snapshot.recommendations:
                print(f"  - {recommendation}")
            return 0

        options = RunOptions(force_providers=args.force or None)
        decide = skip_decision if args.unattended else prompt_decision
        summary = await ctx.run_scene(args.scene_id, options=options, decide=decide)

    print(f"\nScene {summary.scene_id}: {summary.state.value} in {summary.duration_ms}ms")
    print(f"Sources used: {', '.join(summary.sources_used) or '-'}")
    print(f"Skipped: {', '.join(summary.skipped_sources) or '-'}")
    print(f"Organized: {summary.organized}")
    for action in summary.actions:
        detail = f" ({action.detail})" if action.detail else ""
        print(f"  [{action.status}] {action.name}{detail}")
    for warning in summary.warnings:
        print(f"  warning: {warning}")
    for error in summary.errors:
        print(f"  error: {error}")
    return 0 if summary.success else 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run Stash metadata automation for one scene")
    parser.add_argument("scene_id", help="Stash scene id")
    parser.add_argument("--force", action="append", metavar="PROVIDER",
                        help="Re-scrape this provider even if already present (repeatable)")
    parser.add_argument("--status-only", action="store_true", help="Only print detected status")
    parser.add_argument("--unattended", action="store_true", help="Skip instead of prompting for decisions")
    parser.add_argument("--headed", action="store_true", help="Show the browser window")
    args = parser.parse_args()
    sys.exit(asyncio.run(main(args)))
