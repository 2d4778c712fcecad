"""hog agents diagnostics CLI."""

from __future__ import annotations

import argparse
import json

from hog_agents.agents import AgentTracker
from hog_agents.config import HogSettings
from hog_agents.storage import EnrichmentStore, ResultFileStore, find_sessions


def load_ledger(settings: HogSettings) -> EnrichmentStore:
    return EnrichmentStore(settings.enrichment_path)


def load_results(settings: HogSettings) -> ResultFileStore:
    return ResultFileStore(settings.results_dir)


def cmd_sessions(args: argparse.Namespace) -> None:
    settings = HogSettings()
    data = load_ledger(settings).load()
    if args.repo and args.issue is not None:
        sessions = find_sessions(data, args.repo, args.issue)
    else:
        sessions = [s for s in data.sessions if not args.repo or s.repo == args.repo]

    if args.json:
        print(json.dumps([s.to_json_dict() for s in sessions], indent=2))
        return
    for session in sessions:
        state = f"exit {session.exit_code}" if session.exited_at else "active"
        print(
            f"{session.id} {session.repo}#{session.issue_number} "
            f"{session.phase} [{session.mode}] {state}"
        )


def cmd_results(args: argparse.Namespace) -> None:
    settings = HogSettings()
    store = load_results(settings)
    if args.unprocessed:
        data = load_ledger(settings).load()
        processed = {s.result_file for s in data.sessions if s.result_file}
        paths = store.find_unprocessed(processed)
    else:
        paths = store.list_paths()

    payload = []
    for path in paths:
        record = store.read(path)
        payload.append(
            {
                "path": str(path),
                "valid": record is not None,
                "issue_ref": record.issue_ref if record else None,
                "phase": record.phase if record else None,
                "exit_code": record.exit_code if record else None,
            }
        )
    print(json.dumps(payload, indent=2))


def cmd_reconcile(args: argparse.Namespace) -> None:
    settings = HogSettings()
    tracker = AgentTracker(settings, ledger=load_ledger(settings), results=load_results(settings))
    outcome = tracker.catch_up()
    print(
        json.dumps(
            {key: [s.id for s in sessions] for key, sessions in outcome.items()},
            indent=2,
        )
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="hog agents diagnostics")
    sub = parser.add_subparsers(dest="cmd")

    p_sessions = sub.add_parser("sessions", help="List ledger sessions")
    p_sessions.add_argument("--repo")
    p_sessions.add_argument("--issue", type=int)
    p_sessions.add_argument("--json", action="store_true", help="Output JSON")
    p_sessions.set_defaults(func=cmd_sessions)

    p_results = sub.add_parser("results", help="List agent result files")
    p_results.add_argument(
        "--unprocessed",
        action="store_true",
        help="Only result files no ledger session refers to",
    )
    p_results.set_defaults(func=cmd_results)

    p_reconcile = sub.add_parser(
        "reconcile",
        help="Close dead background sessions and import unprocessed results",
    )
    p_reconcile.set_defaults(func=cmd_reconcile)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
