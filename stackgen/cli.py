"""CLI entrypoints for stackgen commands."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List

import yaml

from .config import load_answers
from .errors import AmbiguousStack, NeedsClarification, StackgenError
from .logging import configure_logging
from .models import AnswerSet
from .orchestrator import EXIT_FATAL, Orchestrator
from .resolver import CATEGORIES


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=argparse.SUPPRESS if suppress_default else False,
        help="Increase log verbosity for troubleshooting.",
    )


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    _add_verbose_option(parser, suppress_default=True)
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Path to the workspace root (defaults to current directory).",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the machine-readable report instead of text.",
    )


def _add_answer_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--with",
        dest="categories",
        action="append",
        choices=CATEGORIES,
        default=[],
        help="Artifact category to generate (repeatable).",
    )
    parser.add_argument(
        "--set",
        dest="assignments",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Explicit option answer, e.g. --set app-port=9000 (repeatable).",
    )
    parser.add_argument(
        "--stack",
        dest="stacks",
        action="append",
        default=None,
        help="Restrict the run to this stack (repeatable); overrides detection.",
    )
    parser.add_argument(
        "--primary-stack",
        default=None,
        help="Stack that single-stack artifacts (Dockerfile, project skeleton) target.",
    )
    parser.add_argument(
        "--answers",
        type=Path,
        default=None,
        help="YAML file with option answers.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stackgen",
        description="Detect a workspace's stack and generate tests, Docker, CI and project files.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write debug-level logs to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    detect_parser = subparsers.add_parser("detect", help="Show collected evidence and detected stacks.")
    _add_common_options(detect_parser)

    plan_parser = subparsers.add_parser("plan", help="Preview the generation plan without writing.")
    _add_common_options(plan_parser)
    _add_answer_options(plan_parser)

    generate_parser = subparsers.add_parser("generate", help="Generate artifacts into the workspace.")
    _add_common_options(generate_parser)
    _add_answer_options(generate_parser)

    doctor_parser = subparsers.add_parser("doctor", help="Check the local toolchain and environment.")
    _add_common_options(doctor_parser)
    doctor_parser.add_argument(
        "--fix",
        action="store_true",
        help="Run the remediation of each failing rule, then re-check it once.",
    )
    doctor_parser.add_argument(
        "--answers",
        type=Path,
        default=None,
        help="YAML answers file; its `fix: true` turns on fix mode like --fix.",
    )

    return parser


def _parse_assignment(text: str) -> tuple[str, object]:
    name, sep, raw = text.partition("=")
    name = name.strip()
    if not sep or not name:
        raise argparse.ArgumentTypeError(f"--set expects NAME=VALUE, got '{text}'")
    try:
        value = yaml.safe_load(raw) if raw.strip() else ""
    except yaml.YAMLError:
        value = raw
    return name, value


def _build_answers(args: argparse.Namespace) -> AnswerSet:
    answers = load_answers(args.answers) if args.answers else AnswerSet()
    options = dict(answers.options)
    for category in args.categories:
        options[category] = True
    for assignment in args.assignments:
        name, value = _parse_assignment(assignment)
        options[name] = value
    return AnswerSet(
        stacks=tuple(args.stacks) if args.stacks else answers.stacks,
        primary_stack=args.primary_stack or answers.primary_stack,
        options=options,
        fix=answers.fix,
    )


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for stackgen commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(getattr(args, "verbose", False)), log_file=args.log_file)

    orchestrator = Orchestrator()
    try:
        if args.command == "detect":
            code = _run_detect(orchestrator, args)
        elif args.command == "plan":
            code = _run_plan(orchestrator, args)
        elif args.command == "generate":
            code = _run_generate(orchestrator, args)
        elif args.command == "doctor":
            code = _run_doctor(orchestrator, args)
        else:  # pragma: no cover - argparse enforces choices
            parser.exit(EXIT_FATAL, "Unknown command\n")
    except argparse.ArgumentTypeError as exc:
        parser.exit(EXIT_FATAL, f"stackgen: {exc}\n")
    except NeedsClarification as exc:
        parser.exit(EXIT_FATAL, f"stackgen: {exc}\n{_clarification_hint(exc)}\n")
    except StackgenError as exc:
        parser.exit(EXIT_FATAL, f"stackgen {args.command} failed: {exc}\n")
    except (FileNotFoundError, NotADirectoryError) as exc:
        parser.exit(EXIT_FATAL, f"{exc}\n")

    if code:
        parser.exit(code)


def _clarification_hint(exc: NeedsClarification) -> str:
    if isinstance(exc, AmbiguousStack):
        return f"Choose one with --primary-stack ({' | '.join(exc.candidates)})."
    if exc.option == "primary-stack":
        return "Choose one with --primary-stack."
    if exc.option == "stacks":
        return "Pass a supported stack with --stack."
    return f"Answer it with --set {exc.option}=VALUE."


def _run_detect(orchestrator: Orchestrator, args: argparse.Namespace) -> int:
    detection = orchestrator.detect(args.path)
    if args.json:
        print(json.dumps(detection.to_dict(), indent=2, sort_keys=True))
        return 0
    if not detection.identities:
        print("No stack detected.")
        return 0
    for identity in detection.identities:
        flag = "  (ambiguous)" if identity.ambiguous else ""
        print(f"{identity.id:<8} {identity.confidence:.2f}{flag}")
        for name in identity.evidence:
            print(f"  - {name}")
    return 0


def _run_plan(orchestrator: Orchestrator, args: argparse.Namespace) -> int:
    outcome = orchestrator.plan(args.path, _build_answers(args))
    if args.json:
        payload = {"config": outcome.config.to_dict(), "plan": outcome.plan.to_dict()}
        print(json.dumps(payload, indent=2, sort_keys=True))
        return 0
    if not len(outcome.plan):
        print("Nothing to generate. Select categories with --with.")
        return 0
    for node in outcome.plan:
        policy = node.policy.value if node.policy else "mkdir"
        suffix = f" [{node.block}]" if node.block else ""
        print(f"{node.layer:>2}  {policy:<15} {node.path}{suffix}")
    return 0


def _run_generate(orchestrator: Orchestrator, args: argparse.Namespace) -> int:
    outcome = orchestrator.generate(args.path, _build_answers(args))
    report = outcome.report
    if args.json:
        print(report.to_json())
        return report.exit_code
    for result in report.results:
        reason = f" ({result.reason})" if result.reason else ""
        print(f"{result.status.value:<12} {result.path}{reason}")
    print(_summary(report.counts))
    return report.exit_code


def _wants_fix(args: argparse.Namespace) -> bool:
    if args.fix:
        return True
    return bool(args.answers) and load_answers(args.answers).fix


def _run_doctor(orchestrator: Orchestrator, args: argparse.Namespace) -> int:
    report = orchestrator.doctor(args.path, fix=_wants_fix(args))
    if args.json:
        print(report.to_json())
        return report.exit_code
    for result in report.results:
        detail = f" - {result.detail}" if result.detail else ""
        print(f"[{result.status.value.upper():<4}] {result.rule_id:<16} {result.evidence}{detail}")
        if result.remediation_attempted:
            print(f"       remediation: {result.remediation_outcome}")
    print(_summary(report.counts))
    return report.exit_code


def _summary(counts: dict) -> str:
    parts: List[str] = [f"{count} {status}" for status, count in counts.items() if count]
    return ", ".join(parts) if parts else "nothing to do"


if __name__ == "__main__":
    main(sys.argv[1:])
