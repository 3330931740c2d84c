"""Command-line interface for commit_trust."""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import os
import sys
from typing import Any, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

import commit_trust as ct
from commit_trust.config import Config
from commit_trust.exceptions import ConfigError
from commit_trust.models import Outcome, OutcomeError

ENV_GITHUB_OUTPUT = "GITHUB_OUTPUT"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="commit-trust",
        description="Decide whether a git commit is trusted: allowlisted committer, "
        "allowlisted signing key, or a key authorized by the remote authority.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {ct.__version__}")
    parser.add_argument("--path", default=".", help="Path to the git repository")
    parser.add_argument("--ref", default="HEAD", help="Commit reference to check")
    parser.add_argument(
        "--repository",
        default=None,
        help="Repository name matched against allowlist scopes (env: REPOSITORY)",
    )
    parser.add_argument(
        "--allowlist",
        default=None,
        help="Path to the allowlist YAML file (env: ALLOWLIST_CONFIG_FILE_PATH)",
    )
    parser.add_argument(
        "--api-base-url",
        default=None,
        help="Base URL of the key authority API (env: API_BASE_URL)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for the key authority (env: AUTHORITY_TIMEOUT)",
    )
    parser.add_argument("--quiet", action="store_true", help="Do not print the summary panel")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def _config_from_args(args: argparse.Namespace) -> Config:
    base = Config.from_env(repo_path=args.path, commit_ref=args.ref)
    overrides: dict[str, Any] = {}
    if args.repository is not None:
        overrides["repository"] = args.repository
    if args.allowlist is not None:
        overrides["allowlist_path"] = args.allowlist
    if args.api_base_url is not None:
        overrides["api_base_url"] = args.api_base_url
    if args.timeout is not None:
        overrides["timeout"] = args.timeout
    return dataclasses.replace(base, **overrides)


def _outcome_json(outcome: Outcome) -> str:
    return json.dumps(outcome.to_dict(), ensure_ascii=False)


def _print_rich_outcome(outcome: Outcome, console: Console) -> None:
    color = "green" if outcome.passed_verification else "red"

    text = Text()
    text.append(f"Repository: {outcome.repository}\n", style="bold")
    if outcome.commit is not None:
        text.append(f"Commit: {outcome.commit.commit_hash}\n")
        committer = outcome.commit.committer
        text.append(f"Committer: {committer.name} <{committer.email}>\n")
    if outcome.signature_key_id:
        text.append(f"Signing key: {outcome.signature_key_id}\n")
    text.append("Result: ", style="bold")
    text.append(f"{outcome.result.value}\n", style=f"bold {color}")
    text.append(outcome.desc)
    if outcome.verification_details is not None:
        text.append(f"\nVerified by: {outcome.verification_details.verified_by.value}")

    console.print(Panel(text, title="Commit Trust", border_style=color))

    if outcome.errors:
        errors = Text()
        for e in outcome.errors:
            errors.append(f"• {e.desc}\n")
        console.print(Panel(errors, title="Errors", border_style="yellow"))


def _write_github_output(outcome_json: str) -> None:
    path = os.environ.get(ENV_GITHUB_OUTPUT)
    if not path:
        return
    with open(path, "a", encoding="utf-8") as f:
        f.write(f"outcome={outcome_json}\n")


def main(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        config = _config_from_args(args)
    except ConfigError as exc:
        outcome = Outcome.failed("", "Invalid configuration", (OutcomeError.from_exception(exc),))
    else:
        outcome = ct.run(config)

    outcome_json = _outcome_json(outcome)
    print(outcome_json)

    if not args.quiet:
        _print_rich_outcome(outcome, Console(stderr=True))

    try:
        _write_github_output(outcome_json)
    except OSError as exc:
        print(f"commit-trust: failed to write step output: {exc}", file=sys.stderr)
        return 1

    return 0 if outcome.passed_verification else 1


if __name__ == "__main__":
    raise SystemExit(main())
