"""
CLI Module

Architectural Intent:
- Command-line interface for rollwatch
- Entry point for all user interactions
- Delegates to application use cases via composition root
- Supports --verbose/--debug flags for log level control

Exit Codes:
- 0 when the rollout converged (or a manual undo fully succeeded)
- 1 on any failure, including apply errors and failed rollbacks
- 2 on usage errors (argparse)
"""

import argparse
import dataclasses
import sys
import asyncio
import logging
import traceback
from typing import Optional

from rollwatch import composition_root
from rollwatch.domain.errors import RollwatchError
from rollwatch.domain.value_objects.stage_result import RollbackOutcome, RolloutOutcome
from rollwatch.infrastructure.config import RollwatchConfig, load_config
from rollwatch.infrastructure.logging import configure_logging, parse_level


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="rollwatch: apply manifests, verify convergence, roll back on failure"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose output"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug output with tracebacks"
    )
    parser.add_argument(
        "--json-logs", action="store_true", help="Emit structured JSON log lines"
    )
    parser.add_argument(
        "--config", help="Path to JSON config file (default: rollwatch.json)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    deploy_parser = subparsers.add_parser(
        "deploy", help="Apply manifests and wait until the rollout converges"
    )
    deploy_parser.add_argument(
        "--file", "-f", default="-", help="Manifest file, '-' for stdin (default)"
    )
    deploy_parser.add_argument("--namespace", "-n", help="Kubernetes namespace")
    deploy_parser.add_argument("--context", help="kubeconfig context")

    undo_parser = subparsers.add_parser(
        "undo", help="Roll back deployments to their previous revision"
    )
    undo_parser.add_argument("names", nargs="+", help="Deployment names")
    undo_parser.add_argument("--namespace", "-n", help="Kubernetes namespace")
    undo_parser.add_argument("--context", help="kubeconfig context")

    return parser


def _with_cluster_overrides(
    config: RollwatchConfig, namespace: Optional[str], context: Optional[str]
) -> RollwatchConfig:
    cluster = config.cluster
    if namespace:
        cluster = dataclasses.replace(cluster, namespace=namespace)
    if context:
        cluster = dataclasses.replace(cluster, context=context)
    return dataclasses.replace(config, cluster=cluster)


def _read_manifest(path: str) -> bytes:
    if path == "-":
        return sys.stdin.buffer.read()
    with open(path, "rb") as f:
        return f.read()


def _print_rollback(outcome: Optional[RollbackOutcome]) -> None:
    if outcome is None:
        return
    if outcome.is_noop:
        print("[-] No changed deployments were eligible for rollback.")
        return
    print(f"[*] Rolled back: {', '.join(outcome.targets)}")
    for name, reason in sorted(outcome.failed.items()):
        print(f"[-] Rollback of {name} failed: {reason}")


def _print_outcome(outcome: RolloutOutcome) -> None:
    if outcome.succeeded:
        print("[+] Deployment Successful.")
        return
    failure = outcome.failure
    print(f"[-] Deployment Failed at stage '{failure.stage.value}': {failure}")
    for name, reason in sorted(failure.reasons.items()):
        print(f"    {name}: {reason}")
    _print_rollback(outcome.rollback)


def _load(args: argparse.Namespace) -> tuple[RollwatchConfig, int]:
    """Load config and pick the log level; raises ValueError on bad settings."""
    config = load_config(args.config)
    if args.debug:
        level = logging.DEBUG
    elif args.verbose:
        level = logging.INFO
    else:
        level = parse_level(config.log_level)
    return config, level


def _build_container(
    config: RollwatchConfig, args: argparse.Namespace
) -> composition_root.RollwatchContainer:
    config = _with_cluster_overrides(config, args.namespace, args.context)
    try:
        return composition_root.create_container(config)
    except ValueError as e:
        print(f"[-] Invalid configuration: {e}")
        sys.exit(1)


async def async_main():
    parser = _build_parser()
    args = parser.parse_args()

    try:
        config, level = _load(args)
    except ValueError as e:
        print(f"[-] Invalid configuration: {e}")
        sys.exit(1)
    configure_logging(level=level, json_format=args.json_logs)

    verbose = args.verbose or args.debug

    if args.command == "deploy":
        try:
            manifest = _read_manifest(args.file)
        except FileNotFoundError as e:
            print(f"[-] Manifest file not found: {e}")
            sys.exit(1)

        container = _build_container(config, args)
        await container.telemetry.initialize()
        try:
            print("[*] Applying manifests...")
            outcome = await container.orchestrator.execute(manifest)
        except RollwatchError as e:
            print(f"[-] Deployment Failed: {e}")
            if verbose:
                traceback.print_exc()
            sys.exit(1)
        finally:
            await container.telemetry.shutdown()

        _print_outcome(outcome)
        if not outcome.succeeded:
            sys.exit(outcome.exit_code)
        return

    if args.command == "undo":
        container = _build_container(config, args)

        print(f"[*] Rolling back {', '.join(args.names)}...")
        outcome = await container.rollback.undo(args.names)
        _print_rollback(outcome)
        if outcome.ok:
            print("[+] Rollback Successful.")
        else:
            print("[-] Rollback Failed.")
            sys.exit(1)
        return

    parser.print_help()


def main():
    asyncio.run(async_main())


if __name__ == "__main__":
    main()
