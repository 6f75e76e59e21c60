from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

import httpx
from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm
from rich.table import Table

from .audit import InMemoryAuditStore, JsonAuditLogger
from .config import ProvisionerConfig
from .deploy import DeploymentAborted, run_deployment
from .prompts import select_deployment
from .session import open_session
from .teardown import run_teardown

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_WARNINGS = 2


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Provision and tear down Windows 365 Cloud PC resources")
    parser.add_argument("--config", required=True, help="Path to provisioner configuration YAML")
    parser.add_argument("--tenant-id", required=True, help="Tenant ID to target")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Audit log verbosity",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    deploy = subparsers.add_parser("deploy", help="Create or reuse groups, user setting and policy")
    deploy.add_argument("sku", nargs="?", help="Service plan id, name or list number")
    deploy.add_argument("region", nargs="?", help="Region name, 'automatic' or list number")
    deploy.add_argument("image", nargs="?", help="Gallery image id, name or list number")
    deploy.add_argument("language", nargs="?", help="Windows locale, e.g. en-US")
    deploy.add_argument(
        "--non-interactive",
        action="store_true",
        help="Fail instead of prompting for missing selections",
    )
    deploy.add_argument(
        "--member",
        action="append",
        default=[],
        metavar="UPN",
        help="User to add to the user group (repeatable)",
    )

    teardown = subparsers.add_parser("teardown", help="Delete resources whose name starts with the prefix")
    teardown.add_argument("--prefix", help="Display name prefix (defaults to the configured prefix)")
    teardown.add_argument("--dry-run", action="store_true", help="List matches without deleting")
    teardown.add_argument("--keep-groups", action="store_true", help="Leave security groups in place")
    teardown.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")

    return parser.parse_args(argv)


def _print_summary(console: Console, title: str, report: dict, store: InMemoryAuditStore) -> None:
    table = Table(title=title)
    table.add_column("Outcome", style="bold")
    table.add_column("Resources")
    for key in ("created", "reused", "assigned", "matched", "deleted"):
        if key in report:
            table.add_row(key, "\n".join(report[key]) or "-")
    table.add_row("warnings", str(len(report["warnings"])))
    table.add_row("errors logged", str(store.count("ERROR")))
    console.print(table)
    for warning in report["warnings"]:
        console.print(f"[yellow]warning:[/yellow] {warning}")


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    console = Console(stderr=True)
    store = InMemoryAuditStore()
    audit_logger = JsonAuditLogger(level=getattr(logging, args.log_level), store=store, stream=sys.stderr)

    try:
        config = ProvisionerConfig.load(Path(args.config))
        ctx = open_session(config, args.tenant_id, audit_logger)
    except (FileNotFoundError, KeyError, ValueError) as exc:
        console.print(f"[red]error:[/red] {escape(str(exc))}")
        return EXIT_FAILED

    try:
        if args.command == "deploy":
            deployment = config.deployment
            warnings: List[str] = []
            selection = select_deployment(
                ctx,
                deployment.policy,
                warnings,
                sku=args.sku or deployment.sku,
                region=args.region or deployment.region,
                image=args.image or deployment.image,
                language=args.language or deployment.language,
                interactive=not args.non_interactive,
                console=console,
            )
            report = run_deployment(ctx, deployment, selection, members=args.member, warnings=warnings)
            title = "Deployment summary"
        else:
            prefix = args.prefix or config.deployment.prefix
            if not args.yes and not args.dry_run:
                scope = "policies, user settings" + ("" if args.keep_groups else " and groups")
                if not Confirm.ask(f"Delete all {scope} starting with {prefix!r}?", console=console):
                    console.print("Aborted.")
                    return EXIT_FAILED
            report = run_teardown(ctx, prefix, dry_run=args.dry_run, include_groups=not args.keep_groups)
            title = "Teardown summary" + (" (dry run)" if args.dry_run else "")
    except (DeploymentAborted, LookupError, ValueError, RuntimeError, httpx.HTTPError) as exc:
        audit_logger.error("run_failed", tenant_id=ctx.tenant_id, correlation_id=ctx.correlation_id, error=str(exc))
        console.print(f"[red]error:[/red] {escape(str(exc))}")
        return EXIT_FAILED
    finally:
        ctx.close()

    payload = report.to_dict()
    _print_summary(console, title, payload, store)
    print(json.dumps(payload, indent=2))
    return EXIT_OK if report.ok else EXIT_WARNINGS


if __name__ == "__main__":
    sys.exit(main())
