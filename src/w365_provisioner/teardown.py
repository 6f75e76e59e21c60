from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List

from .groups import delete_group, list_groups_by_prefix
from .provisioning_policies import delete_policy, list_policies_by_prefix, unassign_policy
from .session import TenantContext, best_effort
from .user_settings import delete_user_setting, list_user_settings_by_prefix, unassign_user_setting


@dataclass
class TeardownReport:
    correlation_id: str
    prefix: str
    dry_run: bool
    matched: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.warnings

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["ok"] = self.ok
        return payload


def run_teardown(
    ctx: TenantContext, prefix: str, dry_run: bool = False, include_groups: bool = True
) -> TeardownReport:
    """Delete every policy, user setting and group whose display name starts with prefix.

    Policies and settings are unassigned before deletion. Groups go last so the
    service never sees an assignment pointing at a deleted group.
    """
    if not prefix or not prefix.strip():
        raise ValueError("Refusing to tear down with an empty prefix")

    report = TeardownReport(correlation_id=ctx.correlation_id, prefix=prefix, dry_run=dry_run)
    ctx.info("teardown_started", prefix=prefix, dry_run=dry_run, include_groups=include_groups)

    policies = best_effort(ctx, "list policies", report.warnings, lambda: list_policies_by_prefix(ctx, prefix))
    for policy in policies or []:
        _remove(
            ctx,
            report,
            f"provisioningPolicy:{policy.get('displayName')}",
            [lambda: unassign_policy(ctx, policy["id"]), lambda: delete_policy(ctx, policy["id"])],
        )

    settings = best_effort(
        ctx, "list user settings", report.warnings, lambda: list_user_settings_by_prefix(ctx, prefix)
    )
    for setting in settings or []:
        _remove(
            ctx,
            report,
            f"userSetting:{setting.get('displayName')}",
            [lambda: unassign_user_setting(ctx, setting["id"]), lambda: delete_user_setting(ctx, setting["id"])],
        )

    if include_groups:
        groups = best_effort(ctx, "list groups", report.warnings, lambda: list_groups_by_prefix(ctx, prefix))
        for group in groups or []:
            _remove(ctx, report, f"group:{group.get('displayName')}", [lambda: delete_group(ctx, group["id"])])

    ctx.info(
        "teardown_completed",
        prefix=prefix,
        matched=len(report.matched),
        deleted=len(report.deleted),
        warnings=len(report.warnings),
    )
    return report


def _remove(
    ctx: TenantContext, report: TeardownReport, label: str, actions: List[Callable[[], None]]
) -> None:
    report.matched.append(label)
    if report.dry_run:
        ctx.info("teardown_would_delete", resource=label)
        return
    for action in actions:
        if best_effort(ctx, f"delete {label}", report.warnings, lambda: action() or True) is None:
            return
    report.deleted.append(label)
