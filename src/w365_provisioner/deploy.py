from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .config import DeploymentConfig
from .groups import add_group_members, ensure_security_group
from .models import DeploymentSelection
from .provisioning_policies import assign_policy, ensure_policy
from .session import TenantContext, best_effort
from .user_settings import assign_user_setting, ensure_user_setting


class DeploymentAborted(RuntimeError):
    """Raised when the user group cannot be found or created."""


@dataclass
class DeploymentReport:
    correlation_id: str
    selection: Dict[str, Optional[str]]
    created: List[str] = field(default_factory=list)
    reused: List[str] = field(default_factory=list)
    assigned: List[str] = field(default_factory=list)
    members_added: int = 0
    warnings: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.warnings

    def record(self, label: str, created: bool) -> None:
        (self.created if created else self.reused).append(label)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["ok"] = self.ok
        return payload


def run_deployment(
    ctx: TenantContext,
    deployment: DeploymentConfig,
    selection: DeploymentSelection,
    members: Iterable[str] = (),
    warnings: Optional[List[str]] = None,
) -> DeploymentReport:
    """Create or reuse groups, the user setting and the policy, then merge-assign them.

    Only a failure on the user group stops the run. Every later failure is
    recorded as a warning and the remaining steps still execute.
    """
    report = DeploymentReport(
        correlation_id=ctx.correlation_id,
        selection=selection.describe(),
        warnings=list(warnings or []),
    )
    ctx.info("deployment_started", prefix=deployment.prefix, **selection.describe())

    user_group = best_effort(
        ctx,
        "user group",
        report.warnings,
        lambda: ensure_security_group(ctx, deployment.user_group.name, deployment.user_group.description),
    )
    if user_group is None:
        raise DeploymentAborted(f"User group {deployment.user_group.name!r} could not be ensured")
    report.record(f"group:{deployment.user_group.name}", user_group[1])
    group_ids = [user_group[0]["id"]]

    if deployment.admin_group:
        admin = deployment.admin_group
        admin_group = best_effort(
            ctx, "admin group", report.warnings, lambda: ensure_security_group(ctx, admin.name, admin.description)
        )
        if admin_group is not None:
            report.record(f"group:{admin.name}", admin_group[1])
            group_ids.append(admin_group[0]["id"])

    members = list(members)
    if members:
        added = best_effort(
            ctx,
            "group members",
            report.warnings,
            lambda: add_group_members(ctx, group_ids[0], members, report.warnings),
        )
        report.members_added = len(added or [])

    setting = best_effort(
        ctx, "user setting", report.warnings, lambda: ensure_user_setting(ctx, deployment.user_setting)
    )
    if setting is None:
        _skip(ctx, report, "user setting assignment", "user setting unavailable")
    else:
        report.record(f"userSetting:{deployment.user_setting.name}", setting[1])
        changed = best_effort(
            ctx,
            "user setting assignment",
            report.warnings,
            lambda: assign_user_setting(ctx, setting[0]["id"], group_ids),
        )
        if changed:
            report.assigned.append(f"userSetting:{deployment.user_setting.name}")

    policy = best_effort(
        ctx, "provisioning policy", report.warnings, lambda: ensure_policy(ctx, deployment.policy, selection)
    )
    if policy is None:
        _skip(ctx, report, "policy assignment", "provisioning policy unavailable")
    else:
        report.record(f"provisioningPolicy:{deployment.policy.name}", policy[1])
        service_plan_id = selection.sku.id if selection.sku else None
        changed = best_effort(
            ctx,
            "policy assignment",
            report.warnings,
            lambda: assign_policy(
                ctx, policy[0]["id"], group_ids, deployment.policy.provisioning_type, service_plan_id
            ),
        )
        if changed:
            report.assigned.append(f"provisioningPolicy:{deployment.policy.name}")

    ctx.info(
        "deployment_completed",
        created=len(report.created),
        reused=len(report.reused),
        warnings=len(report.warnings),
    )
    return report


def _skip(ctx: TenantContext, report: DeploymentReport, step: str, reason: str) -> None:
    ctx.warning("step_skipped", step=step, reason=reason)
    report.warnings.append(f"{step}: skipped, {reason}")
