"""Merge-preserving assignment for Cloud PC user settings and provisioning policies.

The service's ``assign`` action replaces the whole assignment list, so every
call reads the current targets first and posts their union with the requested
ones. Targets are never removed here.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from .models import AssignmentTarget
from .session import TenantContext


def group_target(group_id: str, service_plan_id: Optional[str] = None) -> AssignmentTarget:
    return AssignmentTarget(group_id=group_id, service_plan_id=service_plan_id)


def existing_targets(resource: Dict[str, Any]) -> List[AssignmentTarget]:
    targets = []
    for assignment in resource.get("assignments") or []:
        target = assignment.get("target") or {}
        if target.get("groupId"):
            targets.append(AssignmentTarget.from_graph(target))
    return targets


def merge_targets(
    existing: Iterable[AssignmentTarget], requested: Iterable[AssignmentTarget]
) -> List[AssignmentTarget]:
    """Ordered set union: existing targets in server order, then new ones."""
    merged: List[AssignmentTarget] = []
    seen = set()
    for target in list(existing) + list(requested):
        if target in seen:
            continue
        seen.add(target)
        merged.append(target)
    return merged


def assignment_payload(targets: Iterable[AssignmentTarget]) -> Dict[str, Any]:
    return {"assignments": [{"target": target.to_graph()} for target in targets]}


def assign_merged(
    ctx: TenantContext, resource_path: str, requested: Iterable[AssignmentTarget]
) -> bool:
    """Union requested targets into resource_path's assignments.

    Returns True when an assign call was made, False when every requested
    target was already present.
    """
    resource = ctx.graph.call("GET", resource_path, params={"$expand": "assignments"}).json()
    current = existing_targets(resource)
    merged = merge_targets(current, requested)

    if set(merged) == set(current):
        ctx.info("assignment_unchanged", resource=resource_path, targets=len(current))
        return False

    ctx.graph.call("POST", f"{resource_path}/assign", json=assignment_payload(merged))
    ctx.info(
        "assignment_merged",
        resource=resource_path,
        existing=len(current),
        total=len(merged),
        group_ids=[target.group_id for target in merged],
    )
    return True


def clear_assignments(ctx: TenantContext, resource_path: str) -> None:
    ctx.graph.call("POST", f"{resource_path}/assign", json={"assignments": []})
    ctx.info("assignment_cleared", resource=resource_path)
