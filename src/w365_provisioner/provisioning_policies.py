from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Tuple

import httpx

from .assignments import assign_merged, clear_assignments, group_target
from .catalog import AUTOMATIC_REGION, VIRTUAL_ENDPOINT
from .config import PolicySpec
from .graph_client import odata_string
from .models import DeploymentSelection
from .session import TenantContext

PROVISIONING_POLICIES = f"{VIRTUAL_ENDPOINT}/provisioningPolicies"


def list_policies(ctx: TenantContext, display_name: Optional[str] = None) -> List[Dict[str, Any]]:
    if display_name is None:
        return ctx.graph.call_all(PROVISIONING_POLICIES)
    try:
        return ctx.graph.call_all(
            PROVISIONING_POLICIES, params={"$filter": f"displayName eq {odata_string(display_name)}"}
        )
    except httpx.HTTPStatusError as exc:
        ctx.warning(
            "server_filter_rejected", collection="provisioningPolicies", status=exc.response.status_code
        )
    return [
        item for item in ctx.graph.call_all(PROVISIONING_POLICIES) if item.get("displayName") == display_name
    ]


def find_policy(ctx: TenantContext, display_name: str) -> Optional[Dict[str, Any]]:
    policies = list_policies(ctx, display_name)
    if len(policies) > 1:
        ctx.warning(
            "duplicate_display_name", kind="provisioningPolicy", display_name=display_name, count=len(policies)
        )
    return policies[0] if policies else None


def domain_join_configuration(spec: PolicySpec, selection: DeploymentSelection) -> Dict[str, Any]:
    region = selection.region
    if region.id == AUTOMATIC_REGION.id:
        region_name, region_group = "automatic", "default"
    else:
        region_name = region.display_name
        region_group = spec.region_group or region.region_group or "default"
    return {
        "domainJoinType": spec.domain_join_type,
        "regionName": region_name,
        "regionGroup": region_group,
    }


def build_policy_payload(spec: PolicySpec, selection: DeploymentSelection) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "@odata.type": "#microsoft.graph.cloudPcProvisioningPolicy",
        "displayName": spec.name,
        "description": spec.description,
        "provisioningType": spec.provisioning_type,
        "managedBy": "windows365",
        "imageId": selection.image.id,
        "imageDisplayName": selection.image.display_name,
        "imageType": "gallery",
        "enableSingleSignOn": spec.enable_single_sign_on,
        "domainJoinConfigurations": [domain_join_configuration(spec, selection)],
        "windowsSetting": {"locale": selection.language.id},
    }
    if spec.naming_template:
        payload["cloudPcNamingTemplate"] = spec.naming_template
    return payload


def ensure_policy(
    ctx: TenantContext, spec: PolicySpec, selection: DeploymentSelection
) -> Tuple[Dict[str, Any], bool]:
    """Return the policy named spec.name, creating it when absent.

    An existing policy is reused untouched even if its image or region differ
    from the current selection.
    """
    existing = find_policy(ctx, spec.name)
    if existing:
        ctx.info("policy_reused", policy_id=existing["id"], display_name=spec.name)
        return existing, False

    policy = ctx.graph.call("POST", PROVISIONING_POLICIES, json=build_policy_payload(spec, selection)).json()
    ctx.info("policy_created", policy_id=policy["id"], display_name=spec.name, **selection.describe())
    return policy, True


def assign_policy(
    ctx: TenantContext,
    policy_id: str,
    group_ids: Iterable[str],
    provisioning_type: str = "dedicated",
    service_plan_id: Optional[str] = None,
) -> bool:
    if provisioning_type == "shared" and not service_plan_id:
        raise ValueError("A shared provisioning policy needs a SKU (service plan) for its assignments")
    plan = service_plan_id if provisioning_type == "shared" else None
    targets = [group_target(group_id, plan) for group_id in group_ids]
    return assign_merged(ctx, f"{PROVISIONING_POLICIES}/{policy_id}", targets)


def list_policies_by_prefix(ctx: TenantContext, prefix: str) -> List[Dict[str, Any]]:
    return [item for item in list_policies(ctx) if (item.get("displayName") or "").startswith(prefix)]


def unassign_policy(ctx: TenantContext, policy_id: str) -> None:
    clear_assignments(ctx, f"{PROVISIONING_POLICIES}/{policy_id}")


def delete_policy(ctx: TenantContext, policy_id: str) -> None:
    ctx.graph.call("DELETE", f"{PROVISIONING_POLICIES}/{policy_id}")
    ctx.info("policy_deleted", policy_id=policy_id)
