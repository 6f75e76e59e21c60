from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Tuple

import httpx

from .assignments import assign_merged, clear_assignments, group_target
from .catalog import VIRTUAL_ENDPOINT
from .config import UserSettingSpec
from .graph_client import odata_string
from .session import TenantContext

USER_SETTINGS = f"{VIRTUAL_ENDPOINT}/userSettings"


def list_user_settings(ctx: TenantContext, display_name: Optional[str] = None) -> List[Dict[str, Any]]:
    """List user settings, filtered by exact display name when given.

    Some tenants reject $filter on this collection; the filter is then applied
    client-side instead.
    """
    if display_name is None:
        return ctx.graph.call_all(USER_SETTINGS)
    try:
        return ctx.graph.call_all(
            USER_SETTINGS, params={"$filter": f"displayName eq {odata_string(display_name)}"}
        )
    except httpx.HTTPStatusError as exc:
        ctx.warning("server_filter_rejected", collection="userSettings", status=exc.response.status_code)
    return [item for item in ctx.graph.call_all(USER_SETTINGS) if item.get("displayName") == display_name]


def find_user_setting(ctx: TenantContext, display_name: str) -> Optional[Dict[str, Any]]:
    settings = list_user_settings(ctx, display_name)
    if len(settings) > 1:
        ctx.warning("duplicate_display_name", kind="userSetting", display_name=display_name, count=len(settings))
    return settings[0] if settings else None


def build_user_setting_payload(spec: UserSettingSpec) -> Dict[str, Any]:
    return {
        "@odata.type": "#microsoft.graph.cloudPcUserSetting",
        "displayName": spec.name,
        "localAdminEnabled": spec.local_admin_enabled,
        "resetEnabled": spec.reset_enabled,
        "restorePointSetting": {
            "frequencyInHours": spec.restore_point_frequency_hours,
            "userRestoreEnabled": spec.user_restore_enabled,
        },
    }


def ensure_user_setting(ctx: TenantContext, spec: UserSettingSpec) -> Tuple[Dict[str, Any], bool]:
    existing = find_user_setting(ctx, spec.name)
    if existing:
        ctx.info("user_setting_reused", setting_id=existing["id"], display_name=spec.name)
        return existing, False

    setting = ctx.graph.call("POST", USER_SETTINGS, json=build_user_setting_payload(spec)).json()
    ctx.info("user_setting_created", setting_id=setting["id"], display_name=spec.name)
    return setting, True


def assign_user_setting(ctx: TenantContext, setting_id: str, group_ids: Iterable[str]) -> bool:
    targets = [group_target(group_id) for group_id in group_ids]
    return assign_merged(ctx, f"{USER_SETTINGS}/{setting_id}", targets)


def list_user_settings_by_prefix(ctx: TenantContext, prefix: str) -> List[Dict[str, Any]]:
    return [item for item in list_user_settings(ctx) if (item.get("displayName") or "").startswith(prefix)]


def unassign_user_setting(ctx: TenantContext, setting_id: str) -> None:
    clear_assignments(ctx, f"{USER_SETTINGS}/{setting_id}")


def delete_user_setting(ctx: TenantContext, setting_id: str) -> None:
    ctx.graph.call("DELETE", f"{USER_SETTINGS}/{setting_id}")
    ctx.info("user_setting_deleted", setting_id=setting_id)
