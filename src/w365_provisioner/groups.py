from __future__ import annotations

import re
import uuid
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import quote

import httpx

from .graph_client import odata_string
from .session import TenantContext

_NICKNAME_INVALID = re.compile(r"[^A-Za-z0-9_.-]")


def mail_nickname(display_name: str) -> str:
    nickname = _NICKNAME_INVALID.sub("", display_name).strip(".")[:64]
    return nickname or f"w365-{uuid.uuid4().hex[:12]}"


def find_group(ctx: TenantContext, display_name: str) -> Optional[Dict[str, Any]]:
    groups = ctx.graph.get_all(
        "groups",
        params={
            "$filter": f"displayName eq {odata_string(display_name)}",
            "$select": "id,displayName,mailNickname,securityEnabled",
        },
    )
    if len(groups) > 1:
        ctx.warning("duplicate_display_name", kind="group", display_name=display_name, count=len(groups))
    return groups[0] if groups else None


def ensure_security_group(
    ctx: TenantContext, display_name: str, description: str
) -> Tuple[Dict[str, Any], bool]:
    """Return the group named display_name, creating it when absent."""
    existing = find_group(ctx, display_name)
    if existing:
        ctx.info("group_reused", group_id=existing["id"], display_name=display_name)
        return existing, False

    payload = {
        "description": description,
        "displayName": display_name,
        "securityEnabled": True,
        "mailEnabled": False,
        "groupTypes": [],
        "mailNickname": mail_nickname(display_name),
    }
    group = ctx.graph.post("groups", json=payload).json()
    ctx.info("group_created", group_id=group["id"], display_name=display_name)
    return group, True


def add_group_members(
    ctx: TenantContext, group_id: str, users: Iterable[str], warnings: List[str]
) -> List[str]:
    """Add users (UPN or object id) to a group; returns the ids actually added."""
    members = ctx.graph.get_all(f"groups/{group_id}/members", params={"$select": "id"})
    current = {member["id"] for member in members}
    added: List[str] = []

    for user in users:
        try:
            user_id = ctx.graph.get(f"users/{quote(user, safe='@')}", params={"$select": "id"}).json()["id"]
            if user_id in current:
                continue
            ctx.graph.post(
                f"groups/{group_id}/members/$ref",
                json={"@odata.id": ctx.graph.url_for(f"directoryObjects/{user_id}")},
            )
        except httpx.HTTPError as exc:
            ctx.warning("group_member_failed", group_id=group_id, user=user, error=str(exc))
            warnings.append(f"add member {user}: {exc}")
            continue
        current.add(user_id)
        added.append(user_id)
        ctx.info("group_member_added", group_id=group_id, user=user)

    return added


def list_groups_by_prefix(ctx: TenantContext, prefix: str) -> List[Dict[str, Any]]:
    groups = ctx.graph.get_all(
        "groups",
        params={
            "$filter": f"startswith(displayName,{odata_string(prefix)})",
            "$select": "id,displayName",
        },
    )
    return [group for group in groups if (group.get("displayName") or "").startswith(prefix)]


def delete_group(ctx: TenantContext, group_id: str) -> None:
    ctx.graph.delete(f"groups/{group_id}")
    ctx.info("group_deleted", group_id=group_id)
