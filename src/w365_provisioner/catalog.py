"""Read-only Windows 365 catalog lookups: SKUs, regions, gallery images, languages."""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from .models import CatalogItem
from .session import TenantContext

VIRTUAL_ENDPOINT = "deviceManagement/virtualEndpoint"

AUTOMATIC_REGION = CatalogItem(
    id="automatic",
    display_name="automatic",
    detail="Let Windows 365 pick the region",
    region_group="default",
)

LANGUAGES: Sequence[CatalogItem] = tuple(
    CatalogItem(id=code, display_name=label)
    for code, label in (
        ("en-US", "English (United States)"),
        ("en-GB", "English (United Kingdom)"),
        ("en-AU", "English (Australia)"),
        ("en-CA", "English (Canada)"),
        ("en-IN", "English (India)"),
        ("en-NZ", "English (New Zealand)"),
        ("ar-SA", "Arabic (Saudi Arabia)"),
        ("bg-BG", "Bulgarian (Bulgaria)"),
        ("zh-CN", "Chinese (Simplified)"),
        ("zh-TW", "Chinese (Traditional)"),
        ("hr-HR", "Croatian (Croatia)"),
        ("cs-CZ", "Czech (Czech Republic)"),
        ("da-DK", "Danish (Denmark)"),
        ("nl-NL", "Dutch (Netherlands)"),
        ("et-EE", "Estonian (Estonia)"),
        ("fi-FI", "Finnish (Finland)"),
        ("fr-CA", "French (Canada)"),
        ("fr-FR", "French (France)"),
        ("de-DE", "German (Germany)"),
        ("el-GR", "Greek (Greece)"),
        ("he-IL", "Hebrew (Israel)"),
        ("hu-HU", "Hungarian (Hungary)"),
        ("it-IT", "Italian (Italy)"),
        ("ja-JP", "Japanese (Japan)"),
        ("ko-KR", "Korean (Korea)"),
        ("lv-LV", "Latvian (Latvia)"),
        ("lt-LT", "Lithuanian (Lithuania)"),
        ("nb-NO", "Norwegian Bokmal (Norway)"),
        ("pl-PL", "Polish (Poland)"),
        ("pt-BR", "Portuguese (Brazil)"),
        ("pt-PT", "Portuguese (Portugal)"),
        ("ro-RO", "Romanian (Romania)"),
        ("ru-RU", "Russian (Russia)"),
        ("sr-Latn-RS", "Serbian Latin (Serbia)"),
        ("sk-SK", "Slovak (Slovakia)"),
        ("sl-SI", "Slovenian (Slovenia)"),
        ("es-MX", "Spanish (Mexico)"),
        ("es-ES", "Spanish (Spain)"),
        ("sv-SE", "Swedish (Sweden)"),
        ("th-TH", "Thai (Thailand)"),
        ("tr-TR", "Turkish (Turkey)"),
        ("uk-UA", "Ukrainian (Ukraine)"),
    )
)


def list_service_plans(ctx: TenantContext) -> List[CatalogItem]:
    plans = ctx.graph.call_all(f"{VIRTUAL_ENDPOINT}/servicePlans")
    return [
        CatalogItem(
            id=plan["id"],
            display_name=plan.get("displayName") or plan["id"],
            detail=_plan_detail(plan),
        )
        for plan in plans
    ]


def _plan_detail(plan: Dict[str, Any]) -> str:
    parts = []
    if plan.get("type"):
        parts.append(str(plan["type"]))
    if plan.get("vCpuCount"):
        parts.append(f"{plan['vCpuCount']} vCPU")
    if plan.get("ramInGB"):
        parts.append(f"{plan['ramInGB']} GB RAM")
    if plan.get("storageInGB"):
        parts.append(f"{plan['storageInGB']} GB disk")
    return ", ".join(parts)


def list_supported_regions(ctx: TenantContext) -> List[CatalogItem]:
    regions = ctx.graph.call_all(f"{VIRTUAL_ENDPOINT}/supportedRegions")
    items = [AUTOMATIC_REGION]
    for region in regions:
        if region.get("regionStatus", "available") != "available":
            continue
        items.append(
            CatalogItem(
                id=region.get("id") or region["displayName"],
                display_name=region["displayName"],
                detail=region.get("regionGroup") or "",
                region_group=region.get("regionGroup"),
            )
        )
    return items


def list_gallery_images(ctx: TenantContext) -> List[CatalogItem]:
    images = ctx.graph.call_all(f"{VIRTUAL_ENDPOINT}/galleryImages")
    supported = [image for image in images if image.get("status", "supported") == "supported"]
    supported.sort(key=lambda image: image.get("displayName") or image["id"])
    return [
        CatalogItem(
            id=image["id"],
            display_name=image.get("displayName") or image["id"],
            detail=image.get("skuDisplayName") or "",
        )
        for image in supported
    ]


def resolve_choice(items: Sequence[CatalogItem], wanted: str, kind: str = "item") -> CatalogItem:
    """Match a parameter by id, then display name (both case-insensitive), then 1-based index."""
    needle = wanted.strip().lower()
    for item in items:
        if item.id.lower() == needle:
            return item
    for item in items:
        if item.display_name.lower() == needle:
            return item
    index = _as_index(needle)
    if index is not None and 1 <= index <= len(items):
        return items[index - 1]
    raise LookupError(f"No {kind} matches {wanted!r}")


def _as_index(value: str) -> Optional[int]:
    try:
        return int(value)
    except ValueError:
        return None
