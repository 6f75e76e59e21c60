from __future__ import annotations

from typing import Callable, List, Optional, Sequence

import httpx
from rich.console import Console
from rich.prompt import IntPrompt
from rich.table import Table

from .catalog import (
    AUTOMATIC_REGION,
    LANGUAGES,
    list_gallery_images,
    list_service_plans,
    list_supported_regions,
    resolve_choice,
)
from .config import PolicySpec
from .models import CatalogItem, DeploymentSelection
from .session import TenantContext


def choose(console: Console, items: Sequence[CatalogItem], kind: str) -> CatalogItem:
    """Print a numbered table of items and ask for one of them."""
    if not items:
        raise LookupError(f"No {kind} available to choose from")
    table = Table(title=f"Available {kind}s")
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("Details")
    for number, item in enumerate(items, start=1):
        table.add_row(str(number), item.display_name, item.detail)
    console.print(table)

    index = IntPrompt.ask(
        f"Select {kind}",
        console=console,
        choices=[str(number) for number in range(1, len(items) + 1)],
        show_choices=False,
        default=1,
    )
    return items[index - 1]


def _pick(
    console: Console,
    items: Sequence[CatalogItem],
    wanted: Optional[str],
    kind: str,
    interactive: bool,
) -> CatalogItem:
    if wanted:
        return resolve_choice(items, wanted, kind)
    if not interactive:
        raise ValueError(f"No {kind} given and prompting is disabled")
    return choose(console, items, kind)


def _load(
    ctx: TenantContext, loader: Callable[[TenantContext], List[CatalogItem]], kind: str, warnings: List[str]
) -> Optional[List[CatalogItem]]:
    try:
        return loader(ctx)
    except httpx.HTTPError as exc:
        ctx.warning("catalog_unavailable", kind=kind, error=str(exc))
        warnings.append(f"list {kind}s: {exc}")
        return None


def select_deployment(
    ctx: TenantContext,
    policy: PolicySpec,
    warnings: List[str],
    sku: Optional[str] = None,
    region: Optional[str] = None,
    image: Optional[str] = None,
    language: Optional[str] = None,
    interactive: bool = True,
    console: Optional[Console] = None,
) -> DeploymentSelection:
    """Resolve SKU, region, image and language from parameters or prompts."""
    console = console or Console()

    selected_sku: Optional[CatalogItem] = None
    if policy.provisioning_type == "shared" or sku:
        plans = _load(ctx, list_service_plans, "SKU", warnings)
        if plans is None:
            if policy.provisioning_type == "shared":
                raise LookupError("Service plans could not be listed; a shared policy needs one")
        else:
            selected_sku = _pick(console, plans, sku, "SKU", interactive)

    regions = _load(ctx, list_supported_regions, "region", warnings) or [AUTOMATIC_REGION]
    selected_region = _pick(console, regions, region, "region", interactive)

    images = _load(ctx, list_gallery_images, "image", warnings)
    if images is None:
        raise LookupError("Gallery images could not be listed; a policy cannot be created without one")
    selected_image = _pick(console, images, image, "image", interactive)

    selected_language = _pick(console, LANGUAGES, language, "language", interactive)

    selection = DeploymentSelection(
        sku=selected_sku,
        region=selected_region,
        image=selected_image,
        language=selected_language,
    )
    ctx.info("deployment_selected", **selection.describe())
    return selection
