from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict

GROUP_TARGET_TYPE = "#microsoft.graph.cloudPcManagementGroupAssignmentTarget"


class CatalogItem(BaseModel):
    """One selectable SKU, region, image or language."""

    id: str
    display_name: str
    detail: str = ""
    region_group: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class AssignmentTarget(BaseModel):
    group_id: str
    service_plan_id: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_graph(cls, target: Dict[str, Any]) -> "AssignmentTarget":
        return cls(group_id=target["groupId"], service_plan_id=target.get("servicePlanId") or None)

    def to_graph(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"@odata.type": GROUP_TARGET_TYPE, "groupId": self.group_id}
        if self.service_plan_id:
            payload["servicePlanId"] = self.service_plan_id
        return payload


class DeploymentSelection(BaseModel):
    sku: Optional[CatalogItem] = None
    region: CatalogItem
    image: CatalogItem
    language: CatalogItem

    model_config = ConfigDict(frozen=True)

    def describe(self) -> Dict[str, Optional[str]]:
        return {
            "sku": self.sku.display_name if self.sku else None,
            "region": self.region.display_name,
            "image": self.image.display_name,
            "language": self.language.id,
        }
