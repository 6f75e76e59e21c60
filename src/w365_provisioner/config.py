from __future__ import annotations

import os
from pathlib import Path
from typing import List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class SecretRef(BaseModel):
    """Reference to a secret source without storing the secret in the config file.

    Only environment variables and inline values resolve here. Key Vault URIs are
    accepted so configs can document where the secret lives, but must be fetched
    before authentication.
    """

    env: Optional[str] = Field(
        default=None, description="Environment variable name containing the secret"
    )
    value: Optional[str] = Field(
        default=None,
        description="Inline value (local development only)",
    )
    key_vault_secret_uri: Optional[str] = Field(
        default=None,
        description="URI of the Key Vault secret. Resolve via managed identity at runtime.",
    )

    model_config = ConfigDict(extra="forbid")

    def resolve(self) -> str:
        if self.env:
            env_value = os.getenv(self.env)
            if env_value:
                return env_value
            raise ValueError(f"Environment variable {self.env} is not set")
        if self.value:
            return self.value
        if self.key_vault_secret_uri:
            raise ValueError(
                "Key Vault secret resolution is not supported by SecretRef.resolve(). "
                "Export the secret into an environment variable before running."
            )
        raise ValueError("No secret reference provided for resolution")


class ClientSecretAuth(BaseModel):
    type: Literal["client_secret"]
    client_id: str
    client_secret: SecretRef
    authority_host: str = "https://login.microsoftonline.com"

    model_config = ConfigDict(extra="forbid")


class CertificateAuth(BaseModel):
    type: Literal["certificate"]
    client_id: str
    certificate_path: Path
    certificate_thumbprint: Optional[str] = None
    certificate_password: Optional[SecretRef] = None
    authority_host: str = "https://login.microsoftonline.com"

    model_config = ConfigDict(extra="forbid")


class ManagedIdentityAuth(BaseModel):
    type: Literal["managed_identity"]
    client_id: Optional[str] = Field(
        default=None, description="Optional user-assigned managed identity client ID"
    )

    model_config = ConfigDict(extra="forbid")


class DeviceCodeAuth(BaseModel):
    """Delegated sign-in for an administrator at a terminal."""

    type: Literal["device_code"]
    client_id: str = Field(
        default="14d82eec-204b-4c2f-b7e8-296a70dab67e",
        description="Public client ID. Defaults to the Microsoft Graph command line tools app.",
    )
    scopes: List[str] = Field(
        default_factory=lambda: [
            "https://graph.microsoft.com/Group.ReadWrite.All",
            "https://graph.microsoft.com/User.Read.All",
            "https://graph.microsoft.com/CloudPC.ReadWrite.All",
        ]
    )
    authority_host: str = "https://login.microsoftonline.com"

    model_config = ConfigDict(extra="forbid")


AuthConfig = Union[ClientSecretAuth, CertificateAuth, ManagedIdentityAuth, DeviceCodeAuth]


class TenantConfig(BaseModel):
    tenant_id: str
    display_name: Optional[str] = None
    auth: AuthConfig = Field(discriminator="type")
    default_scopes: List[str] = Field(
        default_factory=lambda: ["https://graph.microsoft.com/.default"]
    )
    graph_base_url: str = Field(
        default="https://graph.microsoft.com",
        description="Graph endpoint. Override for national clouds if needed.",
    )
    api_version: str = "v1.0"
    fallback_api_version: Optional[str] = Field(
        default="beta",
        description="Version retried when the primary version rejects a Cloud PC call",
    )

    model_config = ConfigDict(extra="forbid")

    @field_validator("default_scopes")
    @classmethod
    def ensure_scopes(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("At least one scope must be provided per tenant")
        return value

    @property
    def scopes(self) -> List[str]:
        if isinstance(self.auth, DeviceCodeAuth):
            return list(self.auth.scopes)
        return list(self.default_scopes)


class GroupSpec(BaseModel):
    name: str
    description: str = "Windows 365 Cloud PC users"

    model_config = ConfigDict(extra="forbid")


class UserSettingSpec(BaseModel):
    name: str
    local_admin_enabled: bool = False
    reset_enabled: bool = True
    restore_point_frequency_hours: int = 12
    user_restore_enabled: bool = True

    model_config = ConfigDict(extra="forbid")

    @field_validator("restore_point_frequency_hours")
    @classmethod
    def validate_frequency(cls, value: int) -> int:
        if value not in (4, 6, 12, 16, 24):
            raise ValueError("restore_point_frequency_hours must be one of 4, 6, 12, 16, 24")
        return value


class PolicySpec(BaseModel):
    name: str
    description: str = ""
    provisioning_type: Literal["dedicated", "shared"] = "dedicated"
    naming_template: Optional[str] = Field(
        default=None, description="Cloud PC naming template, e.g. CPC-%USERNAME:5%-%RAND:5%"
    )
    enable_single_sign_on: bool = True
    domain_join_type: Literal["azureADJoin", "hybridAzureADJoin"] = "azureADJoin"
    region_group: Optional[str] = Field(
        default=None, description="Overrides the region group reported by the service"
    )

    model_config = ConfigDict(extra="forbid")


class DeploymentConfig(BaseModel):
    prefix: str
    user_group: GroupSpec
    admin_group: Optional[GroupSpec] = None
    user_setting: UserSettingSpec
    policy: PolicySpec
    sku: Optional[str] = None
    region: Optional[str] = None
    image: Optional[str] = None
    language: Optional[str] = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("prefix")
    @classmethod
    def validate_prefix(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("prefix must not be empty")
        return value

    @model_validator(mode="after")
    def names_carry_prefix(self) -> "DeploymentConfig":
        names = [self.user_group.name, self.user_setting.name, self.policy.name]
        if self.admin_group:
            names.append(self.admin_group.name)
        for name in names:
            if not name.startswith(self.prefix):
                raise ValueError(f"Display name {name!r} does not start with prefix {self.prefix!r}")
        return self


class ProvisionerConfig(BaseModel):
    tenants: List[TenantConfig]
    deployment: DeploymentConfig

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def load(cls, path: Union[str, Path]) -> "ProvisionerConfig":
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with config_path.open("r", encoding="utf-8") as handle:
            try:
                raw = yaml.safe_load(handle) or {}
            except yaml.YAMLError as exc:
                raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(raw, dict):
            raise ValueError(f"Configuration file {config_path} must contain a mapping")

        return cls(**raw)

    def get_tenant(self, tenant_id: str) -> TenantConfig:
        for tenant in self.tenants:
            if tenant.tenant_id == tenant_id:
                return tenant
        raise KeyError(f"Tenant {tenant_id} is not configured")
