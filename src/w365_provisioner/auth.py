from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

import msal
from azure.identity import ManagedIdentityCredential

from .audit import JsonAuditLogger
from .config import (
    CertificateAuth,
    ClientSecretAuth,
    DeviceCodeAuth,
    ManagedIdentityAuth,
    TenantConfig,
)

TOKEN_REFRESH_BUFFER_SECS = 300


class GraphAuthenticator:
    """Handles token acquisition for Microsoft Graph.

    Supports client secret, certificate, managed identity and device code
    sign-in. Tokens are kept on the instance until shortly before they expire,
    so one provisioning run authenticates once per scope set.
    """

    def __init__(
        self,
        tenant_config: TenantConfig,
        audit_logger: JsonAuditLogger,
        prompt: Callable[[str], None] = print,
    ):
        self.tenant_config = tenant_config
        self.audit = audit_logger
        self.prompt = prompt
        self._app: Any = None
        self._tokens: Dict[Tuple[str, ...], Tuple[str, float]] = {}

    def acquire_token(self, scopes: Iterable[str]) -> str:
        key = tuple(sorted(scopes))
        cached = self._tokens.get(key)
        if cached and time.time() < cached[1]:
            return cached[0]

        token, expires_in = self._acquire(list(key))
        self._tokens[key] = (token, time.time() + max(expires_in - TOKEN_REFRESH_BUFFER_SECS, 0))
        self.audit.info(
            "acquired_token",
            tenant_id=self.tenant_config.tenant_id,
            auth_type=self.tenant_config.auth.type,
        )
        return token

    def _acquire(self, scopes: list) -> Tuple[str, float]:
        auth_config = self.tenant_config.auth

        if isinstance(auth_config, (ClientSecretAuth, CertificateAuth)):
            app = self._confidential_app()
            result = app.acquire_token_silent(scopes, account=None)
            if not result:
                result = app.acquire_token_for_client(scopes=scopes)
            return self._extract_token(result)

        if isinstance(auth_config, ManagedIdentityAuth):
            credential = ManagedIdentityCredential(client_id=auth_config.client_id)
            result = credential.get_token(*scopes)
            return result.token, float(result.expires_on - time.time())

        if isinstance(auth_config, DeviceCodeAuth):
            return self._acquire_device_code(auth_config, scopes)

        raise ValueError("Unsupported authentication configuration")

    def _authority(self, authority_host: str) -> str:
        return f"{authority_host}/{self.tenant_config.tenant_id}"

    def _confidential_app(self) -> msal.ConfidentialClientApplication:
        if self._app is not None:
            return self._app
        auth_config = self.tenant_config.auth
        if isinstance(auth_config, ClientSecretAuth):
            credential: Any = auth_config.client_secret.resolve()
        else:
            credential = self._load_certificate(Path(auth_config.certificate_path))
        self._app = msal.ConfidentialClientApplication(
            client_id=auth_config.client_id,
            client_credential=credential,
            authority=self._authority(auth_config.authority_host),
            token_cache=msal.TokenCache(),
        )
        return self._app

    def _acquire_device_code(self, auth_config: DeviceCodeAuth, scopes: list) -> Tuple[str, float]:
        if self._app is None:
            self._app = msal.PublicClientApplication(
                client_id=auth_config.client_id,
                authority=self._authority(auth_config.authority_host),
            )
        app = self._app

        accounts = app.get_accounts()
        if accounts:
            result = app.acquire_token_silent(scopes, account=accounts[0])
            if result and "access_token" in result:
                return self._extract_token(result)

        flow = app.initiate_device_flow(scopes=scopes)
        if "user_code" not in flow:
            raise RuntimeError(f"Device flow could not be started: {json.dumps(flow)}")
        self.prompt(flow["message"])
        return self._extract_token(app.acquire_token_by_device_flow(flow))

    @staticmethod
    def _extract_token(result: Optional[dict]) -> Tuple[str, float]:
        if not result or "access_token" not in result:
            raise RuntimeError(f"Token acquisition failed: {json.dumps(result)}")
        return result["access_token"], float(result.get("expires_in", 3600))

    def _load_certificate(self, path: Path) -> dict:
        auth_config = self.tenant_config.auth
        password = None
        thumbprint = None
        if isinstance(auth_config, CertificateAuth):
            thumbprint = auth_config.certificate_thumbprint
            if auth_config.certificate_password:
                password = auth_config.certificate_password.resolve()
        try:
            with path.open("rb") as handle:
                certificate_bytes = handle.read()
        except OSError as exc:
            raise RuntimeError(f"Failed to read certificate at {path}: {exc}") from exc

        return {"private_key": certificate_bytes, "thumbprint": thumbprint, "passphrase": password}
