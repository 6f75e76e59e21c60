from __future__ import annotations

import time
from typing import Any, Callable, Dict, Iterable, List, Optional

import httpx

from .audit import JsonAuditLogger
from .auth import GraphAuthenticator
from .config import TenantConfig

FALLBACK_STATUSES = (400, 404, 405)
RETRY_STATUSES = (429, 503, 504)


class GraphClient:
    """Tenant-scoped Microsoft Graph client with retry, paging and version fallback."""

    def __init__(
        self,
        tenant_config: TenantConfig,
        authenticator: GraphAuthenticator,
        audit_logger: JsonAuditLogger,
        timeout: float = 30.0,
        max_retries: int = 3,
        correlation_id: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.tenant_config = tenant_config
        self.authenticator = authenticator
        self.audit = audit_logger
        self.timeout = timeout
        self.max_retries = max_retries
        self.correlation_id = correlation_id
        self._sleep = sleep
        self.session = httpx.Client(timeout=self.timeout, transport=transport)

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "GraphClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _auth_header(self, scopes: Iterable[str]) -> Dict[str, str]:
        token = self.authenticator.acquire_token(scopes)
        return {"Authorization": f"Bearer {token}"}

    def url_for(self, path: str, version: Optional[str] = None) -> str:
        if path.startswith("http"):
            return path
        version = version or self.tenant_config.api_version
        return f"{self.tenant_config.graph_base_url}/{version}/{path.lstrip('/')}"

    def request(
        self,
        method: str,
        url: str,
        scopes: Optional[Iterable[str]] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        scopes = scopes or self.tenant_config.scopes
        headers = kwargs.pop("headers", {})
        headers.update(self._auth_header(scopes))
        backoff = 1.0

        for attempt in range(1, self.max_retries + 2):
            response = self.session.request(method, url, headers=headers, **kwargs)
            if response.status_code in RETRY_STATUSES:
                retry_after = self._get_retry_after_seconds(response) or backoff
                self.audit.warning(
                    "graph_throttled",
                    tenant_id=self.tenant_config.tenant_id,
                    correlation_id=self.correlation_id,
                    status=response.status_code,
                    retry_after=retry_after,
                    attempt=attempt,
                )
                self._sleep(retry_after)
                backoff = min(backoff * 2, 30)
                continue

            if response.status_code >= 400:
                self.audit.error(
                    "graph_request_failed",
                    tenant_id=self.tenant_config.tenant_id,
                    correlation_id=self.correlation_id,
                    method=method,
                    status=response.status_code,
                    url=url,
                    body=response.text,
                )
                response.raise_for_status()

            self.audit.info(
                "graph_request_succeeded",
                tenant_id=self.tenant_config.tenant_id,
                correlation_id=self.correlation_id,
                method=method,
                status=response.status_code,
                url=url,
            )
            return response

        raise RuntimeError("Maximum retry attempts exceeded for Graph request")

    def _get_retry_after_seconds(self, response: httpx.Response) -> Optional[float]:
        retry_after = response.headers.get("Retry-After")
        if retry_after is None:
            return None
        try:
            return float(retry_after)
        except ValueError:
            return None

    def get(self, path: str, version: Optional[str] = None, **kwargs: Any) -> httpx.Response:
        return self.request("GET", self.url_for(path, version), **kwargs)

    def post(self, path: str, json: Any, version: Optional[str] = None, **kwargs: Any) -> httpx.Response:
        return self.request("POST", self.url_for(path, version), json=json, **kwargs)

    def patch(self, path: str, json: Any, version: Optional[str] = None, **kwargs: Any) -> httpx.Response:
        return self.request("PATCH", self.url_for(path, version), json=json, **kwargs)

    def delete(self, path: str, version: Optional[str] = None, **kwargs: Any) -> httpx.Response:
        return self.request("DELETE", self.url_for(path, version), **kwargs)

    def get_all(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        version: Optional[str] = None,
        max_pages: int = 100,
    ) -> List[Dict[str, Any]]:
        """Collect every item of a list endpoint by following @odata.nextLink."""
        items: List[Dict[str, Any]] = []
        url = self.url_for(path, version)
        page_params = params

        for _ in range(max_pages):
            data = self.request("GET", url, params=page_params).json()
            items.extend(data.get("value", []))
            next_link = data.get("@odata.nextLink")
            if not next_link:
                break
            url = next_link
            page_params = None

        return items

    def call(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Issue a request on the primary API version, retrying once on the fallback.

        Cloud PC endpoints move between beta and v1.0; a 400/404/405 from the
        primary version is treated as "not available here" and retried.
        """
        fallback = self.tenant_config.fallback_api_version
        try:
            return self.request(method, self.url_for(path), **kwargs)
        except httpx.HTTPStatusError as exc:
            if not fallback or exc.response.status_code not in FALLBACK_STATUSES:
                raise
            self.audit.warning(
                "graph_version_fallback",
                tenant_id=self.tenant_config.tenant_id,
                correlation_id=self.correlation_id,
                method=method,
                path=path,
                status=exc.response.status_code,
                fallback_version=fallback,
            )
        return self.request(method, self.url_for(path, fallback), **kwargs)

    def call_all(self, path: str, params: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """get_all() with the same version fallback as call()."""
        fallback = self.tenant_config.fallback_api_version
        try:
            return self.get_all(path, params=params)
        except httpx.HTTPStatusError as exc:
            if not fallback or exc.response.status_code not in FALLBACK_STATUSES:
                raise
            self.audit.warning(
                "graph_version_fallback",
                tenant_id=self.tenant_config.tenant_id,
                correlation_id=self.correlation_id,
                method="GET",
                path=path,
                status=exc.response.status_code,
                fallback_version=fallback,
            )
        return self.get_all(path, params=params, version=fallback)


def odata_string(value: str) -> str:
    """Quote a literal for use inside an OData $filter expression."""
    return "'" + value.replace("'", "''") + "'"
