"""
npm Registry Client: HTTP provider for the public (or a private) npm registry.

Implements BOTH RegistryProvider and AuditProvider from one packument:
- versions        → currently published versions
- dist-tags       → latest
- time            → every version that was ever published, including ones
                    that were later unpublished (npm keeps their timestamps)
- time.unpublished → fully unpublished package: its last known versions

A 404 is "package not found" (returns None / an empty audit), NOT an error.
Everything else that goes wrong raises ProviderError so the calling oracle
can convert it into a low-confidence result.
"""

from typing import Any, Optional
from urllib.parse import quote

import httpx
import structlog

from releasegate.exceptions import ErrorCode, ProviderError, ProviderTimeoutError
from releasegate.providers.base import RegistryPackage, VersionAudit

logger = structlog.get_logger(__name__)

PROVIDER_NAME = "npm-registry"

# Keys of the packument "time" map that are not versions
_TIME_META_KEYS = frozenset({"created", "modified", "unpublished"})


def _package_path(name: str) -> str:
    """Scoped packages keep the "@" and escape the slash ("@a/b" → "@a%2Fb")."""
    return quote(name, safe="@")


def _parse_packument(name: str, body: dict[str, Any]) -> RegistryPackage:
    versions = list((body.get("versions") or {}).keys())
    dist_tags = body.get("dist-tags") or {}
    time_map = body.get("time") or {}

    metadata: dict[str, Any] = {
        "description": body.get("description", ""),
        "license": body.get("license"),
        "homepage": body.get("homepage"),
        "maintainers": len(body.get("maintainers") or []),
        "created": time_map.get("created"),
        "modified": time_map.get("modified"),
        "dist_tags": dict(dist_tags),
    }
    return RegistryPackage(
        name=body.get("name", name),
        versions=versions,
        latest=dist_tags.get("latest"),
        metadata=metadata,
    )


def _parse_audit(name: str, body: dict[str, Any]) -> VersionAudit:
    published = set((body.get("versions") or {}).keys())
    time_map = body.get("time") or {}

    ever_seen = [key for key in time_map if key not in _TIME_META_KEYS]

    # Fully unpublished package: npm replaces the document with a tombstone
    tombstone = time_map.get("unpublished")
    if isinstance(tombstone, dict):
        for version in tombstone.get("versions") or []:
            if version not in ever_seen:
                ever_seen.append(version)

    for version in published:
        if version not in ever_seen:
            ever_seen.append(version)

    unpublished = [v for v in ever_seen if v not in published]
    return VersionAudit(name=name, all_versions=ever_seen, unpublished=unpublished)


class NpmRegistryClient:
    """
    Async npm registry client.

    One short-lived httpx.AsyncClient per request; pass ``transport`` to
    route requests elsewhere (httpx.MockTransport in tests).
    """

    def __init__(
        self,
        base_url: str = "https://registry.npmjs.org",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers={"Accept": "application/json"},
            transport=self._transport,
        )

    async def _fetch_packument(self, name: str) -> Optional[dict[str, Any]]:
        url = f"{self.base_url}/{_package_path(name)}"
        try:
            async with self._client() as client:
                resp = await client.get(url)
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(PROVIDER_NAME, self.timeout, cause=e) from e
        except httpx.HTTPError as e:
            raise ProviderError(PROVIDER_NAME, f"request failed: {e}", cause=e) from e

        if resp.status_code == 404:
            logger.debug("npm_package_not_found", package=name)
            return None
        if resp.status_code >= 400:
            raise ProviderError(
                PROVIDER_NAME,
                f"HTTP {resp.status_code} for {name}",
                details={"status_code": resp.status_code},
            )

        try:
            body = resp.json()
        except ValueError as e:
            raise ProviderError(
                PROVIDER_NAME,
                "response is not valid JSON",
                error_code=ErrorCode.PROVIDER_MALFORMED_RESPONSE,
                cause=e,
            ) from e
        if not isinstance(body, dict):
            raise ProviderError(
                PROVIDER_NAME,
                f"expected a JSON object, got {type(body).__name__}",
                error_code=ErrorCode.PROVIDER_MALFORMED_RESPONSE,
            )
        return body

    async def fetch_package(self, name: str) -> Optional[RegistryPackage]:
        """Published view of a package, or None if the registry has never heard of it."""
        body = await self._fetch_packument(name)
        if body is None:
            return None
        package = _parse_packument(name, body)
        logger.debug(
            "npm_package_fetched",
            package=name,
            versions=len(package.versions),
            latest=package.latest,
        )
        return package

    async def fetch_version_audit(self, name: str) -> VersionAudit:
        """Every version the registry ever recorded for ``name``."""
        body = await self._fetch_packument(name)
        if body is None:
            return VersionAudit(name=name)
        audit = _parse_audit(name, body)
        if audit.unpublished:
            logger.info(
                "npm_unpublished_versions_found",
                package=name,
                unpublished=audit.unpublished,
            )
        return audit
