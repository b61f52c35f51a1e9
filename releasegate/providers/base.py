"""
Provider contracts.

Providers only FETCH data. They never classify a version or make a
publish decision; that belongs to the oracles and the fusion engine.

Three provider categories:
- RegistryProvider:      published versions, latest tag, metadata (None = not found)
- AuditProvider:         every version that ever existed, including unpublished ones
- SourceControlProvider: version tags and recent commit subjects for a path

Provider failures raise ProviderError. A missing package is NOT a failure.
"""

from typing import Any, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field


class RegistryPackage(BaseModel):
    """Registry view of a package."""
    model_config = ConfigDict(frozen=True)

    name: str
    versions: list[str] = Field(default_factory=list)   # Currently published
    latest: Optional[str] = None                         # dist-tags.latest
    metadata: dict[str, Any] = Field(default_factory=dict)


class VersionAudit(BaseModel):
    """Audit view: everything that was ever published."""
    model_config = ConfigDict(frozen=True)

    name: str
    all_versions: list[str] = Field(default_factory=list)
    unpublished: list[str] = Field(default_factory=list)


@runtime_checkable
class RegistryProvider(Protocol):
    async def fetch_package(self, name: str) -> Optional[RegistryPackage]:
        ...


@runtime_checkable
class AuditProvider(Protocol):
    async def fetch_version_audit(self, name: str) -> VersionAudit:
        ...


@runtime_checkable
class SourceControlProvider(Protocol):
    async def list_version_tags(self, path: Optional[str] = None) -> list[str]:
        ...

    async def recent_commits(self, path: Optional[str] = None, limit: int = 10) -> list[str]:
        ...
