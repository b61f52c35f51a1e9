"""
Oracle set assembly.

The oracle list is fixed and ordered; it is built once at startup. Order
matters: weighted-vote ties go to the earlier oracle.
"""

from typing import Optional

from releasegate.oracles.base import Oracle
from releasegate.oracles.cache import TTLCache
from releasegate.oracles.local import BuildArtifactOracle, LocalStateOracle
from releasegate.oracles.registry import RegistryOracle
from releasegate.oracles.result_cache import ResultCacheOracle
from releasegate.oracles.semver import SemanticVersionOracle
from releasegate.oracles.source_control import SourceControlHistoryOracle
from releasegate.oracles.version_policy import VersionPolicyOracle
from releasegate.providers.base import AuditProvider, RegistryProvider, SourceControlProvider
from releasegate.providers.local import PackageDescriptorReader


def default_oracles(
    registry: RegistryProvider,
    audit: Optional[AuditProvider] = None,
    source_control: Optional[SourceControlProvider] = None,
    timeout_seconds: Optional[float] = None,
    history_cache_ttl_seconds: float = 600.0,
    result_cache_ttl_seconds: float = 300.0,
) -> list[Oracle]:
    """
    Build the seven standard oracles.

    Returns:
        [registry, version-policy, source-control, build-artifact,
         local-state, result-cache, semver]. The source-control oracle is
        omitted when no source-control provider is given.
    """
    reader = PackageDescriptorReader()
    oracles: list[Oracle] = [
        RegistryOracle(registry, timeout_seconds=timeout_seconds),
        VersionPolicyOracle(
            registry=registry,
            audit=audit,
            source_control=source_control,
            cache=TTLCache(ttl_seconds=history_cache_ttl_seconds, name="version-history"),
            timeout_seconds=timeout_seconds,
        ),
    ]
    if source_control is not None:
        oracles.append(SourceControlHistoryOracle(source_control, timeout_seconds=timeout_seconds))
    oracles.extend([
        BuildArtifactOracle(reader, timeout_seconds=timeout_seconds),
        LocalStateOracle(reader, timeout_seconds=timeout_seconds),
        ResultCacheOracle(
            TTLCache(ttl_seconds=result_cache_ttl_seconds, name="analysis-results"),
            timeout_seconds=timeout_seconds,
        ),
        SemanticVersionOracle(timeout_seconds=timeout_seconds),
    ])
    return oracles
