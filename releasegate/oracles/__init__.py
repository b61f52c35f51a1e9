"""
ReleaseGate Oracles.

Components:
- schemas: Oracle states, conflict kinds, severities and result records
- base: Oracle contract (bounded, never raises past analyze)
- cache: Thread-safe TTL cache shared by the stateful oracles
- registry: Live registry lookup (authoritative)
- version_policy: Complete version history + burn-rule enforcement (authoritative)
- source_control: Git tags and recent version commits
- local: Build-artifact and local-descriptor checks
- result_cache: Prior analysis results
- semver: Version string syntax
- factory: The ordered default oracle set
"""
