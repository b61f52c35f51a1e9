"""
ReleaseGate: Multi-Source Release Consensus Engine.

Architecture:
    releasegate/
    ├── config.py        # Pydantic settings (env / .env)
    ├── log.py           # structlog configuration
    ├── exceptions.py    # Error codes and exception hierarchy
    ├── versioning.py    # Semantic version parsing and ordering
    ├── providers/       # Registry / audit / git data providers
    ├── oracles/         # Oracle contract + seven concrete oracles
    ├── engine/          # Conflict aggregation, reliability, consensus fusion
    ├── learning/        # Outcome history and adaptive confidence
    ├── monitoring/      # Health checks, rolling metrics, alerts
    └── service.py       # ReleaseGate facade

Module Boundaries:
    - Providers only FETCH data; they never decide anything
    - Oracles turn provider data into a state + confidence, and never raise
    - The fusion engine is the only place a go/no-go decision is made
    - A burned version can never be classified as compliant
    - Learning and monitoring are advisory; they never override a violation

Data Flow:
    analyze(pkg, version) → Oracles (parallel) → Policy override check
    → Weighted vote → Conflict aggregation → Reliability score
    → Monitoring sample → (later) record_outcome → Learning history

Version: 1.0.0
"""

__version__ = "1.0.0"
