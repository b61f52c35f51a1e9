"""
ReleaseGate Consensus Engine.

Components:
- schemas: AnalysisResult, recommendations, reliability labels
- conflicts: Conflict dedup with corroboration tracking
- reliability: Consensus score, reliability label, intelligence level
- fusion: Critical override + confidence-weighted voting
- analyzer: Concurrent oracle fan-out, fusion and result assembly
"""
