"""
ReleaseGate Learning Loop.

Components:
- schemas: Historical records, patterns, advisory adjustments
- store: Bounded, thread-safe history log with JSON persistence
- engine: Outcome recording, pattern mining, advisory adaptation
"""
