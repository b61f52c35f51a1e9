"""
ReleaseGate Data Providers.

Components:
- base: Provider protocols (registry, audit, source control) and their data models
- npm: npm registry + version audit over httpx
- git: Git tags and commit history via subprocess
- local: package.json descriptor and build-output detection on disk
"""
