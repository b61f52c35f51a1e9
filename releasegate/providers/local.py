"""
Local package descriptor reader (package.json on disk).

Synchronous by nature; oracles call it through ``asyncio.to_thread``.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from releasegate.exceptions import ErrorCode, ProviderError

PROVIDER_NAME = "package-descriptor"
DESCRIPTOR_FILENAME = "package.json"
BUILD_DIRNAME = "dist"


class PackageDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    name: Optional[str] = None
    version: Optional[str] = None
    modified_at: datetime
    has_build_output: bool = False
    raw: dict[str, Any] = Field(default_factory=dict)


class PackageDescriptorReader:
    """Reads ``<package_path>/package.json`` and notes whether ``dist/`` exists."""

    def __init__(
        self,
        descriptor_filename: str = DESCRIPTOR_FILENAME,
        build_dirname: str = BUILD_DIRNAME,
    ):
        self.descriptor_filename = descriptor_filename
        self.build_dirname = build_dirname

    def read(self, package_path: str) -> Optional[PackageDescriptor]:
        """
        Returns:
            The descriptor, or None if the file does not exist

        Raises:
            ProviderError: the file exists but is unreadable or not a JSON object
        """
        root = Path(package_path)
        descriptor_path = root / self.descriptor_filename
        if not descriptor_path.is_file():
            return None

        try:
            raw = json.loads(descriptor_path.read_text(encoding="utf-8"))
            stat = descriptor_path.stat()
        except (OSError, ValueError) as e:
            raise ProviderError(
                PROVIDER_NAME,
                f"cannot read {descriptor_path}: {e}",
                error_code=ErrorCode.PROVIDER_MALFORMED_RESPONSE,
                cause=e,
            ) from e
        if not isinstance(raw, dict):
            raise ProviderError(
                PROVIDER_NAME,
                f"{descriptor_path} is not a JSON object",
                error_code=ErrorCode.PROVIDER_MALFORMED_RESPONSE,
            )

        version = raw.get("version")
        return PackageDescriptor(
            path=str(descriptor_path),
            name=raw.get("name"),
            version=str(version) if version is not None else None,
            modified_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            has_build_output=(root / self.build_dirname).is_dir(),
            raw=raw,
        )
