"""
Semantic Version Utilities.

Parsing, precedence ordering and "next free version" suggestions used by the
version-policy oracle, the semver oracle and the fusion engine.

Ordering follows semver 2.0.0 precedence:
- MAJOR.MINOR.PATCH compared numerically
- a pre-release sorts BEFORE its release (1.0.0-rc.1 < 1.0.0)
- pre-release identifiers: numeric < alphanumeric, numeric compared as ints
- build metadata (+build) is ignored

Strings that are not valid semver fall back to a numeric dot-split
comparison, so a malformed version never raises here.
"""

import re
from dataclasses import dataclass
from functools import cmp_to_key
from typing import Iterable, Optional

SEMVER_PATTERN = re.compile(
    r"^v?(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<prerelease>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?$"
)

# Loose pattern for pulling a version out of a git tag like "pkg@v1.2.3"
TAG_VERSION_PATTERN = re.compile(r"v?(\d+\.\d+\.\d+(?:-[0-9A-Za-z.-]+)?)")

# Search window for next_available (per component)
SUGGESTION_WINDOW: int = 10


@dataclass(frozen=True)
class SemVer:
    """A parsed semantic version."""
    major: int
    minor: int
    patch: int
    prerelease: tuple[str, ...] = ()
    build: Optional[str] = None

    @property
    def is_prerelease(self) -> bool:
        return bool(self.prerelease)

    @property
    def core(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    def __str__(self) -> str:
        text = self.core
        if self.prerelease:
            text += "-" + ".".join(self.prerelease)
        if self.build:
            text += "+" + self.build
        return text


def parse(version: Optional[str]) -> Optional[SemVer]:
    """Parse a strict semver string (leading "v" allowed). None if invalid."""
    if not version:
        return None
    match = SEMVER_PATTERN.match(version.strip())
    if match is None:
        return None
    pre = match.group("prerelease")
    return SemVer(
        major=int(match.group("major")),
        minor=int(match.group("minor")),
        patch=int(match.group("patch")),
        prerelease=tuple(pre.split(".")) if pre else (),
        build=match.group("build"),
    )


def is_valid(version: Optional[str]) -> bool:
    return parse(version) is not None


def normalize(version: str) -> str:
    """Canonical string form used for set membership ("v1.0.0" → "1.0.0")."""
    parsed = parse(version)
    if parsed is None:
        return version.strip()
    return str(SemVer(parsed.major, parsed.minor, parsed.patch, parsed.prerelease))


def extract_from_tag(tag: str) -> Optional[str]:
    """Pull the version out of a git tag, e.g. "mypkg@v1.2.3" → "1.2.3"."""
    match = TAG_VERSION_PATTERN.search(tag)
    return match.group(1) if match else None


def package_tag_versions(tags: Iterable[str], package_name: str) -> list[str]:
    """
    Versions from the tags that name this package ("@scope/name" → "name"),
    or from every version tag when none do. Deduplicated, in tag order.
    """
    tags = list(tags)
    token = package_name.rsplit("/", 1)[-1]
    own_tags = [t for t in tags if token and token in t]

    versions: list[str] = []
    for tag in own_tags or tags:
        version = extract_from_tag(tag)
        if version is not None and version not in versions:
            versions.append(version)
    return versions


def _compare_prerelease(a: tuple[str, ...], b: tuple[str, ...]) -> int:
    if a == b:
        return 0
    # A release outranks any pre-release of the same core
    if not a:
        return 1
    if not b:
        return -1
    for left, right in zip(a, b):
        if left == right:
            continue
        left_num, right_num = left.isdigit(), right.isdigit()
        if left_num and right_num:
            return 1 if int(left) > int(right) else -1
        if left_num != right_num:
            return -1 if left_num else 1
        return 1 if left > right else -1
    return (len(a) > len(b)) - (len(a) < len(b))


def _loose_parts(version: str) -> list[int]:
    parts: list[int] = []
    for chunk in version.strip().lstrip("v").split("-")[0].split("."):
        digits = re.match(r"\d+", chunk)
        parts.append(int(digits.group(0)) if digits else 0)
    return parts


def compare(a: str, b: str) -> int:
    """
    Compare two version strings.

    Returns:
        1 if a > b, 0 if equal in precedence, -1 if a < b
    """
    left, right = parse(a), parse(b)
    if left is not None and right is not None:
        left_core = (left.major, left.minor, left.patch)
        right_core = (right.major, right.minor, right.patch)
        if left_core != right_core:
            return 1 if left_core > right_core else -1
        return _compare_prerelease(left.prerelease, right.prerelease)

    # Fallback: numeric dot-split, missing parts count as 0
    left_parts, right_parts = _loose_parts(a), _loose_parts(b)
    width = max(len(left_parts), len(right_parts))
    left_parts += [0] * (width - len(left_parts))
    right_parts += [0] * (width - len(right_parts))
    if left_parts == right_parts:
        return 0
    return 1 if left_parts > right_parts else -1


def sort_versions(versions: Iterable[str], descending: bool = False) -> list[str]:
    return sorted(versions, key=cmp_to_key(compare), reverse=descending)


def highest(versions: Iterable[str]) -> Optional[str]:
    """Highest version by semver precedence, or None for an empty input."""
    best: Optional[str] = None
    for version in versions:
        if best is None or compare(version, best) > 0:
            best = version
    return best


def bump_patch(version: str) -> str:
    parsed = parse(version)
    if parsed is None:
        parts = (_loose_parts(version) + [0, 0, 0])[:3]
        return f"{parts[0]}.{parts[1]}.{parts[2] + 1}"
    return f"{parsed.major}.{parsed.minor}.{parsed.patch + 1}"


def next_available(base: str, burned: Iterable[str]) -> str:
    """
    Suggest the next version after ``base`` that is not burned.

    Tries patch bumps first, then minor, then major (each within
    SUGGESTION_WINDOW steps), and finally jumps the patch by 100.
    The result is always strictly greater than ``base``.
    """
    taken = {normalize(v) for v in burned}
    parsed = parse(base)
    if parsed is not None:
        major, minor, patch = parsed.major, parsed.minor, parsed.patch
    else:
        major, minor, patch = (_loose_parts(base) + [0, 0, 0])[:3]

    for candidate_patch in range(patch + 1, patch + SUGGESTION_WINDOW + 1):
        candidate = f"{major}.{minor}.{candidate_patch}"
        if candidate not in taken:
            return candidate

    for candidate_minor in range(minor + 1, minor + SUGGESTION_WINDOW + 1):
        candidate = f"{major}.{candidate_minor}.0"
        if candidate not in taken:
            return candidate

    for candidate_major in range(major + 1, major + SUGGESTION_WINDOW + 1):
        candidate = f"{candidate_major}.0.0"
        if candidate not in taken:
            return candidate

    return f"{major}.{minor}.{patch + 100}"
