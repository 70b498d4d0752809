"""Keep the version in pyproject.toml and src/unifs/__init__.py in step.

Usage:
    python scripts/bump_version.py --patch          # 0.1.0 → 0.1.1
    python scripts/bump_version.py --minor          # 0.1.1 → 0.2.0
    python scripts/bump_version.py --major          # 0.2.0 → 1.0.0
    python scripts/bump_version.py --set 1.2.3
    python scripts/bump_version.py --check          # exit 1 if the two differ
"""

from __future__ import annotations

import argparse
import re
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent

VERSION_RE = re.compile(r'^(version\s*=\s*")(\d+\.\d+\.\d+)(")', re.MULTILINE)
INIT_VERSION_RE = re.compile(r'^(__version__\s*=\s*")(\d+\.\d+\.\d+)(")', re.MULTILINE)
SEMVER_RE = re.compile(r"^\d+\.\d+\.\d+$")

Version = tuple[int, int, int]


def parse_version(text: str, pattern: re.Pattern[str] = VERSION_RE) -> Version | None:
    match = pattern.search(text)
    if not match:
        return None
    major, minor, patch = (int(p) for p in match.group(2).split("."))
    return major, minor, patch


def bump(version: Version, part: str) -> Version:
    major, minor, patch = version
    if part == "major":
        return major + 1, 0, 0
    if part == "minor":
        return major, minor + 1, 0
    return major, minor, patch + 1


def format_version(version: Version) -> str:
    return ".".join(str(p) for p in version)


def write_version(root: Path, new: str) -> list[Path]:
    """Rewrite both version strings under ``root``; return the files changed."""
    changed: list[Path] = []
    for path, pattern in (
        (root / "pyproject.toml", VERSION_RE),
        (root / "src" / "unifs" / "__init__.py", INIT_VERSION_RE),
    ):
        text = path.read_text()
        if not pattern.search(text):
            print(f"warning: no version found in {path.name}, skipping", file=sys.stderr)
            continue
        path.write_text(pattern.sub(rf"\g<1>{new}\3", text, count=1))
        changed.append(path)
    return changed


def check_versions(root: Path) -> bool:
    project = parse_version((root / "pyproject.toml").read_text())
    package = parse_version(
        (root / "src" / "unifs" / "__init__.py").read_text(), INIT_VERSION_RE
    )
    return project is not None and project == package


def main(argv: list[str] | None = None, root: Path = ROOT) -> int:
    parser = argparse.ArgumentParser(description="Bump or check the project version")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--major", action="store_const", const="major", dest="part")
    group.add_argument("--minor", action="store_const", const="minor", dest="part")
    group.add_argument("--patch", action="store_const", const="patch", dest="part")
    group.add_argument("--set", dest="explicit", metavar="X.Y.Z")
    group.add_argument("--check", action="store_true")
    args = parser.parse_args(argv)

    if args.check:
        if check_versions(root):
            return 0
        print("error: pyproject.toml and __init__.py disagree", file=sys.stderr)
        return 1

    old = parse_version((root / "pyproject.toml").read_text())
    if old is None:
        print("error: could not find version in pyproject.toml", file=sys.stderr)
        return 1

    if args.explicit is not None:
        if not SEMVER_RE.match(args.explicit):
            print(f"error: not a X.Y.Z version: {args.explicit}", file=sys.stderr)
            return 1
        new = args.explicit
    else:
        new = format_version(bump(old, args.part))

    write_version(root, new)
    print(f"{format_version(old)} → {new}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
