"""Information about the build of the package."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class BuildInfo:
    """Version, commit and date of a build."""

    version: str = "dev"
    commit_hash: str = "n/a"
    build_date: str = "<unknown>"

    def __str__(self) -> str:
        return f"version {self.version} ({self.commit_hash}) built on {self.build_date}"