"""
Project profile — what the profiler found at the audited root.

Built once per run by the detection service and never modified.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ProjectProfile(BaseModel):
    """Detected languages, manifest files and package managers."""

    model_config = ConfigDict(frozen=True)

    root: str
    languages: frozenset[str] = Field(default_factory=frozenset)
    manifests: frozenset[str] = Field(default_factory=frozenset)
    package_managers: frozenset[str] = Field(default_factory=frozenset)

    @property
    def is_empty(self) -> bool:
        return not (self.languages or self.manifests)

    def to_dict(self) -> dict:
        return {
            "root": self.root,
            "languages": sorted(self.languages),
            "manifests": sorted(self.manifests),
            "package_managers": sorted(self.package_managers),
        }
