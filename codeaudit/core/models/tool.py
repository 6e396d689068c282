"""
Tool descriptor — the registry entry for one external analyzer.

Descriptors are data, not code: adding a tool means registering a
descriptor (from the built-in catalog or from .codeaudit.yml), never
editing the engine.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ToolDescriptor(BaseModel):
    """How to find, invoke and parse one external analyzer.

    ``command`` is an argument-list template. Placeholders:
        {root}        absolute project root
        {target}      scope target (root or scope subdirectory)
        {output}      path of a temporary output file
        {output_dir}  path of a temporary output directory
    """

    model_config = ConfigDict(frozen=True)

    name: str
    category: str
    languages: frozenset[str] = Field(default_factory=frozenset)  # empty = any
    command: tuple[str, ...] = Field(min_length=1)
    parser: str
    priority: int = 50
    binary: str = ""
    version_args: tuple[str, ...] = ()
    ok_exit_codes: frozenset[int] = frozenset({0})
    requires_any: tuple[str, ...] = ()
    description: str = ""

    @model_validator(mode="before")
    @classmethod
    def _default_binary(cls, data: object) -> object:
        if isinstance(data, dict) and not data.get("binary") and data.get("command"):
            data = {**data, "binary": data["command"][0]}
        return data

    def applies_to(self, languages: frozenset[str] | set[str]) -> bool:
        """Language-agnostic tools apply everywhere."""
        return not self.languages or bool(self.languages & set(languages))

    @property
    def uses_output_file(self) -> bool:
        return any("{output}" in a or "{output_dir}" in a for a in self.command)
