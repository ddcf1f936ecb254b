"""Compiled form of an OpenAPI path template."""

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class CompiledPathTemplate:
    template: str
    pattern: re.Pattern
    parameter_names: tuple[str, ...]

    def match(self, path: str) -> dict[str, str] | None:
        found = self.pattern.fullmatch(path)
        if found is None:
            return None
        return dict(zip(self.parameter_names, found.groups()))
