"""
Path parameter resolution against the compiled contract.

Templates are tried in declaration order and the first match wins, so for
`/orders/{id}` declared before `/orders/{name}` a request to `/orders/7`
always yields `{"id": "7"}`.
"""

from collections.abc import Mapping

from http_audit.models.contract import CompiledPathTemplate


class PathParameterResolver:
    def __init__(self, compiled: Mapping[str, CompiledPathTemplate]):
        # Snapshot so later mutation of the caller's mapping cannot leak in
        self._templates: tuple[CompiledPathTemplate, ...] = tuple(compiled.values())

    def resolve(self, path: str) -> dict[str, str]:
        for template in self._templates:
            params = template.match(path)
            if params is not None:
                return params
        return {}


class NullPathParameterResolver:
    """Used when path parameter resolution is switched off."""

    def resolve(self, path: str) -> dict[str, str]:
        return {}
