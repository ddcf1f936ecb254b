"""
Contract compiler — turns an OpenAPI document into positional path matchers.

Only templates that declare at least one `in: path` parameter (on the path
item or on any of its operations) are compiled; everything else can never
yield path parameters and is skipped.

Compilation runs once at startup. The returned mapping preserves document
order, which is the tie-break the resolver relies on when templates overlap.
"""

import glob
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from http_audit.core.logging import get_logger
from http_audit.models.contract import CompiledPathTemplate

logger = get_logger(__name__)

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")
TEMPLATE_TOKEN = re.compile(r"\{([^/{}]+)\}")


class ContractError(ValueError):
    pass


def _declares_path_parameter(parameters: Any) -> bool:
    if not parameters:
        return False
    return any(
        isinstance(param, Mapping) and str(param.get("in", "")).lower() == "path"
        for param in parameters
    )


def has_path_parameters(path_item: Mapping) -> bool:
    if _declares_path_parameter(path_item.get("parameters")):
        return True
    for method in HTTP_METHODS:
        operation = path_item.get(method)
        if isinstance(operation, Mapping) and _declares_path_parameter(operation.get("parameters")):
            return True
    return False


def compile_template(template: str) -> CompiledPathTemplate:
    """Build an anchored matcher; static segments are escaped, `{name}` becomes `([^/]+)`."""
    names: list[str] = []
    parts: list[str] = []
    position = 0
    for token in TEMPLATE_TOKEN.finditer(template):
        parts.append(re.escape(template[position:token.start()]))
        parts.append("([^/]+)")
        names.append(token.group(1))
        position = token.end()
    parts.append(re.escape(template[position:].rstrip("/")))

    return CompiledPathTemplate(
        template=template,
        pattern=re.compile("".join(parts) + "/?"),
        parameter_names=tuple(names),
    )


def compile_contract(document: Mapping | None) -> dict[str, CompiledPathTemplate]:
    if not document:
        raise ContractError("No OpenAPI specification supplied")

    paths = document.get("paths")
    if not paths:
        raise ContractError("Supplied specification has no endpoints defined")

    compiled: dict[str, CompiledPathTemplate] = {}
    for template, path_item in paths.items():
        if template is None or path_item is None:
            raise ContractError(f"Invalid path specification: {template!r}")
        if not isinstance(path_item, Mapping):
            raise ContractError(f"Path item for {template!r} is not an object")
        if has_path_parameters(path_item):
            compiled[str(template)] = compile_template(str(template))

    logger.info("contract.compiled", paths=len(paths), with_path_parameters=len(compiled))
    return compiled


def load_contract_document(location: str) -> dict:
    """Read a YAML or JSON OpenAPI document; `location` may be a glob."""
    matches = sorted(glob.glob(location))
    if not matches:
        logger.warning("contract.not_found", location=location)
        raise ContractError(f"No OpenAPI specification found at {location}")

    source = Path(matches[0])
    try:
        document = yaml.safe_load(source.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ContractError(f"Unable to parse OpenAPI specification at {source}") from exc

    if not isinstance(document, dict):
        raise ContractError(f"OpenAPI specification at {source} is not a mapping")

    logger.info("contract.loaded", location=str(source))
    return document
