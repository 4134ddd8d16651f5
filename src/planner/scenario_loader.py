"""Scenario loading — reads scenario and test list files into TestNode trees."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from src.models.test_plan import TestCase, TestNode

logger = logging.getLogger(__name__)

LIST_KEYS = ("tests", "test_list")


class ScenarioLoadError(ValueError):
    """A scenario or test list file could not be turned into tests."""


def load_document(path: str | Path) -> Any:
    """Parse a JSON or YAML file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Scenario file not found: {path}")
    with open(path) as f:
        try:
            if path.suffix.lower() == ".json":
                return json.load(f)
            return yaml.safe_load(f)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ScenarioLoadError(f"{path}: could not parse file: {e}") from e


def is_test_list(data: Any) -> bool:
    return isinstance(data, dict) and any(key in data for key in LIST_KEYS)


def load_scenario(path: str | Path) -> TestCase:
    """Load a single scenario file (children, if any, are ignored)."""
    data = load_document(path)
    return _to_test_case(data, Path(path))


def load_tests(path: str | Path, test_config_root: str | Path | None = None) -> list[TestNode]:
    """Load a scenario or test list file into root TestNodes.

    Paths inside a test list resolve against ``test_config_root``, or the
    list file's own directory when none is configured.
    """
    path = Path(path)
    data = load_document(path)
    root = Path(test_config_root) if test_config_root else path.parent

    if is_test_list(data):
        items = next(data[key] for key in LIST_KEYS if key in data)
        if not isinstance(items, list) or not items:
            raise ScenarioLoadError(f"{path}: test list must be a non-empty array")
        logger.info("Loading test list %s (%d root item(s))", path, len(items))
        return [_node_from_item(item, root, f"{path} item {i}") for i, item in enumerate(items)]

    return [_node_from_document(data, path, root)]


def _node_from_item(item: Any, root: Path, where: str) -> TestNode:
    if isinstance(item, str):
        return _node_from_file(root / item, root)

    if isinstance(item, dict):
        if "file" in item:
            if not isinstance(item["file"], str):
                raise ScenarioLoadError(f"{where}: 'file' must be a string")
            return _node_from_file(
                root / item["file"], root,
                name=item.get("name"), children=item.get("children") or [],
            )
        if "steps" in item:
            # Inline scenario
            return _node_from_document(item, None, root)
        if len(item) == 1:
            file_path, children = next(iter(item.items()))
            return _node_from_file(root / file_path, root, children=children or [])
        raise ScenarioLoadError(f"{where}: must have exactly one file path as key")

    raise ScenarioLoadError(f"{where}: must be a string or object, got {type(item).__name__}")


def _node_from_file(
    path: Path,
    root: Path,
    name: str | None = None,
    children: list | None = None,
) -> TestNode:
    data = load_document(path)
    if is_test_list(data):
        raise ScenarioLoadError(f"{path}: expected a scenario but found a test list")
    node = _node_from_document(data, path, root, name=name)
    if children:
        extra = _children(children, root, str(path))
        node = node.model_copy(update={"children": list(node.children) + extra})
    return node


def _node_from_document(
    data: Any,
    path: Path | None,
    root: Path,
    name: str | None = None,
) -> TestNode:
    where = str(path) if path else "inline scenario"
    if not isinstance(data, dict):
        raise ScenarioLoadError(f"{where}: scenario must be a mapping")
    scenario = _to_test_case(data, path)
    if name:
        scenario = scenario.model_copy(update={"name": name})
    children = _children(data.get("children") or [], root, where)
    logger.debug("Loaded scenario %s (%d step(s), %d child(ren))",
                 scenario.name, len(scenario.steps), len(children))
    return TestNode(name=scenario.name, scenario=scenario, children=children)


def _children(items: Any, root: Path, where: str) -> list[TestNode]:
    if not isinstance(items, list):
        raise ScenarioLoadError(f"{where}: children must be an array")
    return [_node_from_item(item, root, f"{where} child {i}") for i, item in enumerate(items)]


def _to_test_case(data: Any, path: Path | None) -> TestCase:
    where = str(path) if path else "inline scenario"
    if not isinstance(data, dict):
        raise ScenarioLoadError(f"{where}: scenario must be a mapping")
    fields = {k: v for k, v in data.items() if k != "children"}
    try:
        return TestCase(**fields)
    except ValidationError as e:
        raise ScenarioLoadError(f"{where}: invalid scenario: {e}") from e
