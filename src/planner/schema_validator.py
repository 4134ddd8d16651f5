"""Pre-flight structural checks for loaded test trees."""

from __future__ import annotations

import logging

from src.executor.selector_resolver import SUPPORTED_STRATEGIES
from src.models.test_plan import Selector, TestNode

logger = logging.getLogger(__name__)

VALID_ASSERTION_TYPES = {
    "text", "input", "value", "style", "attribute", "class", "visible", "enabled",
}
VALID_SUBMIT_ACTIONS = {"click", "input", "dialog"}
# Only accepted as the single legacy submit step.
LEGACY_SUBMIT_KINDS = {"checkbox", "radio", "select"}


def validate_nodes(nodes: list[TestNode]) -> list[str]:
    """Validate a forest of test nodes and return a list of problems.

    Entries starting with "warning:" do not block execution.
    """
    errors: list[str] = []
    if not nodes:
        errors.append("No tests defined")
        return errors
    _check_siblings(nodes, "root", errors)
    for node in nodes:
        _validate_node(node, node.name, errors)
    return errors


def has_blocking_errors(problems: list[str]) -> bool:
    return any(not p.startswith("warning:") for p in problems)


def _check_siblings(nodes: list[TestNode], parent: str, errors: list[str]) -> None:
    seen: set[str] = set()
    for node in nodes:
        if node.name in seen:
            errors.append(f"{parent}: duplicate test name '{node.name}'")
        seen.add(node.name)


def _check_selector(selector: Selector | None, where: str, errors: list[str]) -> None:
    if selector is None:
        errors.append(f"{where}: requires a selector")
    elif selector.strategy not in SUPPORTED_STRATEGIES:
        errors.append(f"{where}: unknown selector strategy '{selector.strategy}'")
    elif not selector.value:
        errors.append(f"{where}: empty selector value")


def _validate_node(node: TestNode, path: str, errors: list[str]) -> None:
    tc = node.scenario

    if not tc.steps:
        errors.append(f"{path}: no steps defined")

    for i, step in enumerate(tc.steps, 1):
        where = f"{path} step {i}"
        if step.type == "dialog":
            if step.prompt_value is not None and step.action == "dismiss":
                errors.append(f"{where}: prompt_value is ignored when the dialog is dismissed")
            if i == 1:
                errors.append(f"warning: {where}: dialog step is not preceded by a click")
            continue
        _check_selector(step.selector, where, errors)

    for i, sub in enumerate(tc.submit.sub_steps(), 1):
        where = f"{path} submit step {i}"
        if sub.action in LEGACY_SUBMIT_KINDS and sub.step is None:
            errors.append(f"{where}: '{sub.action}' is only supported as a single submit step")
        elif sub.action not in VALID_SUBMIT_ACTIONS and sub.step is None:
            errors.append(f"{where}: invalid action '{sub.action}'")
        elif sub.action == "dialog":
            dialog = sub.dialog
            if dialog and dialog.prompt_value is not None and dialog.action == "dismiss":
                errors.append(f"{where}: prompt_value is ignored when the dialog is dismissed")
        else:
            _check_selector(sub.selector, where, errors)

    if not tc.assertions:
        errors.append(f"warning: {path}: no assertions defined")
    for i, assertion in enumerate(tc.assertions, 1):
        where = f"{path} assertion {i}"
        if assertion.assertion_type not in VALID_ASSERTION_TYPES:
            errors.append(f"{where}: invalid type '{assertion.assertion_type}'")
        if assertion.assertion_type == "style" and not assertion.style_property:
            errors.append(f"{where}: style assertion requires style_property")
        if assertion.assertion_type == "attribute" and not assertion.attribute_name:
            errors.append(f"{where}: attribute assertion requires attribute_name")
        _check_selector(assertion.selector, where, errors)

    _check_siblings(node.children, path, errors)
    for child in node.children:
        _validate_node(child, f"{path} > {child.name}", errors)
