# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Minimal valid documents for each entity kind, used across the test suite."""

from typing import Any, Dict, List, Optional


def workflow(
    workflow_id: str = "W1",
    category: str = "analysis",
    requires: Optional[List[str]] = None,
    personas: Optional[List[str]] = None,
    components: Optional[List[str]] = None,
    **extra: Any,
) -> Dict[str, Any]:
    doc: Dict[str, Any] = {
        "id": workflow_id,
        "name": f"Workflow {workflow_id}",
        "category": category,
        "goal": "Find the module that owns a symbol",
    }
    if requires is not None:
        doc["requires_capabilities"] = requires
    if personas is not None:
        doc["personas"] = personas
    if components is not None:
        doc["suggested_components"] = components
    doc.update(extra)
    return doc


def capability(cap_id: str = "cap-a", status: str = "planned", **extra: Any) -> Dict[str, Any]:
    doc: Dict[str, Any] = {
        "id": cap_id,
        "name": cap_id.replace("-", " ").title(),
        "category": "data",
        "description": "Loads the dependency graph",
        "status": status,
    }
    doc.update(extra)
    return doc


def persona(persona_id: str = "analyst", **extra: Any) -> Dict[str, Any]:
    doc: Dict[str, Any] = {
        "id": persona_id,
        "name": persona_id.title(),
        "role": "Data analyst",
        "characteristics": {"expertise": "novice"},
        "goals": ["Understand the codebase quickly"],
    }
    doc.update(extra)
    return doc


def component(
    component_id: str = "comp-x",
    implements: Optional[List[str]] = None,
    dependencies: Optional[List[str]] = None,
    **extra: Any,
) -> Dict[str, Any]:
    doc: Dict[str, Any] = {
        "id": component_id,
        "name": component_id.replace("-", " ").title(),
        "category": "control",
        "description": "Interactive graph control",
    }
    if implements is not None:
        doc["implements_capabilities"] = implements
    if dependencies is not None:
        doc["dependencies"] = dependencies
    doc.update(extra)
    return doc


def interaction(interaction_id: str = "drag-drop", **extra: Any) -> Dict[str, Any]:
    doc: Dict[str, Any] = {
        "id": interaction_id,
        "name": "Drag and drop",
        "interaction": {"trigger": "pointerdown"},
    }
    doc.update(extra)
    return doc


def tokens(tokens_id: str = "base", **extra: Any) -> Dict[str, Any]:
    doc: Dict[str, Any] = {
        "id": tokens_id,
        "name": "Base tokens",
        "colors": {"neutral": {"50": "#fafafa", "900": "#111111"}},
        "typography": {
            "fonts": {"sans": "Inter"},
            "sizes": {"base": "16px"},
            "weights": {"regular": 400},
            "line_heights": {"normal": 1.5},
        },
        "spacing": {"scale": {"1": "4px", "2": "8px"}},
    }
    doc.update(extra)
    return doc


def view(
    view_id: str = "V01",
    workflows: Optional[List[str]] = None,
    components: Optional[List[str]] = None,
    **extra: Any,
) -> Dict[str, Any]:
    doc: Dict[str, Any] = {
        "id": view_id,
        "name": "Explorer",
        "layout": {
            "type": "dashboard",
            "zones": [{"id": "main", "position": "main", "components": components or []}],
        },
    }
    if workflows is not None:
        doc["workflows"] = workflows
    doc.update(extra)
    return doc


def usability_result(
    workflow_id: str = "W1",
    persona_id: str = "analyst",
    number: int = 1,
    test_type: str = "simulated",
    date: str = "2025-01-10",
    **extra: Any,
) -> Dict[str, Any]:
    doc: Dict[str, Any] = {
        "id": f"TR-{workflow_id}-{persona_id}-{number:03d}",
        "workflow_id": workflow_id,
        "persona_id": persona_id,
        "test_type": test_type,
        "date": date,
        "status": "passed",
    }
    doc.update(extra)
    return doc
