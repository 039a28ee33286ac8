# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Structural validation of entity documents.

One pydantic model per entity kind checks field shapes, enum values and ID
patterns. The store calls ``validate_structure`` before it looks at any
reference; reference existence is not checked here.

Unknown keys are kept (``extra="allow"``) so hand-edited documents survive a
round trip through update.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from designloom.catalog import EntityKind
from designloom.errors import StructuralInvalid

KEBAB_ID = r"^[a-z][a-z0-9]*(-[a-z0-9]+)*$"
WORKFLOW_ID = r"^W\d{1,3}$"
VIEW_ID = r"^V\d{2,3}$"
TEST_RESULT_ID = r"^TR-W\d{1,3}-[a-z][a-z0-9-]*-\d{3}$"

ImplementationStatus = Literal["planned", "in-progress", "implemented", "deprecated"]

IdList = List[str]


class DesignModel(BaseModel):
    """Base for all entity models: extra keys pass through, version metadata allowed."""

    model_config = ConfigDict(extra="allow")

    version: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator("version", "created_at", "updated_at", mode="before")
    @classmethod
    def _stringify_metadata(cls, v: Any) -> Any:
        return _as_text(v)


def _as_text(v: Any) -> Any:
    """Unquoted YAML dates and versions load as date/float objects; keep them as text."""
    if isinstance(v, (datetime, date)):
        return v.isoformat()
    if isinstance(v, (int, float)) and not isinstance(v, bool):
        return str(v)
    return v


class Source(BaseModel):
    model_config = ConfigDict(extra="allow")

    title: str = Field(min_length=1)
    url: Optional[str] = None
    summary: Optional[str] = None


class SuccessCriterion(BaseModel):
    model_config = ConfigDict(extra="allow")

    metric: str = Field(min_length=1)
    target: str = Field(min_length=1)


class Workflow(DesignModel):
    id: str = Field(pattern=WORKFLOW_ID)
    name: str = Field(min_length=1)
    category: Literal[
        "onboarding", "analysis", "exploration", "reporting", "collaboration", "administration"
    ]
    validated: bool = False
    personas: IdList = Field(default_factory=list)
    requires_capabilities: IdList = Field(default_factory=list)
    suggested_components: IdList = Field(default_factory=list)
    starting_state: Optional[Dict[str, Any]] = None
    goal: str = Field(min_length=1)
    success_criteria: List[SuccessCriterion] = Field(default_factory=list)
    sources: List[Source] = Field(default_factory=list)


class Capability(DesignModel):
    id: str = Field(pattern=KEBAB_ID)
    name: str = Field(min_length=1)
    category: Literal[
        "data", "visualization", "analysis", "interaction", "export", "collaboration",
        "performance",
    ]
    description: str = Field(min_length=1)
    status: ImplementationStatus = "planned"
    algorithms: List[str] = Field(default_factory=list)
    requirements: List[str] = Field(default_factory=list)
    used_by_workflows: IdList = Field(default_factory=list)
    implemented_by_components: IdList = Field(default_factory=list)


class PersonaCharacteristics(BaseModel):
    model_config = ConfigDict(extra="allow")

    expertise: Literal["novice", "intermediate", "expert"]
    time_pressure: Optional[Literal["low", "medium", "high"]] = None
    graph_literacy: Optional[Literal["none", "basic", "intermediate", "advanced"]] = None
    domain_knowledge: Optional[Literal["none", "basic", "intermediate", "expert"]] = None


class Persona(DesignModel):
    id: str = Field(pattern=KEBAB_ID)
    name: str = Field(min_length=1)
    role: str = Field(min_length=1)
    quote: Optional[str] = None
    bio: Optional[str] = None
    characteristics: PersonaCharacteristics
    motivations: List[str] = Field(default_factory=list)
    behaviors: List[str] = Field(default_factory=list)
    goals: List[str] = Field(min_length=1)
    frustrations: List[str] = Field(default_factory=list)
    workflows: IdList = Field(default_factory=list)


class Component(DesignModel):
    id: str = Field(pattern=KEBAB_ID)
    name: str = Field(min_length=1)
    category: Literal["dialog", "control", "display", "layout", "utility", "navigation"]
    description: str = Field(min_length=1)
    status: ImplementationStatus = "planned"
    implements_capabilities: IdList = Field(default_factory=list)
    used_in_workflows: IdList = Field(default_factory=list)
    dependencies: IdList = Field(default_factory=list)
    dependents: IdList = Field(default_factory=list)
    props: Dict[str, Any] = Field(default_factory=dict)
    interaction_pattern: Optional[str] = Field(default=None, pattern=KEBAB_ID)


# YAML reads scale steps such as 500 or 0.5 as numbers
ScaleKey = Union[str, int, float]


class Colors(BaseModel):
    model_config = ConfigDict(extra="allow")

    neutral: Dict[ScaleKey, str] = Field(min_length=1)


class FontSizes(BaseModel):
    model_config = ConfigDict(extra="allow")

    base: Union[str, Dict[str, Any]]


class Typography(BaseModel):
    model_config = ConfigDict(extra="allow")

    fonts: Dict[str, str]
    sizes: FontSizes
    weights: Dict[str, Union[int, str]]
    line_heights: Dict[str, Union[str, int, float]]
    styles: Dict[str, Dict[str, Any]] = Field(default_factory=dict)


class Spacing(BaseModel):
    model_config = ConfigDict(extra="allow")

    scale: Dict[ScaleKey, str]
    semantic: Optional[Dict[str, Any]] = None


class Tokens(DesignModel):
    id: str = Field(pattern=KEBAB_ID)
    name: str = Field(min_length=1)
    description: Optional[str] = None
    extends: Optional[str] = Field(default=None, pattern=KEBAB_ID)
    colors: Colors
    typography: Typography
    spacing: Spacing
    radii: Optional[Dict[str, str]] = None
    shadows: Optional[Dict[str, Any]] = None
    motion: Optional[Dict[str, Any]] = None
    breakpoints: Optional[Dict[str, Any]] = None
    z_index: Optional[Dict[str, Any]] = None


class Zone(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = Field(min_length=1)
    position: Literal[
        "header", "footer", "sidebar", "sidebar-left", "sidebar-right", "main", "aside", "nav",
        "content", "overlay",
    ]
    components: IdList = Field(default_factory=list)


class Layout(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Literal[
        "single-column", "sidebar-left", "sidebar-right", "dual-sidebar", "holy-grail",
        "dashboard", "split", "stacked", "custom",
    ]
    zones: List[Zone] = Field(min_length=1)


class View(DesignModel):
    id: str = Field(pattern=VIEW_ID)
    name: str = Field(min_length=1)
    description: Optional[str] = None
    status: Literal["draft", "designed", "implementing", "implemented", "deprecated"] = "draft"
    workflows: IdList = Field(default_factory=list)
    layout: Layout
    states: Optional[List[Dict[str, Any]]] = None
    default_state: Optional[str] = None
    routes: Optional[List[Dict[str, Any]]] = None
    data_requirements: Optional[List[Dict[str, Any]]] = None


class Interaction(DesignModel):
    id: str = Field(pattern=KEBAB_ID)
    name: str = Field(min_length=1)
    description: Optional[str] = None
    status: Literal["draft", "documented", "implemented", "deprecated"] = "draft"
    interaction: Dict[str, Any]
    applies_to: List[str] = Field(default_factory=list)


class SuccessCriterionResult(BaseModel):
    model_config = ConfigDict(extra="allow")

    criterion: str = Field(min_length=1)
    target: str = Field(min_length=1)
    actual: Optional[str] = None
    passed: bool
    notes: Optional[str] = None


class ReportedIssue(BaseModel):
    model_config = ConfigDict(extra="allow")

    severity: Literal["critical", "major", "minor"]
    description: str = Field(min_length=1)
    workflow_step: Optional[str] = None
    persona_factor: Optional[str] = None
    affected_components: IdList = Field(default_factory=list)
    affected_capabilities: IdList = Field(default_factory=list)
    recommendation: Optional[str] = None
    evidence: Optional[str] = None


class UsabilityTestResult(DesignModel):
    id: str = Field(pattern=TEST_RESULT_ID)
    workflow_id: str = Field(pattern=WORKFLOW_ID)
    persona_id: str = Field(min_length=1)
    test_type: Literal["simulated", "real"]
    date: str = Field(min_length=1)
    status: Literal["passed", "failed", "partial"]
    confidence: Literal["low", "medium", "high"] = "medium"
    success_criteria_results: List[SuccessCriterionResult] = Field(default_factory=list)
    issues: List[ReportedIssue] = Field(default_factory=list)
    summary: Optional[str] = None
    participants: Optional[int] = Field(default=None, gt=0)
    quotes: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)

    @field_validator("date", mode="before")
    @classmethod
    def _stringify_date(cls, v: Any) -> Any:
        return _as_text(v)


SCHEMAS: Dict[EntityKind, Type[DesignModel]] = {
    EntityKind.WORKFLOW: Workflow,
    EntityKind.CAPABILITY: Capability,
    EntityKind.PERSONA: Persona,
    EntityKind.COMPONENT: Component,
    EntityKind.TOKENS: Tokens,
    EntityKind.VIEW: View,
    EntityKind.INTERACTION: Interaction,
    EntityKind.TEST_RESULT: UsabilityTestResult,
}


def _first_error(error: ValidationError) -> StructuralInvalid:
    details = error.errors()
    if not details:
        return StructuralInvalid("<root>", str(error))
    first = details[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or "<root>"
    return StructuralInvalid(field, first.get("msg", "invalid value"))


def validate_structure(kind: EntityKind, data: Any) -> Dict[str, Any]:
    """Validate ``data`` against the model for ``kind``.

    Args:
        kind: Entity kind the document belongs to.
        data: Raw document (mapping).

    Returns:
        Normalized JSON-compatible record with defaults applied and unset
        optional fields dropped.

    Raises:
        StructuralInvalid: Naming the first failing field path and constraint.
    """
    if not isinstance(data, dict):
        raise StructuralInvalid("<root>", f"expected a mapping, got {type(data).__name__}")

    model = SCHEMAS[kind]
    try:
        instance = model.model_validate(data)
    except ValidationError as e:
        raise _first_error(e) from e
    return instance.model_dump(mode="json", by_alias=True, exclude_none=True)
