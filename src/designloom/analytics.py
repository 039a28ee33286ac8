# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Graph-wide analytics over the entity index.

Every report is computed on demand from the index; nothing is cached or
persisted. Whole-store reports never fail.

Reports:
- find_orphans: capabilities, personas and components no workflow references
- find_gaps: structural completeness deficiencies
- coverage_report: usage counts per entity plus a summary histogram
- test_coverage: workflow x persona test matrix
- suggest_priority: what to implement next
- validate: integrity audit plus orphan and gap warnings
"""

import logging
from collections import Counter, defaultdict
from typing import Any, Dict, List, Optional, Tuple

from designloom.catalog import EntityKind, fields_for, parse_kind
from designloom.index import EntityIndex
from designloom.relationships import RelationshipEngine

logger = logging.getLogger(__name__)

# Kinds that are targets of workflow relationships, with the workflow field naming them
ORPHAN_CHECKS: Dict[EntityKind, str] = {
    EntityKind.CAPABILITY: "requires_capabilities",
    EntityKind.PERSONA: "personas",
    EntityKind.COMPONENT: "suggested_components",
}

# Statuses always present in the capability histogram
STATUS_VALUES = ("planned", "in-progress", "implemented", "deprecated")

PRIORITY_FOCUSES = ("capability", "workflow")


def _ids(record: Dict[str, Any], field: str) -> List[str]:
    value = record.get(field) or []
    return [item for item in value if isinstance(item, str)] if isinstance(value, list) else []


def _brief(record: Dict[str, Any]) -> Dict[str, str]:
    return {"id": record["id"], "name": str(record.get("name", record["id"]))}


class AnalyticsEngine:
    """Read-only traversals of the index.

    Args:
        index: Entity index to read.
        engine: Relationship engine, used for the integrity audit in ``validate``.
        gap_category_threshold: A workflow category with this many workflows
            or fewer is reported as a gap.
        ready_status: Capability status that counts as ready.
    """

    def __init__(
        self,
        index: EntityIndex,
        engine: Optional[RelationshipEngine] = None,
        gap_category_threshold: int = 1,
        ready_status: str = "implemented",
    ):
        self.index = index
        self.engine = engine
        self.gap_category_threshold = gap_category_threshold
        self.ready_status = ready_status

    def _referrers(self, source: EntityKind, field: str) -> Dict[str, List[str]]:
        """Map each referenced ID to the IDs of ``source`` entities naming it in ``field``."""
        referrers: Dict[str, List[str]] = defaultdict(list)
        for source_id, record in self.index.records(source):
            for target_id in dict.fromkeys(_ids(record, field)):
                referrers[target_id].append(source_id)
        return referrers

    # ------------------------------------------------------------------
    # Orphans and gaps
    # ------------------------------------------------------------------

    def find_orphans(self, kind: Optional[Any] = None) -> Dict[str, Any]:
        """Entities of relationship-target kinds that no workflow references.

        Workflows and the other root kinds are never orphans; asking for one
        of them yields an empty result.

        Args:
            kind: Restrict the check to one kind (None checks all target kinds).

        Returns:
            Mapping of kind directory name (e.g. ``capabilities``) to a list of
            ``{id, name}``, plus ``total``.
        """
        kinds = list(ORPHAN_CHECKS)
        if kind is not None:
            requested = parse_kind(kind)
            kinds = [requested] if requested in ORPHAN_CHECKS else []

        result: Dict[str, Any] = {}
        total = 0
        for target in kinds:
            referenced = self._referrers(EntityKind.WORKFLOW, ORPHAN_CHECKS[target])
            orphans = [
                _brief(record)
                for entity_id, record in self.index.records(target)
                if not referenced.get(entity_id)
            ]
            result[fields_for(target).directory] = orphans
            total += len(orphans)
        result["total"] = total
        return result

    def find_gaps(self) -> Dict[str, Any]:
        """Structural completeness deficiencies, independent of link mechanics."""
        workflows = [record for _, record in self.index.records(EntityKind.WORKFLOW)]
        implementers = self._referrers(EntityKind.COMPONENT, "implements_capabilities")

        categories = Counter(
            str(record["category"]) for record in workflows if record.get("category")
        )
        few = [
            {"category": category, "workflow_count": count}
            for category, count in sorted(categories.items())
            if count <= self.gap_category_threshold
        ]

        gaps: Dict[str, Any] = {
            "workflows_without_capabilities": [
                _brief(w) for w in workflows if not _ids(w, "requires_capabilities")
            ],
            "workflows_without_personas": [_brief(w) for w in workflows if not _ids(w, "personas")],
            "capabilities_without_components": [
                _brief(record)
                for cap_id, record in self.index.records(EntityKind.CAPABILITY)
                if not implementers.get(cap_id)
            ],
            "categories_with_few_workflows": few,
        }
        gaps["total"] = sum(len(entries) for entries in gaps.values())
        return gaps

    # ------------------------------------------------------------------
    # Coverage
    # ------------------------------------------------------------------

    def coverage_report(self) -> Dict[str, Any]:
        """Usage counts for capabilities, personas, components and workflow readiness.

        Entries are ordered by usage count (descending), then ID.
        """
        requires = self._referrers(EntityKind.WORKFLOW, "requires_capabilities")
        uses = self._referrers(EntityKind.WORKFLOW, "personas")
        suggests = self._referrers(EntityKind.WORKFLOW, "suggested_components")
        implementers = self._referrers(EntityKind.COMPONENT, "implements_capabilities")

        capability_status: Dict[str, str] = {}
        capability_coverage: List[Dict[str, Any]] = []
        for cap_id, record in self.index.records(EntityKind.CAPABILITY):
            status = str(record.get("status") or "planned")
            capability_status[cap_id] = status
            capability_coverage.append(
                {
                    **_brief(record),
                    "status": status,
                    "workflow_count": len(requires.get(cap_id, [])),
                    "component_count": len(implementers.get(cap_id, [])),
                    "workflows": requires.get(cap_id, []),
                }
            )

        persona_coverage = [
            {**_brief(record), "workflow_count": len(uses.get(persona_id, []))}
            for persona_id, record in self.index.records(EntityKind.PERSONA)
        ]

        component_coverage = [
            {
                **_brief(record),
                "capability_count": len(dict.fromkeys(_ids(record, "implements_capabilities"))),
                "workflow_count": len(suggests.get(comp_id, [])),
            }
            for comp_id, record in self.index.records(EntityKind.COMPONENT)
        ]

        workflow_coverage: List[Dict[str, Any]] = []
        for _, record in self.index.records(EntityKind.WORKFLOW):
            required = list(dict.fromkeys(_ids(record, "requires_capabilities")))
            missing = [
                cap_id for cap_id in required if capability_status.get(cap_id) != self.ready_status
            ]
            workflow_coverage.append(
                {
                    **_brief(record),
                    "capabilities_required": len(required),
                    "capabilities_ready": not missing,
                    "missing_capabilities": missing,
                }
            )

        histogram: Dict[str, int] = {status: 0 for status in STATUS_VALUES}
        for status in capability_status.values():
            histogram[status] = histogram.get(status, 0) + 1

        summary: Dict[str, Any] = {
            f"total_{fields_for(kind).directory.replace('-', '_')}": self.index.count(kind)
            for kind in EntityKind
        }
        summary["implementation_status"] = histogram
        summary["workflows_ready"] = sum(1 for w in workflow_coverage if w["capabilities_ready"])

        def by_usage(key: str) -> Any:
            return lambda entry: (-entry[key], entry["id"])

        return {
            "summary": summary,
            "capability_coverage": sorted(capability_coverage, key=by_usage("workflow_count")),
            "persona_coverage": sorted(persona_coverage, key=by_usage("workflow_count")),
            "component_coverage": sorted(component_coverage, key=by_usage("capability_count")),
            "workflow_coverage": workflow_coverage,
        }

    def test_coverage(self) -> Dict[str, Any]:
        """Workflow x persona test matrix.

        A combination is tested when at least one test result names exactly
        that (workflow_id, persona_id) pair. ``latest_test`` is the result
        with the greatest date (ties broken by ID).
        """
        workflows = [record for _, record in self.index.records(EntityKind.WORKFLOW)]
        personas = [record for _, record in self.index.records(EntityKind.PERSONA)]

        by_pair: Dict[Tuple[str, str], List[Dict[str, Any]]] = defaultdict(list)
        real_count = simulated_count = 0
        for _, result in self.index.records(EntityKind.TEST_RESULT):
            by_pair[(str(result.get("workflow_id")), str(result.get("persona_id")))].append(result)
            if result.get("test_type") == "real":
                real_count += 1
            elif result.get("test_type") == "simulated":
                simulated_count += 1

        entries: List[Dict[str, Any]] = []
        untested: List[Dict[str, str]] = []
        for workflow in workflows:
            for persona in personas:
                results = by_pair.get((workflow["id"], persona["id"]), [])
                entry: Dict[str, Any] = {
                    "workflow_id": workflow["id"],
                    "workflow_name": str(workflow.get("name", workflow["id"])),
                    "persona_id": persona["id"],
                    "persona_name": str(persona.get("name", persona["id"])),
                    "test_count": len(results),
                    "real_test_count": sum(1 for r in results if r.get("test_type") == "real"),
                    "simulated_test_count": sum(
                        1 for r in results if r.get("test_type") == "simulated"
                    ),
                }
                entry["has_real_test"] = entry["real_test_count"] > 0
                entry["has_simulated_test"] = entry["simulated_test_count"] > 0
                if results:
                    latest = max(results, key=lambda r: (str(r.get("date", "")), r["id"]))
                    entry["latest_test"] = {
                        "id": latest["id"],
                        "date": latest.get("date"),
                        "status": latest.get("status"),
                        "test_type": latest.get("test_type"),
                    }
                else:
                    untested.append(
                        {"workflow_id": workflow["id"], "persona_id": persona["id"]}
                    )
                entries.append(entry)

        possible = len(workflows) * len(personas)
        tested = possible - len(untested)
        percentage = round(tested / possible * 100, 1) if possible else 0
        return {
            "total_workflows": len(workflows),
            "total_personas": len(personas),
            "possible_combinations": possible,
            "tested_combinations": tested,
            "coverage_percentage": percentage,
            "real_test_count": real_count,
            "simulated_test_count": simulated_count,
            "entries": entries,
            "untested": untested,
        }

    # ------------------------------------------------------------------
    # Priority and validation
    # ------------------------------------------------------------------

    def suggest_priority(self, focus: str = "capability", limit: int = 10) -> Dict[str, Any]:
        """Rank what to implement next.

        focus="capability": unfinished capabilities by number of workflows
        they block. focus="workflow": workflows by readiness (fewest
        unfinished required capabilities first).

        Raises:
            ValueError: If ``focus`` is not one of PRIORITY_FOCUSES.
        """
        if focus not in PRIORITY_FOCUSES:
            raise ValueError(f"focus must be one of {', '.join(PRIORITY_FOCUSES)}, got '{focus}'")

        capabilities = dict(self.index.records(EntityKind.CAPABILITY))
        requires = self._referrers(EntityKind.WORKFLOW, "requires_capabilities")

        def unfinished(cap_id: str) -> bool:
            cap = capabilities.get(cap_id)
            return cap is not None and cap.get("status", "planned") not in (
                self.ready_status,
                "deprecated",
            )

        recommendations: List[Dict[str, Any]] = []
        if focus == "capability":
            for cap_id, cap in capabilities.items():
                if not unfinished(cap_id):
                    continue
                blocked = requires.get(cap_id, [])
                recommendations.append(
                    {
                        **_brief(cap),
                        "score": len(blocked),
                        "workflows_unblocked": blocked,
                        "reasoning": (
                            f"Implementing {cap.get('name', cap_id)} would unblock "
                            f"{len(blocked)} workflow(s): {', '.join(blocked) or 'none'}"
                        ),
                    }
                )
        else:
            for _, workflow in self.index.records(EntityKind.WORKFLOW):
                blocking = [
                    c for c in dict.fromkeys(_ids(workflow, "requires_capabilities"))
                    if unfinished(c)
                ]
                name = workflow.get("name", workflow["id"])
                recommendations.append(
                    {
                        **_brief(workflow),
                        "score": -len(blocking),
                        "blocked_by": blocking,
                        "reasoning": (
                            f"{name} is ready to implement"
                            if not blocking
                            else f"{name} is blocked by {len(blocking)} capability(ies): "
                            f"{', '.join(blocking)}"
                        ),
                    }
                )

        recommendations.sort(key=lambda r: (-r["score"], r["id"]))
        blocked_workflows = [
            workflow_id
            for workflow_id, workflow in self.index.records(EntityKind.WORKFLOW)
            if any(unfinished(c) for c in _ids(workflow, "requires_capabilities"))
        ]
        return {
            "focus": focus,
            "recommendations": recommendations[: max(limit, 0)],
            "summary": {
                "total_unimplemented": sum(1 for c in capabilities if unfinished(c)),
                "total_blocked_workflows": len(blocked_workflows),
            },
        }

    def validate(self) -> Dict[str, Any]:
        """Integrity audit (errors) plus orphans and gaps (warnings)."""
        errors: List[str] = []
        warnings: List[str] = []
        if self.engine is not None:
            report = self.engine.check_consistency()
            errors.extend(report.errors)
            warnings.extend(report.warnings)

        orphans = self.find_orphans()
        for kind in ORPHAN_CHECKS:
            label = fields_for(kind).label
            for orphan in orphans[fields_for(kind).directory]:
                warnings.append(f"{label} '{orphan['id']}' is not referenced by any workflow")

        gaps = self.find_gaps()
        for workflow in gaps["workflows_without_capabilities"]:
            warnings.append(f"Workflow '{workflow['id']}' requires no capabilities")
        for workflow in gaps["workflows_without_personas"]:
            warnings.append(f"Workflow '{workflow['id']}' has no personas")
        for cap in gaps["capabilities_without_components"]:
            warnings.append(f"Capability '{cap['id']}' has no implementing components")

        logger.info(f"Validation finished: {len(errors)} errors, {len(warnings)} warnings")
        return {"valid": not errors, "errors": errors, "warnings": warnings}
