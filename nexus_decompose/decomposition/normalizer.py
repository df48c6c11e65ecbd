"""Spec normalizer - flattens the epic/story tree into requirements.

The incoming document is whatever the spec-authoring side produced (usually
JSON or YAML already loaded into dicts and lists). The normalizer walks it
depth-first, keeps source order, and validates every requirement leaf.
"""

import math
from collections.abc import Mapping
from typing import Any

from loguru import logger
from pydantic import ValidationError

from nexus_decompose.core.exceptions import ConfidenceOutOfRange, MalformedSpecError
from nexus_decompose.decomposition.models import ExemptionKind, Priority, Requirement

# Requirement keys accepted in either naming style
_KEY_ALIASES: dict[str, tuple[str, ...]] = {
    "estimated_minutes": ("estimated_minutes", "estimatedMinutes"),
    "depends_on": ("depends_on", "dependsOn"),
    "related_to": ("related_to", "relatedTo"),
    "cross_cutting": ("cross_cutting", "crossCutting"),
    "documented": ("documented", "needs_docs", "needsDocs"),
    "exemption": ("exemption", "exempt"),
    "resources": ("resources", "owns"),
}

_CHILD_KEYS = ("epics", "stories", "sections")


class RequirementNormalizer:
    """
    Flatten a hierarchical feature spec into ``Requirement`` records.

    Example:
        >>> normalizer = RequirementNormalizer()
        >>> reqs = normalizer.normalize({
        ...     "epics": [{
        ...         "id": "E1",
        ...         "stories": [{
        ...             "id": "S1",
        ...             "requirements": [
        ...                 {"id": "FR-001", "title": "Login", "confidence": 90},
        ...             ],
        ...         }],
        ...     }],
        ... })
        >>> [r.id for r in reqs]
        ['FR-001']
    """

    def __init__(self) -> None:
        """Initialize the normalizer."""
        self.warnings: list[str] = []
        self._seen_ids: set[str] = set()

    def normalize(self, spec: Mapping[str, Any] | list[Any]) -> list[Requirement]:
        """
        Walk the spec tree and return its requirements in source order.

        Args:
            spec: Mapping with ``epics``/``sections``/``requirements`` keys,
                or a bare list of epics.

        Returns:
            Flat list of validated requirements.

        Raises:
            MalformedSpecError: If a requirement lacks an id or confidence,
                or the tree has the wrong shape.
            ConfidenceOutOfRange: If a confidence lies outside [0, 100].
        """
        self.warnings = []
        self._seen_ids = set()

        if isinstance(spec, list):
            spec = {"epics": spec}
        if not isinstance(spec, Mapping):
            raise MalformedSpecError(
                f"Spec must be a mapping or a list of epics, got {type(spec).__name__}"
            )

        requirements: list[Requirement] = []
        self._walk(spec, depth=-1, epic_id=None, story_id=None, path="spec", out=requirements)

        logger.info(f"Normalized {len(requirements)} requirements")
        for warning in self.warnings:
            logger.warning(warning)
        return requirements

    # =========================================================================
    # TREE WALK
    # =========================================================================

    def _walk(
        self,
        node: Mapping[str, Any],
        depth: int,
        epic_id: str | None,
        story_id: str | None,
        path: str,
        out: list[Requirement],
    ) -> None:
        """Collect requirements of ``node`` and then of its children."""
        node_id = node.get("id")
        if depth == 0:
            epic_id = str(node_id) if node_id is not None else None
        elif depth > 0:
            story_id = str(node_id) if node_id is not None else None

        leaves = self._as_list(node.get("requirements"), f"{path}.requirements")
        for index, raw in enumerate(leaves):
            out.append(
                self._build_requirement(
                    raw, epic_id, story_id, f"{path}.requirements[{index}]"
                )
            )

        child_count = 0
        for key in _CHILD_KEYS:
            children = self._as_list(node.get(key), f"{path}.{key}")
            for index, child in enumerate(children):
                child_path = f"{path}.{key}[{index}]"
                if not isinstance(child, Mapping):
                    raise MalformedSpecError(f"{child_path} must be a mapping")
                child_count += 1
                self._walk(child, depth + 1, epic_id, story_id, child_path, out)

        if depth >= 0 and not leaves and not child_count:
            label = "Epic" if depth == 0 else "Story"
            self.warnings.append(f"{label} {node_id or path} has no requirements")

    @staticmethod
    def _as_list(value: Any, path: str) -> list[Any]:
        if value is None:
            return []
        if not isinstance(value, list):
            raise MalformedSpecError(f"{path} must be a list")
        return value

    # =========================================================================
    # REQUIREMENT LEAVES
    # =========================================================================

    def _build_requirement(
        self,
        raw: Any,
        epic_id: str | None,
        story_id: str | None,
        path: str,
    ) -> Requirement:
        """Validate one requirement leaf and build the record."""
        if not isinstance(raw, Mapping):
            raise MalformedSpecError(f"{path} must be a mapping")

        req_id = raw.get("id")
        if req_id is None or not str(req_id).strip():
            raise MalformedSpecError(f"Requirement at {path} has no id")
        req_id = str(req_id).strip()

        if req_id in self._seen_ids:
            raise MalformedSpecError(f"Duplicate requirement id {req_id}", req_id)
        self._seen_ids.add(req_id)

        confidence = self._parse_confidence(req_id, raw.get("confidence"))

        fields: dict[str, Any] = {
            "id": req_id,
            "title": str(raw.get("title") or req_id),
            "description": str(raw.get("description") or ""),
            "priority": self._parse_priority(req_id, raw.get("priority")),
            "confidence": confidence,
            "epic_id": epic_id,
            "story_id": story_id,
        }
        for field_name, aliases in _KEY_ALIASES.items():
            for alias in aliases:
                if alias in raw:
                    fields[field_name] = raw[alias]
                    break

        if "exemption" in fields:
            fields["exemption"] = self._parse_exemption(req_id, fields["exemption"])

        try:
            return Requirement(**fields)
        except ValidationError as e:
            raise MalformedSpecError(
                f"Requirement {req_id} is malformed: {e.errors()[0]['msg']}", req_id
            ) from e

    @staticmethod
    def _parse_confidence(req_id: str, value: Any) -> float:
        if value is None:
            raise MalformedSpecError(f"Requirement {req_id} has no confidence", req_id)
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            raise MalformedSpecError(
                f"Requirement {req_id} has a non-numeric confidence", req_id
            )
        try:
            confidence = float(value)
        except ValueError as e:
            raise MalformedSpecError(
                f"Requirement {req_id} has a non-numeric confidence", req_id
            ) from e
        if math.isnan(confidence) or not 0 <= confidence <= 100:
            raise ConfidenceOutOfRange(req_id, confidence)
        return confidence

    @staticmethod
    def _parse_priority(req_id: str, value: Any) -> Priority:
        if value is None:
            return Priority.SHOULD
        try:
            return Priority(str(value).strip().lower())
        except ValueError as e:
            raise MalformedSpecError(
                f"Requirement {req_id} has unknown priority {value!r}", req_id
            ) from e

    @staticmethod
    def _parse_exemption(req_id: str, value: Any) -> ExemptionKind | None:
        if value is None or value is False:
            return None
        try:
            return ExemptionKind(str(value).strip().lower())
        except ValueError as e:
            raise MalformedSpecError(
                f"Requirement {req_id} has unknown exemption {value!r}; "
                f"expected one of {', '.join(kind.value for kind in ExemptionKind)}",
                req_id,
            ) from e


def normalize_spec(spec: Mapping[str, Any] | list[Any]) -> list[Requirement]:
    """Convenience function to flatten a spec tree.

    Args:
        spec: Hierarchical spec document.

    Returns:
        List of Requirement objects.
    """
    return RequirementNormalizer().normalize(spec)
