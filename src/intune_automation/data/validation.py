from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Type, TypeVar

from pydantic import ValidationError

from intune_automation.data.models import GraphBaseModel
from intune_automation.utils import get_logger


logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=GraphBaseModel)


@dataclass(slots=True)
class ValidationIssue:
    """Represents a schema validation failure for a Graph payload."""

    resource: str
    identifier: str | None
    fields: tuple[str, ...] = field(default_factory=tuple)


class GraphResponseValidator:
    """Parse Graph payloads into models, skipping and recording the ones that do not fit."""

    def __init__(self, resource: str) -> None:
        self._resource = resource
        self._issues: list[ValidationIssue] = []

    def parse(self, model: Type[ModelT], payload: dict[str, Any]) -> ModelT | None:
        try:
            return model.from_graph(payload)
        except ValidationError as exc:
            raw_id = payload.get("id") if isinstance(payload, dict) else None
            issue = ValidationIssue(
                resource=self._resource,
                identifier=str(raw_id) if raw_id is not None else None,
                fields=tuple(
                    ".".join(str(segment) for segment in error.get("loc", ()))
                    for error in exc.errors()
                ),
            )
            self._issues.append(issue)
            logger.warning(
                "Graph payload validation failed",
                resource=self._resource,
                identifier=issue.identifier,
                fields=", ".join(issue.fields) or "unknown",
            )
            return None

    def issues(self) -> list[ValidationIssue]:
        return list(self._issues)

    def reset(self) -> None:
        self._issues.clear()


__all__: List[str] = ["GraphResponseValidator", "ValidationIssue"]
