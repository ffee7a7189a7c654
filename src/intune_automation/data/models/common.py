from __future__ import annotations

from typing import Any, Mapping, Self

from pydantic import BaseModel, ConfigDict


class GraphBaseModel(BaseModel):
    """Read-only view over a Graph JSON object.

    Fields are snake_case with the Graph property name as alias. Properties no
    automation reads are dropped on the way in, so ``to_graph`` only echoes
    what the model declares.
    """

    model_config = ConfigDict(
        populate_by_name=True,
        use_enum_values=True,
        extra="ignore",
        frozen=True,
    )

    @classmethod
    def from_graph(cls, payload: Mapping[str, Any]) -> Self:
        return cls.model_validate(payload)

    def to_graph(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class GraphResource(GraphBaseModel):
    id: str
