from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any, Iterable, Mapping

from intune_automation.data import (
    ConfigurationPolicy,
    GraphResponseValidator,
    PolicySetting,
    SettingDefinition,
)
from intune_automation.graph.client import GraphClientFactory
from intune_automation.graph.errors import GraphAPIError, GraphErrorCategory
from intune_automation.graph.requests import (
    configuration_policies_request,
    configuration_policy_request,
    configuration_policy_settings_request,
)
from intune_automation.reports import Column, ReportFormat, write_csv, write_html
from intune_automation.utils import get_logger


logger = get_logger(__name__)

REPORT_BASENAME = "BaselineComparison"

_GUID = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)
_POLICY_SELECT = (
    "id",
    "name",
    "description",
    "platforms",
    "technologies",
    "templateReference",
)


class ComparisonStatus(StrEnum):
    SAME = "Same"
    DIFFERENT = "Different"
    ONLY_IN_BASELINE1 = "Only in Baseline1"
    ONLY_IN_BASELINE2 = "Only in Baseline2"


class BaselineNotFoundError(LookupError):
    pass


class AmbiguousBaselineError(LookupError):
    pass


@dataclass(slots=True)
class FlatSetting:
    definition_id: str
    display_name: str
    value: str


@dataclass(slots=True)
class ComparisonRow:
    definition_id: str
    display_name: str
    baseline1_value: str | None
    baseline2_value: str | None
    status: ComparisonStatus

    def as_row(self) -> dict[str, Any]:
        return {
            "display_name": self.display_name,
            "definition_id": self.definition_id,
            "baseline1_value": self.baseline1_value,
            "baseline2_value": self.baseline2_value,
            "status": self.status,
        }


@dataclass(slots=True)
class BaselineComparison:
    baseline1: ConfigurationPolicy
    baseline2: ConfigurationPolicy
    rows: list[ComparisonRow] = field(default_factory=list)

    def counts(self) -> dict[ComparisonStatus, int]:
        tally = Counter(row.status for row in self.rows)
        return {status: tally.get(status, 0) for status in ComparisonStatus}


def _definition_index(settings: Iterable[PolicySetting]) -> dict[str, SettingDefinition]:
    index: dict[str, SettingDefinition] = {}
    for setting in settings:
        for definition in setting.setting_definitions or []:
            index.setdefault(definition.id, definition)
    return index


def _option_label(definition: SettingDefinition | None, item_id: Any) -> str:
    if item_id is None:
        return ""
    if definition is not None:
        for option in definition.options or []:
            if option.item_id == item_id:
                return option.display_name or option.name or option.item_id
    return str(item_id)


def _simple_value(value: Any) -> str:
    if isinstance(value, dict):
        raw = value.get("value")
        return "" if raw is None else str(raw)
    return "" if value is None else str(value)


class _Flattener:
    """Walk settings-catalog instance trees into leaf values keyed by definition id."""

    def __init__(self, definitions: Mapping[str, SettingDefinition]) -> None:
        self._definitions = definitions
        self.values: dict[str, list[str]] = {}

    def visit(self, instance: Mapping[str, Any]) -> None:
        definition_id = instance.get("settingDefinitionId")
        if not definition_id:
            return
        definition = self._definitions.get(definition_id)
        # Groups and empty collections still mark the setting as configured.
        self.values.setdefault(definition_id, [])

        if "choiceSettingValue" in instance:
            choice = instance.get("choiceSettingValue") or {}
            self._record(definition_id, _option_label(definition, choice.get("value")))
            self._children(choice.get("children"))
        elif "choiceSettingCollectionValue" in instance:
            for choice in instance.get("choiceSettingCollectionValue") or []:
                self._record(definition_id, _option_label(definition, choice.get("value")))
                self._children(choice.get("children"))
        elif "simpleSettingValue" in instance:
            self._record(definition_id, _simple_value(instance.get("simpleSettingValue")))
        elif "simpleSettingCollectionValue" in instance:
            for value in instance.get("simpleSettingCollectionValue") or []:
                self._record(definition_id, _simple_value(value))
        elif "groupSettingValue" in instance:
            group = instance.get("groupSettingValue") or {}
            self._children(group.get("children"))
        elif "groupSettingCollectionValue" in instance:
            for group in instance.get("groupSettingCollectionValue") or []:
                self._children(group.get("children"))
        else:
            logger.debug(
                "Unrecognised setting instance shape",
                definition_id=definition_id,
                odata_type=instance.get("@odata.type"),
            )

    def _children(self, children: Any) -> None:
        for child in children or []:
            if isinstance(child, Mapping):
                self.visit(child)

    def _record(self, definition_id: str, value: str) -> None:
        self.values.setdefault(definition_id, []).append(value)


def flatten_settings(settings: Iterable[PolicySetting]) -> dict[str, FlatSetting]:
    """Reduce a policy's settings tree to ``{settingDefinitionId: FlatSetting}``.

    Choice values are shown as the option's display name when the definitions
    were expanded. A definition seen more than once (collections) gets its
    values sorted and joined with ``"; "``.
    """

    settings = list(settings)
    definitions = _definition_index(settings)
    flattener = _Flattener(definitions)
    for setting in settings:
        flattener.visit(setting.setting_instance)

    flat: dict[str, FlatSetting] = {}
    for definition_id, values in flattener.values.items():
        definition = definitions.get(definition_id)
        display_name = (
            (definition.display_name or definition.name) if definition else None
        ) or definition_id
        merged = "; ".join(sorted(set(values))) if len(values) > 1 else "".join(values)
        flat[definition_id] = FlatSetting(
            definition_id=definition_id,
            display_name=display_name,
            value=merged,
        )
    return flat


def compare(
    baseline1: Mapping[str, FlatSetting],
    baseline2: Mapping[str, FlatSetting],
) -> list[ComparisonRow]:
    rows: list[ComparisonRow] = []
    for definition_id in baseline1.keys() | baseline2.keys():
        left = baseline1.get(definition_id)
        right = baseline2.get(definition_id)
        if left is not None and right is not None:
            status = (
                ComparisonStatus.SAME if left.value == right.value else ComparisonStatus.DIFFERENT
            )
        elif left is not None:
            status = ComparisonStatus.ONLY_IN_BASELINE1
        else:
            status = ComparisonStatus.ONLY_IN_BASELINE2
        named = left or right
        assert named is not None
        rows.append(
            ComparisonRow(
                definition_id=definition_id,
                display_name=named.display_name,
                baseline1_value=left.value if left else None,
                baseline2_value=right.value if right else None,
                status=status,
            )
        )
    rows.sort(key=lambda row: (row.display_name.casefold(), row.definition_id))
    return rows


def report_columns(comparison: BaselineComparison) -> list[Column]:
    title1 = comparison.baseline1.name
    title2 = comparison.baseline2.name
    # CSV headers must be unique.
    if title1 == title2:
        title1, title2 = f"{title1} (Baseline1)", f"{title2} (Baseline2)"
    return [
        Column("display_name", "Setting"),
        Column("definition_id", "Setting ID"),
        Column("baseline1_value", title1),
        Column("baseline2_value", title2),
        Column("status", "Status", status=True),
    ]


def write_report(
    comparison: BaselineComparison,
    output_path: Path,
    report_format: ReportFormat = ReportFormat.BOTH,
) -> list[Path]:
    columns = report_columns(comparison)
    rows = [row.as_row() for row in comparison.rows]
    summary = {str(status): count for status, count in comparison.counts().items()}
    written: list[Path] = []
    if report_format.wants_html:
        written.append(
            write_html(
                output_path / f"{REPORT_BASENAME}.html",
                f"Baseline comparison: {comparison.baseline1.name} vs {comparison.baseline2.name}",
                columns,
                rows,
                summary,
            )
        )
    if report_format.wants_csv:
        written.append(write_csv(output_path / f"{REPORT_BASENAME}.csv", columns, rows))
    for path in written:
        logger.info("Wrote baseline comparison report", path=str(path))
    return written


class BaselineComparisonService:
    """Compare two settings-catalog policies (security baselines included) setting by setting."""

    def __init__(self, client_factory: GraphClientFactory) -> None:
        self._client_factory = client_factory
        self._validator = GraphResponseValidator("configurationPolicies")

    async def resolve_policy(self, reference: str) -> ConfigurationPolicy:
        """Find a policy by id, falling back to an exact (case-insensitive) name match."""

        reference = reference.strip()
        if _GUID.match(reference):
            try:
                payload = await self._client_factory.execute(
                    configuration_policy_request(reference)
                )
                return ConfigurationPolicy.from_graph(payload)
            except GraphAPIError as exc:
                if exc.category is not GraphErrorCategory.NOT_FOUND:
                    raise
                logger.debug("No policy with that id; trying names", reference=reference)

        self._validator.reset()
        matches: list[ConfigurationPolicy] = []
        request = configuration_policies_request(select=_POLICY_SELECT)
        async for item in self._client_factory.iter_request(request):
            policy = self._validator.parse(ConfigurationPolicy, item)
            if policy is not None and policy.name.casefold() == reference.casefold():
                matches.append(policy)

        if not matches:
            raise BaselineNotFoundError(f"No configuration policy matches {reference!r}")
        if len(matches) > 1:
            ids = ", ".join(policy.id for policy in matches)
            raise AmbiguousBaselineError(
                f"{len(matches)} policies are named {reference!r} ({ids}); pass an id instead"
            )
        return matches[0]

    async def fetch_settings(self, policy_id: str) -> list[PolicySetting]:
        validator = GraphResponseValidator("configurationPolicies/settings")
        settings: list[PolicySetting] = []
        async for item in self._client_factory.iter_request(
            configuration_policy_settings_request(policy_id)
        ):
            setting = validator.parse(PolicySetting, item)
            if setting is not None:
                settings.append(setting)
        logger.debug("Fetched policy settings", policy_id=policy_id, count=len(settings))
        return settings

    async def compare_policies(self, reference1: str, reference2: str) -> BaselineComparison:
        baseline1 = await self.resolve_policy(reference1)
        baseline2 = await self.resolve_policy(reference2)
        flat1 = flatten_settings(await self.fetch_settings(baseline1.id))
        flat2 = flatten_settings(await self.fetch_settings(baseline2.id))
        comparison = BaselineComparison(
            baseline1=baseline1,
            baseline2=baseline2,
            rows=compare(flat1, flat2),
        )
        logger.info(
            "Compared baselines",
            baseline1=baseline1.name,
            baseline2=baseline2.name,
            **{str(status).lower().replace(" ", "_"): count for status, count in comparison.counts().items()},
        )
        return comparison


__all__ = [
    "REPORT_BASENAME",
    "AmbiguousBaselineError",
    "BaselineComparison",
    "BaselineComparisonService",
    "BaselineNotFoundError",
    "ComparisonRow",
    "ComparisonStatus",
    "FlatSetting",
    "compare",
    "flatten_settings",
    "report_columns",
    "write_report",
]
