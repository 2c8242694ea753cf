"""Tool registry: descriptor validation, lookup, search and incorporation rules."""
import logging
import re
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ..errors import DuplicateToolError, NotFoundError, ValidationError
from .conditions import Predicate

logger = logging.getLogger(__name__)

_SEMVER = re.compile(r"^\d+\.\d+\.\d+$")
_PARAM_TYPES = ("string", "number", "boolean", "object", "array")


class ThinkingLevel(str, Enum):
    FOUNDATION = "foundation"
    SPECIALIZED = "specialized"
    INTEGRATED = "integrated"
    # Legacy aliases
    META = "meta"
    BASIC = "basic"

    @property
    def canonical(self) -> "ThinkingLevel":
        """Level used for matching; legacy ``basic`` means ``foundation``."""
        return ThinkingLevel.FOUNDATION if self is ThinkingLevel.BASIC else self


class ToolType(str, Enum):
    ANALYSIS = "analysis"
    GENERATION = "generation"
    DECISION = "decision"
    STRUCTURING = "structuring"
    ORCHESTRATION = "orchestration"
    REFLECTION = "reflection"


@dataclass
class ToolParam:
    name: str
    type: str = "string"
    description: str = ""
    required: bool = True
    default: Any = None
    allowed_values: Optional[List[Any]] = None


@dataclass
class ToolExample:
    name: str
    description: str = ""
    input: Dict[str, Any] = field(default_factory=dict)
    expected_output: Any = None


@dataclass
class ToolLimits:
    max_execution_time: Optional[int] = None  # ms
    max_input_size: Optional[int] = None
    max_output_size: Optional[int] = None
    max_calls_per_minute: Optional[int] = None


@dataclass
class ToolCondition:
    description: str
    check: Predicate


@dataclass
class ToolDescriptor:
    name: str
    description: str
    level: ThinkingLevel
    type: ToolType
    parameters: Dict[str, ToolParam]
    result_format: Dict[str, ToolParam]
    examples: List[ToolExample]
    tags: List[str]
    priority: int
    version: str
    updated_at: str
    interacts_with: List[str] = field(default_factory=list)
    limits: Optional[ToolLimits] = None
    required_plugins: List[str] = field(default_factory=list)
    experimental: bool = False
    conditions: List[ToolCondition] = field(default_factory=list)


@dataclass
class IncorporationRule:
    """How results of ``source`` are merged into results of ``target``.

    ``merge(target_result, source_results, context)`` may be sync or async and
    returns the merged target result (``None`` keeps the current one).
    Each condition receives ``{"result": <source result>, "context": {...}}``.
    """
    source: str
    target: str
    merge: Optional[Callable[..., Any]] = None
    conditions: List[Predicate] = field(default_factory=list)


@dataclass
class ToolSearchFilter:
    level: Optional[ThinkingLevel] = None
    type: Optional[ToolType] = None
    tags: List[str] = field(default_factory=list)
    name_substring: Optional[str] = None
    description_substring: Optional[str] = None
    interacts_with: List[str] = field(default_factory=list)
    min_priority: Optional[int] = None
    max_priority: Optional[int] = None
    experimental: Optional[bool] = None
    required_plugins: List[str] = field(default_factory=list)


def coerce_enum(enum_cls, value, label: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(f"Tool {label} must be one of: {allowed} (got {value!r})")


def _is_iso_timestamp(value: str) -> bool:
    if not isinstance(value, str) or not value:
        return False
    try:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return False
    return True


def validate_descriptor(descriptor: ToolDescriptor) -> ToolDescriptor:
    """Check every required field; raise ValidationError on the first violation.

    Returns the descriptor with level/type coerced to their enums.
    """
    if not descriptor.name:
        raise ValidationError("Tool name is missing")
    if not descriptor.description:
        raise ValidationError(f"Tool {descriptor.name}: description is missing")
    if not descriptor.level:
        raise ValidationError(f"Tool {descriptor.name}: level is missing")
    level = coerce_enum(ThinkingLevel, descriptor.level, "level")
    if not descriptor.type:
        raise ValidationError(f"Tool {descriptor.name}: type is missing")
    tool_type = coerce_enum(ToolType, descriptor.type, "type")
    if not descriptor.parameters:
        raise ValidationError(f"Tool {descriptor.name}: parameter schema is missing")
    if not descriptor.result_format:
        raise ValidationError(f"Tool {descriptor.name}: result schema is missing")
    for schema in (descriptor.parameters, descriptor.result_format):
        for key, param in schema.items():
            if param.type not in _PARAM_TYPES:
                raise ValidationError(
                    f"Tool {descriptor.name}: parameter {key!r} has invalid type {param.type!r}"
                )
    if not descriptor.examples:
        raise ValidationError(f"Tool {descriptor.name}: at least one usage example is required")
    if not descriptor.tags:
        raise ValidationError(f"Tool {descriptor.name}: at least one tag is required")
    if descriptor.priority is None:
        raise ValidationError(f"Tool {descriptor.name}: priority is missing")
    if isinstance(descriptor.priority, bool) or not isinstance(descriptor.priority, int):
        raise ValidationError(f"Tool {descriptor.name}: priority must be an integer")
    if not 0 <= descriptor.priority <= 100:
        raise ValidationError(f"Tool {descriptor.name}: priority must be between 0 and 100")
    if not descriptor.version:
        raise ValidationError(f"Tool {descriptor.name}: version is missing")
    if not _SEMVER.match(descriptor.version):
        raise ValidationError(f"Tool {descriptor.name}: version must follow semver (x.y.z)")
    if not descriptor.updated_at:
        raise ValidationError(f"Tool {descriptor.name}: updated_at is missing")
    if not _is_iso_timestamp(descriptor.updated_at):
        raise ValidationError(f"Tool {descriptor.name}: updated_at must be an ISO timestamp")
    return replace(descriptor, level=level, type=tool_type)


def _snapshot(descriptor: ToolDescriptor) -> ToolDescriptor:
    """Copy with fresh list containers so callers cannot mutate registry state."""
    return replace(
        descriptor,
        tags=list(descriptor.tags),
        interacts_with=list(descriptor.interacts_with),
        required_plugins=list(descriptor.required_plugins),
        examples=list(descriptor.examples),
        conditions=list(descriptor.conditions),
        parameters=dict(descriptor.parameters),
        result_format=dict(descriptor.result_format),
    )


_DESCRIPTOR_FIELDS = {f.name for f in fields(ToolDescriptor)}


class ToolRegistry:
    """Owns tool descriptors and pairwise incorporation rules.

    Construct one instance and hand it to the analyzer, router, interaction
    layer and orchestrator; there is no module-level registry.
    """

    def __init__(self, descriptors: Iterable[ToolDescriptor] = ()):
        self._tools: Dict[str, ToolDescriptor] = {}
        self._rules: Dict[Tuple[str, str], IncorporationRule] = {}
        for descriptor in descriptors:
            self.register(descriptor)

    # ── Descriptors ──────────────────────────────────────

    def register(self, descriptor: ToolDescriptor) -> ToolDescriptor:
        validated = validate_descriptor(descriptor)
        if validated.name in self._tools:
            raise DuplicateToolError(validated.name)
        self._tools[validated.name] = _snapshot(validated)
        logger.info(f"Registered tool: {validated.name} ({validated.level.value}/{validated.type.value})")
        return _snapshot(validated)

    def tool(
        self,
        name: str,
        description: str = "",
        level: ThinkingLevel = ThinkingLevel.FOUNDATION,
        type: ToolType = ToolType.ANALYSIS,
        params: Optional[Sequence[ToolParam]] = None,
        result: Optional[Sequence[ToolParam]] = None,
        examples: Optional[Sequence[ToolExample]] = None,
        tags: Optional[Sequence[str]] = None,
        priority: int = 50,
        version: str = "1.0.0",
        **extra,
    ):
        """Decorator to register a descriptor for a tool function.

        The function itself is returned unchanged; hand it to a handler table
        to make it executable.
        """
        def decorator(func):
            self.register(ToolDescriptor(
                name=name,
                description=description or (func.__doc__ or "").strip(),
                level=level,
                type=type,
                parameters={p.name: p for p in (params or [])},
                result_format={p.name: p for p in (result or [])},
                examples=list(examples or []),
                tags=list(tags or []),
                priority=priority,
                version=version,
                updated_at=extra.pop("updated_at", datetime.now().astimezone().isoformat()),
                **extra,
            ))
            return func
        return decorator

    def update(self, name: str, /, **changes) -> ToolDescriptor:
        current = self._tools.get(name)
        if current is None:
            raise NotFoundError(f"Tool not found: {name}")
        unknown = set(changes) - _DESCRIPTOR_FIELDS
        if unknown:
            raise ValidationError(f"Unknown descriptor fields: {', '.join(sorted(unknown))}")
        changes.pop("name", None)
        merged = validate_descriptor(replace(current, **changes))
        self._tools[name] = _snapshot(merged)
        logger.info(f"Updated tool: {name} ({', '.join(sorted(changes)) or 'no changes'})")
        return _snapshot(merged)

    def unregister(self, name: str) -> None:
        if name not in self._tools:
            raise NotFoundError(f"Tool not found: {name}")
        del self._tools[name]

        dropped = [key for key in self._rules if name in key]
        for key in dropped:
            del self._rules[key]
        for other in self._tools.values():
            if name in other.interacts_with:
                other.interacts_with.remove(name)
        logger.info(f"Unregistered tool: {name} (dropped {len(dropped)} incorporation rules)")

    def get(self, name: str) -> Optional[ToolDescriptor]:
        descriptor = self._tools.get(name)
        return _snapshot(descriptor) if descriptor else None

    def has(self, name: str) -> bool:
        return name in self._tools

    def names(self) -> List[str]:
        return list(self._tools)

    def all(self) -> List[ToolDescriptor]:
        return [_snapshot(d) for d in self._tools.values()]

    def by_level(self, level: ThinkingLevel) -> List[ToolDescriptor]:
        level = coerce_enum(ThinkingLevel, level, "level")
        return [_snapshot(d) for d in self._tools.values() if d.level == level]

    def interacts_with(self, name: str) -> List[str]:
        descriptor = self._tools.get(name)
        return list(descriptor.interacts_with) if descriptor else []

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def search(self, criteria: Optional[ToolSearchFilter] = None) -> List[ToolDescriptor]:
        """Return every descriptor matching all given filter dimensions."""
        c = criteria or ToolSearchFilter()
        level = coerce_enum(ThinkingLevel, c.level, "level") if c.level is not None else None
        tool_type = coerce_enum(ToolType, c.type, "type") if c.type is not None else None
        name_sub = c.name_substring.lower() if c.name_substring is not None else None
        desc_sub = c.description_substring.lower() if c.description_substring is not None else None

        matches = []
        for tool in self._tools.values():
            if level is not None and tool.level != level:
                continue
            if tool_type is not None and tool.type != tool_type:
                continue
            if not all(tag in tool.tags for tag in c.tags):
                continue
            if name_sub is not None and name_sub not in tool.name.lower():
                continue
            if desc_sub is not None and desc_sub not in tool.description.lower():
                continue
            if not all(other in tool.interacts_with for other in c.interacts_with):
                continue
            if c.min_priority is not None and tool.priority < c.min_priority:
                continue
            if c.max_priority is not None and tool.priority > c.max_priority:
                continue
            if c.experimental is not None and tool.experimental != c.experimental:
                continue
            if not all(plugin in tool.required_plugins for plugin in c.required_plugins):
                continue
            matches.append(_snapshot(tool))
        return matches

    # ── Incorporation rules ──────────────────────────────

    def register_incorporation_rule(
        self,
        source: str,
        target: str,
        merge: Optional[Callable[..., Any]] = None,
        conditions: Sequence[Predicate] = (),
    ) -> IncorporationRule:
        if source not in self._tools:
            raise NotFoundError(f"Source tool not found: {source}")
        if target not in self._tools:
            raise NotFoundError(f"Target tool not found: {target}")

        rule = IncorporationRule(source=source, target=target, merge=merge, conditions=list(conditions))
        self._rules[(source, target)] = rule

        source_tool, target_tool = self._tools[source], self._tools[target]
        if target not in source_tool.interacts_with:
            source_tool.interacts_with.append(target)
        if source not in target_tool.interacts_with:
            target_tool.interacts_with.append(source)

        logger.info(f"Registered incorporation rule: {source} -> {target}")
        return rule

    def get_incorporation_rule(self, source: str, target: str) -> Optional[IncorporationRule]:
        return self._rules.get((source, target))

    def unregister_incorporation_rule(self, source: str, target: str) -> None:
        if (source, target) not in self._rules:
            raise NotFoundError(f"Incorporation rule not found: {source} -> {target}")
        del self._rules[(source, target)]
        logger.info(f"Unregistered incorporation rule: {source} -> {target}")

    def rules_for(self, name: str, direction: str = "both") -> List[IncorporationRule]:
        if direction not in ("source", "target", "both"):
            raise ValidationError(f"direction must be 'source', 'target' or 'both' (got {direction!r})")
        rules = []
        for rule in self._rules.values():
            if direction in ("source", "both") and rule.source == name:
                rules.append(rule)
            elif direction in ("target", "both") and rule.target == name:
                rules.append(rule)
        return rules
