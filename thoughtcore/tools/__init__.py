"""Tool system: registry, analyzer, router, interaction layer, incorporation."""
from .registry import (
    IncorporationRule,
    ThinkingLevel,
    ToolCondition,
    ToolDescriptor,
    ToolExample,
    ToolLimits,
    ToolParam,
    ToolRegistry,
    ToolSearchFilter,
    ToolType,
)
from .conditions import Predicate, expression
from .analyzer import RequestAnalysis, RequestAnalyzer, ToolScore
from .router import RoutingDecision, RoutingOptions, ThoughtRouter
from .executor import (
    CallOptions,
    IncorporationMode,
    IncorporationOptions,
    ResultCache,
    ToolHandlerTable,
    ToolInteractionLayer,
    ToolResult,
)
from .incorporation import IncorporationBatch, IncorporationRecord, IncorporationSystem
from .catalog import register_standard_tools, standard_descriptors
