"""Descriptors of the standard thinking tools.

Only metadata lives here: the tools themselves are executed by whatever
handlers the host process registers under the same names.
"""
import logging
from typing import List, Sequence

from .registry import (
    ThinkingLevel,
    ToolDescriptor,
    ToolExample,
    ToolParam,
    ToolRegistry,
    ToolType,
)
from .router import MAIN_PARAMS

logger = logging.getLogger(__name__)

CATALOG_VERSION = "1.0.0"
CATALOG_UPDATED_AT = "2025-01-15T00:00:00+00:00"

# name, description, level, type, tags, priority, interacts_with
_STANDARD_TOOLS = (
    ("first_thought_advisor",
     "Recommends which thinking approach or mental model to start with for a problem",
     ThinkingLevel.META, ToolType.DECISION, ("advisor", "entry-point"), 90, ()),
    ("mental_model",
     "Applies a named mental model (first principles, inversion, Pareto ...) to a problem",
     ThinkingLevel.FOUNDATION, ToolType.ANALYSIS, ("mental-model", "reasoning"), 70, ()),
    ("sequential_thinking",
     "Works through a problem as an ordered, revisable chain of thoughts",
     ThinkingLevel.FOUNDATION, ToolType.STRUCTURING, ("sequential", "reasoning"), 70, ()),
    ("brainstorming",
     "Runs a phased brainstorming session that generates and refines ideas",
     ThinkingLevel.FOUNDATION, ToolType.GENERATION, ("ideas", "creative"), 60, ()),
    ("debugging_approach",
     "Guides systematic debugging with approaches such as binary search or cause elimination",
     ThinkingLevel.FOUNDATION, ToolType.ANALYSIS, ("debugging", "problem-solving"), 60, ()),
    ("stochastic_algorithm",
     "Frames decisions under uncertainty with MDPs, MCTS, bandits and Bayesian optimization",
     ThinkingLevel.FOUNDATION, ToolType.DECISION, ("probability", "decision"), 50, ()),
    ("feature_discussion",
     "Collects and structures requirements through a guided discussion of a feature",
     ThinkingLevel.SPECIALIZED, ToolType.STRUCTURING, ("feature", "requirements"), 55,
     ("brainstorming",)),
    ("feature_analyzer",
     "Analyzes a feature for technical feasibility, implementation effort and risk",
     ThinkingLevel.SPECIALIZED, ToolType.ANALYSIS, ("feature", "feasibility"), 55,
     ("feature_discussion", "mental_model")),
    ("architecture_advisor",
     "Recommends and evaluates architecture for a feature based on its requirements",
     ThinkingLevel.SPECIALIZED, ToolType.DECISION, ("architecture", "design"), 55,
     ("feature_analyzer",)),
    ("thought_orchestrator",
     "Combines the output of several thinking tools into one integrated conclusion",
     ThinkingLevel.INTEGRATED, ToolType.ORCHESTRATION, ("integration", "synthesis"), 40,
     ("sequential_thinking", "mental_model")),
)


def _describe(name: str, description: str, level: ThinkingLevel, tool_type: ToolType,
              tags: Sequence[str], priority: int, interacts_with: Sequence[str]) -> ToolDescriptor:
    main = MAIN_PARAMS.get(name, "query")
    return ToolDescriptor(
        name=name,
        description=description,
        level=level,
        type=tool_type,
        parameters={
            main: ToolParam(main, "string", f"Subject the {name} tool works on"),
            "context": ToolParam("context", "object", "Additional context", required=False),
        },
        result_format={
            "summary": ToolParam("summary", "string", "Outcome of the tool"),
            "processing_complete": ToolParam(
                "processing_complete", "boolean", "Whether no further step is needed", required=False,
            ),
        },
        examples=[ToolExample(
            name=f"{name}-basic",
            description=f"Minimal {name} call",
            input={main: "How should we cache API responses?"},
        )],
        tags=list(tags),
        priority=priority,
        interacts_with=list(interacts_with),
        version=CATALOG_VERSION,
        updated_at=CATALOG_UPDATED_AT,
    )


def standard_descriptors() -> List[ToolDescriptor]:
    return [_describe(*row) for row in _STANDARD_TOOLS]


def register_standard_tools(registry: ToolRegistry) -> List[str]:
    """Register every standard descriptor not already present; returns the names added."""
    added = []
    for descriptor in standard_descriptors():
        if registry.has(descriptor.name):
            continue
        registry.register(descriptor)
        added.append(descriptor.name)
    logger.info(f"Registered {len(added)} standard thinking tools")
    return added
