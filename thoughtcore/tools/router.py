"""Thought router: turns an analyzed request into a concrete tool choice.

A routing decision is always produced: forced tools pass straight through,
weak candidates fall back to the best one available, and an empty candidate
list falls back to the configured advisor tool.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from ..config import Settings, settings as default_settings
from .analyzer import RequestAnalysis, RequestAnalyzer, ToolScore
from .registry import ThinkingLevel, ToolDescriptor, ToolRegistry, coerce_enum

logger = logging.getLogger(__name__)

# Parameter a bare-string request is wrapped under, per tool.
MAIN_PARAMS: Dict[str, str] = {
    "first_thought_advisor": "problem",
    "mental_model": "problem",
    "sequential_thinking": "thought",
    "thought_foundation": "problem",
    "feature_discussion": "title",
    "debugging_approach": "issue",
    "stochastic_algorithm": "problem",
    "brainstorming": "topic",
    "critical_analysis": "ideas",
    "decision_making": "problem",
    "feature_analyzer": "featureId",
    "thought_orchestrator": "problem",
    "cognitive_strategy": "problem",
    "reflection_engine": "thinkingProcess",
    "architecture_advisor": "featureId",
}


@dataclass
class RoutingOptions:
    force_tool: Optional[str] = None
    preferred_level: Optional[ThinkingLevel] = None
    min_confidence: Optional[float] = None
    max_recommendations: Optional[int] = None
    context: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RoutingDecision:
    tool: str
    params: Any
    confidence: float
    alternatives: Optional[List[ToolScore]] = None
    descriptor: Optional[ToolDescriptor] = None
    analysis: Optional[RequestAnalysis] = None


class ThoughtRouter:
    def __init__(
        self,
        registry: ToolRegistry,
        analyzer: Optional[RequestAnalyzer] = None,
        settings: Optional[Settings] = None,
        main_params: Optional[Mapping[str, str]] = None,
    ):
        self.registry = registry
        self.settings = settings or default_settings
        self.analyzer = analyzer or RequestAnalyzer(registry, self.settings)
        self.main_params = dict(MAIN_PARAMS if main_params is None else main_params)

    def route(self, request: Any, options: Optional[RoutingOptions] = None) -> RoutingDecision:
        options = options or RoutingOptions()

        if options.force_tool:
            # Not checked against the registry; an unknown tool fails at execution time.
            logger.info(f"Routing forced -> {options.force_tool}")
            return RoutingDecision(
                tool=options.force_tool,
                params=request,
                confidence=1.0,
                descriptor=self.registry.get(options.force_tool),
            )

        analysis = self.analyzer.analyze(request, options.context)
        selected = self.select(analysis, options)
        decision = RoutingDecision(
            tool=selected.tool,
            params=self.transform_params(request, selected.tool),
            confidence=selected.confidence,
            descriptor=self.registry.get(selected.tool),
            analysis=analysis,
        )

        if len(analysis.recommended_tools) > 1:
            max_recs = options.max_recommendations or self.settings.max_recommendations
            decision.alternatives = [
                s for s in analysis.recommended_tools if s.tool != selected.tool
            ][:max(0, max_recs - 1)]

        logger.info(
            f"Routed -> {decision.tool} (confidence={decision.confidence:.2f}, "
            f"type={analysis.type}, complexity={analysis.complexity})"
        )
        return decision

    def select(self, analysis: RequestAnalysis, options: RoutingOptions) -> ToolScore:
        candidates = analysis.recommended_tools
        if not candidates:
            logger.info(f"No candidate tools, falling back to {self.settings.fallback_tool}")
            return ToolScore(tool=self.settings.fallback_tool, confidence=self.settings.fallback_confidence)

        threshold = options.min_confidence
        if threshold is None:
            threshold = self.settings.min_confidence
        valid = [c for c in candidates if c.confidence >= threshold]
        if not valid:
            return candidates[0]

        if options.preferred_level is not None:
            preferred = coerce_enum(ThinkingLevel, options.preferred_level, "level").canonical
            for candidate in valid:
                descriptor = self.registry.get(candidate.tool)
                if descriptor and descriptor.level.canonical == preferred:
                    return candidate

        return valid[0]

    def main_param(self, tool_name: str) -> str:
        return self.main_params.get(tool_name, self.settings.default_main_param)

    def transform_params(self, request: Any, tool_name: str) -> Any:
        """Wrap a bare string under the tool's main parameter; mappings pass through."""
        if isinstance(request, str):
            return {self.main_param(tool_name): request}
        return request
