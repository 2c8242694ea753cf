"""Shared fixtures: descriptor factory, registry, handler table, dispatch layer."""
import pytest

from thoughtcore.config import Settings
from thoughtcore.orchestrator import ThoughtOrchestrator
from thoughtcore.tools.executor import ToolHandlerTable, ToolInteractionLayer
from thoughtcore.tools.registry import (
    ThinkingLevel,
    ToolDescriptor,
    ToolExample,
    ToolParam,
    ToolRegistry,
    ToolType,
)


def make_descriptor(name="sample_tool", **overrides) -> ToolDescriptor:
    fields = dict(
        name=name,
        description=f"{name} description",
        level=ThinkingLevel.FOUNDATION,
        type=ToolType.ANALYSIS,
        parameters={"query": ToolParam("query", "string", "What to think about")},
        result_format={"summary": ToolParam("summary", "string", "Outcome")},
        examples=[ToolExample(name="basic", input={"query": "hello"})],
        tags=["test"],
        priority=50,
        version="1.0.0",
        updated_at="2025-01-15T10:00:00Z",
    )
    fields.update(overrides)
    return ToolDescriptor(**fields)


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def registry():
    return ToolRegistry()


@pytest.fixture
def handlers():
    return ToolHandlerTable()


@pytest.fixture
def layer(registry, handlers, settings):
    return ToolInteractionLayer(registry, handlers, settings)


@pytest.fixture
def orchestrator(registry, handlers, settings):
    return ThoughtOrchestrator(registry, handlers, settings)


@pytest.fixture
def make_tool():
    """Factory for valid descriptors; keyword overrides replace fields."""
    return make_descriptor
