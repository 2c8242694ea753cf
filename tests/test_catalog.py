"""Tests for tools/catalog.py: standard descriptors."""
from thoughtcore.tools.catalog import register_standard_tools, standard_descriptors
from thoughtcore.tools.registry import ThinkingLevel
from thoughtcore.tools.router import MAIN_PARAMS


class TestStandardTools:
    def test_all_register(self, registry):
        added = register_standard_tools(registry)
        assert len(added) == len(standard_descriptors())
        assert registry.names() == added

    def test_existing_names_left_alone(self, registry, make_tool):
        registry.register(make_tool("mental_model", description="custom"))
        added = register_standard_tools(registry)
        assert "mental_model" not in added
        assert registry.get("mental_model").description == "custom"

    def test_idempotent(self, registry):
        register_standard_tools(registry)
        assert register_standard_tools(registry) == []

    def test_main_param_in_schema(self):
        for descriptor in standard_descriptors():
            assert MAIN_PARAMS[descriptor.name] in descriptor.parameters

    def test_relationships_point_at_catalog_tools(self):
        names = {d.name for d in standard_descriptors()}
        for descriptor in standard_descriptors():
            assert set(descriptor.interacts_with) <= names

    def test_orchestrator_tool_is_integrated(self, registry):
        register_standard_tools(registry)
        assert [d.name for d in registry.by_level(ThinkingLevel.INTEGRATED)] == ["thought_orchestrator"]
