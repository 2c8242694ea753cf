"""Tests for tools/registry.py: validation, cascade removal, search, incorporation rules."""
import pytest

from thoughtcore.errors import DuplicateToolError, NotFoundError, ValidationError
from thoughtcore.tools.registry import (
    ThinkingLevel,
    ToolParam,
    ToolRegistry,
    ToolSearchFilter,
    ToolType,
    validate_descriptor,
)


class TestValidation:
    def test_valid_descriptor(self, make_tool):
        d = validate_descriptor(make_tool())
        assert d.level is ThinkingLevel.FOUNDATION

    def test_string_level_and_type_coerced(self, make_tool):
        d = validate_descriptor(make_tool(level="specialized", type="decision"))
        assert d.level is ThinkingLevel.SPECIALIZED
        assert d.type is ToolType.DECISION

    @pytest.mark.parametrize("overrides, message", [
        ({"name": ""}, "name is missing"),
        ({"description": ""}, "description is missing"),
        ({"level": "expert"}, "level must be one of"),
        ({"type": "chatting"}, "type must be one of"),
        ({"parameters": {}}, "parameter schema"),
        ({"result_format": {}}, "result schema"),
        ({"examples": []}, "usage example"),
        ({"tags": []}, "tag"),
        ({"priority": 101}, "between 0 and 100"),
        ({"priority": -1}, "between 0 and 100"),
        ({"priority": 50.5}, "must be an integer"),
        ({"priority": True}, "must be an integer"),
        ({"version": "1.0"}, "semver"),
        ({"version": "v1.0.0"}, "semver"),
        ({"updated_at": "yesterday"}, "ISO timestamp"),
    ])
    def test_first_violation_reported(self, make_tool, overrides, message):
        with pytest.raises(ValidationError, match=message):
            validate_descriptor(make_tool(**overrides))

    def test_invalid_param_type(self, make_tool):
        tool = make_tool(parameters={"q": ToolParam("q", "text")})
        with pytest.raises(ValidationError, match="invalid type"):
            validate_descriptor(tool)

    def test_first_rule_wins(self, make_tool):
        with pytest.raises(ValidationError, match="description"):
            validate_descriptor(make_tool(description="", tags=[], version="bad"))


class TestRegister:
    def test_register_and_get(self, registry, make_tool):
        registry.register(make_tool("alpha"))
        assert registry.has("alpha")
        assert registry.get("alpha").name == "alpha"
        assert registry.names() == ["alpha"]

    def test_duplicate_keeps_first(self, registry, make_tool):
        registry.register(make_tool("alpha", description="first"))
        with pytest.raises(DuplicateToolError):
            registry.register(make_tool("alpha", description="second"))
        assert len(registry) == 1
        assert registry.get("alpha").description == "first"

    def test_invalid_not_stored(self, registry, make_tool):
        with pytest.raises(ValidationError):
            registry.register(make_tool("alpha", tags=[]))
        assert "alpha" not in registry

    def test_get_returns_snapshot(self, registry, make_tool):
        registry.register(make_tool("alpha"))
        snapshot = registry.get("alpha")
        snapshot.tags.append("mutated")
        snapshot.interacts_with.append("ghost")
        assert registry.get("alpha").tags == ["test"]
        assert registry.get("alpha").interacts_with == []

    def test_get_unknown(self, registry):
        assert registry.get("nope") is None

    def test_constructor_registers(self, make_tool):
        registry = ToolRegistry([make_tool("a"), make_tool("b")])
        assert registry.names() == ["a", "b"]

    def test_decorator_validates(self, registry):
        decorate = registry.tool(
            "summarizer",
            level=ThinkingLevel.SPECIALIZED,
            params=[ToolParam("text", "string", "Text to summarize")],
            result=[ToolParam("summary", "string")],
            examples=[],
            tags=["text"],
        )

        def summarize(params):
            """Summarizes text"""
            return params

        with pytest.raises(ValidationError, match="usage example"):
            decorate(summarize)
        assert "summarizer" not in registry

    def test_decorator_registers_descriptor(self, registry, make_tool):
        example = make_tool().examples[0]

        @registry.tool(
            "summarizer",
            params=[ToolParam("text", "string")],
            result=[ToolParam("summary", "string")],
            examples=[example],
            tags=["text"],
        )
        def summarize(params):
            """Summarizes text"""
            return params

        d = registry.get("summarizer")
        assert d.description == "Summarizes text"
        assert list(d.parameters) == ["text"]
        assert summarize({"x": 1}) == {"x": 1}


class TestUpdate:
    def test_update_fields(self, registry, make_tool):
        registry.register(make_tool("alpha"))
        updated = registry.update("alpha", priority=80, tags=["new"])
        assert updated.priority == 80
        assert registry.get("alpha").tags == ["new"]

    def test_invalid_update_not_committed(self, registry, make_tool):
        registry.register(make_tool("alpha"))
        with pytest.raises(ValidationError):
            registry.update("alpha", priority=500)
        assert registry.get("alpha").priority == 50

    def test_name_cannot_change(self, registry, make_tool):
        registry.register(make_tool("alpha"))
        registry.update("alpha", name="beta", priority=10)
        assert registry.has("alpha")
        assert not registry.has("beta")

    def test_partial_with_name(self, registry, make_tool):
        registry.register(make_tool("alpha"))
        partial = {"name": "alpha", "description": "renamed in place"}
        updated = registry.update("alpha", **partial)
        assert updated.name == "alpha"
        assert registry.get("alpha").description == "renamed in place"

    def test_unknown_field(self, registry, make_tool):
        registry.register(make_tool("alpha"))
        with pytest.raises(ValidationError, match="Unknown"):
            registry.update("alpha", colour="blue")

    def test_unknown_tool(self, registry):
        with pytest.raises(NotFoundError):
            registry.update("ghost", priority=1)


class TestUnregister:
    def test_cascades_rules_and_relationships(self, registry, make_tool):
        for name in ("a", "b", "c"):
            registry.register(make_tool(name))
        registry.register_incorporation_rule("a", "b")
        registry.register_incorporation_rule("c", "a")
        registry.register_incorporation_rule("b", "c")

        registry.unregister("a")

        assert registry.get_incorporation_rule("a", "b") is None
        assert registry.get_incorporation_rule("c", "a") is None
        assert registry.get_incorporation_rule("b", "c") is not None
        assert "a" not in registry.get("b").interacts_with
        assert "a" not in registry.get("c").interacts_with
        assert registry.rules_for("a") == []

    def test_unknown(self, registry):
        with pytest.raises(NotFoundError):
            registry.unregister("ghost")


class TestSearch:
    @pytest.fixture
    def populated(self, registry, make_tool):
        registry.register(make_tool("mental_model", tags=["model", "reasoning"], priority=70))
        registry.register(make_tool(
            "feature_analyzer", level=ThinkingLevel.SPECIALIZED, type=ToolType.DECISION,
            tags=["feature"], priority=40, interacts_with=["mental_model"],
            description="Checks technical feasibility",
        ))
        registry.register(make_tool(
            "lab_tool", tags=["model"], priority=10, experimental=True, required_plugins=["gpu", "net"],
        ))
        return registry

    def names(self, tools):
        return [t.name for t in tools]

    def test_no_filter_returns_all_in_order(self, populated):
        assert self.names(populated.search()) == ["mental_model", "feature_analyzer", "lab_tool"]

    def test_level(self, populated):
        assert self.names(populated.search(ToolSearchFilter(level=ThinkingLevel.SPECIALIZED))) == ["feature_analyzer"]

    def test_level_as_string(self, populated):
        assert self.names(populated.search(ToolSearchFilter(level="specialized"))) == ["feature_analyzer"]

    def test_type(self, populated):
        assert self.names(populated.search(ToolSearchFilter(type=ToolType.DECISION))) == ["feature_analyzer"]

    def test_all_tags_required(self, populated):
        assert self.names(populated.search(ToolSearchFilter(tags=["model"]))) == ["mental_model", "lab_tool"]
        assert self.names(populated.search(ToolSearchFilter(tags=["model", "reasoning"]))) == ["mental_model"]

    def test_substrings_case_insensitive(self, populated):
        assert self.names(populated.search(ToolSearchFilter(name_substring="MODEL"))) == ["mental_model"]
        assert self.names(populated.search(ToolSearchFilter(description_substring="feasib"))) == ["feature_analyzer"]

    def test_interacts_with(self, populated):
        f = ToolSearchFilter(interacts_with=["mental_model"])
        assert self.names(populated.search(f)) == ["feature_analyzer"]

    def test_priority_range(self, populated):
        f = ToolSearchFilter(min_priority=20, max_priority=60)
        assert self.names(populated.search(f)) == ["feature_analyzer"]

    def test_experimental(self, populated):
        assert self.names(populated.search(ToolSearchFilter(experimental=True))) == ["lab_tool"]
        assert "lab_tool" not in self.names(populated.search(ToolSearchFilter(experimental=False)))

    def test_required_plugins(self, populated):
        assert self.names(populated.search(ToolSearchFilter(required_plugins=["gpu"]))) == ["lab_tool"]
        assert populated.search(ToolSearchFilter(required_plugins=["gpu", "tpu"])) == []

    def test_combined_filters_are_anded(self, populated):
        f = ToolSearchFilter(tags=["model"], experimental=False)
        assert self.names(populated.search(f)) == ["mental_model"]

    def test_repeatable(self, populated):
        f = ToolSearchFilter(tags=["model"])
        assert self.names(populated.search(f)) == self.names(populated.search(f))

    def test_by_level(self, populated):
        assert [d.name for d in populated.by_level("foundation")] == ["mental_model", "lab_tool"]


class TestIncorporationRules:
    def test_rule_requires_registered_tools(self, registry, make_tool):
        registry.register(make_tool("a"))
        with pytest.raises(NotFoundError, match="Target"):
            registry.register_incorporation_rule("a", "ghost")
        with pytest.raises(NotFoundError, match="Source"):
            registry.register_incorporation_rule("ghost", "a")

    def test_rule_makes_relationship_symmetric(self, registry, make_tool):
        registry.register(make_tool("a"))
        registry.register(make_tool("b", interacts_with=["a"]))
        registry.register_incorporation_rule("a", "b")
        assert registry.get("a").interacts_with == ["b"]
        assert registry.get("b").interacts_with == ["a"]

    def test_rule_lookup_and_removal(self, registry, make_tool):
        registry.register(make_tool("a"))
        registry.register(make_tool("b"))

        def merge(target, sources, context):
            return target

        registry.register_incorporation_rule("a", "b", merge=merge)
        assert registry.get_incorporation_rule("a", "b").merge is merge
        assert registry.get_incorporation_rule("b", "a") is None

        registry.unregister_incorporation_rule("a", "b")
        assert registry.get_incorporation_rule("a", "b") is None
        with pytest.raises(NotFoundError):
            registry.unregister_incorporation_rule("a", "b")

    def test_rules_for_direction(self, registry, make_tool):
        for name in ("a", "b", "c"):
            registry.register(make_tool(name))
        registry.register_incorporation_rule("a", "b")
        registry.register_incorporation_rule("c", "a")

        assert [(r.source, r.target) for r in registry.rules_for("a", "source")] == [("a", "b")]
        assert [(r.source, r.target) for r in registry.rules_for("a", "target")] == [("c", "a")]
        assert len(registry.rules_for("a")) == 2
        with pytest.raises(ValidationError):
            registry.rules_for("a", "sideways")
