"""AnnotationRegistry 테스트."""

from dataclasses import dataclass, field

import pytest

from docblock_reader.errors import RegistrationError
from docblock_reader.mapping import OrderBy, Relationship, Table
from docblock_reader.resolution.registry import AnnotationRegistry, normalize_name


class Route:
    name: str = ""

    def __init__(self, path, methods=None):
        self.path = path
        self.methods = methods or []


@dataclass
class Cache:
    region: str
    lifetime: int = 0
    tags: list = field(default_factory=list)


class HiddenSetter:
    def _set_secret(self, value):
        self.secret = value


@pytest.fixture
def empty_registry() -> AnnotationRegistry:
    return AnnotationRegistry()


class TestSchemaDerivation:
    def test_pydantic_model(self, empty_registry):
        schema = empty_registry.register("Vendor\\Relationship", Relationship)

        assert schema.required == ["relationship_type"]
        assert "mapped_by" in schema.fields
        assert "child_class_name" not in schema.fields
        assert schema.setters == {"child_class_name": "set_child_class_name"}
        assert schema.positional_field == "relationship_type"
        assert schema.privileged is False

    def test_pydantic_model_without_required_fields(self, empty_registry):
        schema = empty_registry.register("Vendor\\Table", Table)

        assert schema.required == []
        assert schema.fields == ["name", "repository_class_name"]
        assert schema.positional_field is None

    def test_single_required_field_is_positional(self, empty_registry):
        assert empty_registry.register("Vendor\\OrderBy", OrderBy).positional_field == "order_by"

    def test_dataclass(self, empty_registry):
        schema = empty_registry.register("Vendor\\Cache", Cache)

        assert schema.required == ["region"]
        assert schema.fields == ["region", "lifetime", "tags"]

    def test_plain_class_signature(self, empty_registry):
        schema = empty_registry.register("Vendor\\Route", Route)

        assert schema.required == ["path"]
        assert schema.fields == ["path", "methods", "name"]

    def test_explicit_schema_overrides_derivation(self, empty_registry):
        schema = empty_registry.register(
            "Vendor\\Route",
            Route,
            required=[],
            fields=["path", "methods"],
            positional="path",
            privileged=True,
        )

        assert schema.required == []
        assert schema.fields == ["path", "methods"]
        assert schema.positional_field == "path"
        assert schema.privileged is True

    def test_setter_list_uses_prefix(self, empty_registry):
        schema = empty_registry.register("Vendor\\Relationship", Relationship, setters=["child_class_name"])

        assert schema.setters == {"child_class_name": "set_child_class_name"}


class TestRegistrationErrors:
    def test_empty_name(self, empty_registry):
        with pytest.raises(RegistrationError):
            empty_registry.register("  ", Table)

    def test_factory_must_be_callable(self, empty_registry):
        with pytest.raises(RegistrationError):
            empty_registry.register("Vendor\\Nothing", "not callable")

    def test_unknown_required_parameter(self, empty_registry):
        with pytest.raises(RegistrationError) as exc_info:
            empty_registry.register("Vendor\\Route", Route, required=["path", "verb"])

        assert exc_info.value.context["parameters"] == ["verb"]

    def test_missing_setter(self, empty_registry):
        with pytest.raises(RegistrationError):
            empty_registry.register("Vendor\\Table", Table, setters={"name": "set_name"})

    def test_private_setter(self, empty_registry):
        with pytest.raises(RegistrationError):
            empty_registry.register("Vendor\\Hidden", HiddenSetter, setters={"secret": "_set_secret"})

    def test_positional_field_must_exist(self, empty_registry):
        with pytest.raises(RegistrationError):
            empty_registry.register("Vendor\\Table", Table, positional="missing")


class TestLookup:
    def test_leading_backslash_is_ignored(self, empty_registry):
        empty_registry.register("\\Vendor\\Table", Table)

        assert "Vendor\\Table" in empty_registry
        assert "\\Vendor\\Table" in empty_registry
        assert empty_registry.get("\\Vendor\\Table").name == "Vendor\\Table"
        assert empty_registry.names() == ["Vendor\\Table"]
        assert len(empty_registry) == 1

    def test_unknown_name(self, empty_registry):
        assert empty_registry.get("Vendor\\Unknown") is None
        assert "Vendor\\Unknown" not in empty_registry
        assert 42 not in empty_registry


class TestMatching:
    def test_match_order(self, empty_registry):
        schema = empty_registry.register("Vendor\\Relationship", Relationship)

        assert schema.match_field("mapped_by") == "mapped_by"
        assert schema.match_field("MAPPED_BY") == "mapped_by"
        assert schema.match_field("mappedBy") == "mapped_by"
        assert schema.match_field("unknown") is None
        assert schema.match_setter("childClassName") == "set_child_class_name"

    def test_match_required_returns_attribute_key(self, empty_registry):
        schema = empty_registry.register("Vendor\\Relationship", Relationship)

        assert schema.match_required("relationship_type", {"relationshipType": "x"}) == "relationshipType"
        assert schema.match_required("relationship_type", {"other": "x"}) is None

    def test_exact_match_wins(self, empty_registry):
        schema = empty_registry.register("Vendor\\Cache", Cache, fields=["Region", "region"])

        assert schema.match_field("region") == "region"

    def test_normalize_name(self):
        assert normalize_name("childClassName") == normalize_name("child_class_name") == "childclassname"
