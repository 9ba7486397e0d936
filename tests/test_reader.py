"""AnnotationReader 통합 테스트 (tree-sitter로 인덱싱한 PHP 소스 사용)."""

from unittest.mock import MagicMock

import pytest

from conftest import Inner, Outer, Param, annotation_type_name

from docblock_reader.config import ReaderSettings
from docblock_reader.errors import HostDeclarationNotFound, MissingRequiredAttribute
from docblock_reader.mapping import Column, OrderBy, Relationship, Table, qualified_name
from docblock_reader.models import DeclarationKey, GenericAnnotation
from docblock_reader.parsing.tokenizer import DocblockTokenizer
from docblock_reader.reader import AnnotationReader

USER = "App\\Entity\\User"
NATIVE = "App\\Native\\NativeEntity"


class TestClassAnnotations:
    def test_typed_annotation(self, reader):
        table = reader.get_class_annotation(USER, qualified_name(Table))

        assert table == Table(name="users", repository_class_name="UserRepository")

    def test_lookup_by_written_alias(self, reader):
        assert reader.get_class_annotation(USER, "Map\\Table") == reader.get_class_annotation(USER, qualified_name(Table))

    def test_nested_child_is_substituted(self, reader):
        outer = reader.get_class_annotation(USER, annotation_type_name("Outer"))

        assert isinstance(outer, Outer)
        assert outer.inner == Inner(x=1)
        assert outer.label == "outer"

    def test_generic_annotation(self, reader):
        package = reader.get_class_annotation(USER, "package")

        assert isinstance(package, GenericAnnotation)
        assert package.type == "App\\Entity"
        assert package.key == DeclarationKey(class_name=USER)

    def test_all_annotations_keyed_by_resolved_name(self, reader):
        annotations = reader.resolve_all_for_declaration(DeclarationKey(class_name=USER))

        assert list(annotations) == ["package", qualified_name(Table), annotation_type_name("Outer")]

    def test_flat_list(self, reader):
        annotations = reader.get_class_annotations(USER)

        assert [type(a) for a in annotations] == [GenericAnnotation, Table, Outer]

    def test_missing_annotation(self, reader):
        assert reader.get_class_annotation(USER, "Nope\\Missing") is None
        assert reader.last_error_message == ""


class TestPropertyAnnotations:
    def test_generic_and_typed_side_by_side(self, reader):
        var = reader.get_property_annotation(USER, "id", "var")
        column = reader.get_property_annotation(USER, "$id", qualified_name(Column))

        assert (var.type, var.variable, var.comment) == ("int", "$id", "The primary key")
        assert column == Column(name="id", type="int", is_primary_key=True)

    def test_aliased_type_with_setter_and_positional_value(self, reader):
        relationship = reader.get_property_annotation(USER, "addresses", qualified_name(Relationship))
        order_by = reader.get_property_annotation(USER, "addresses", qualified_name(OrderBy))

        assert relationship.relationship_type == Relationship.ONE_TO_MANY
        assert relationship.lazy_load is True
        assert relationship.get_child_class_name() == "Address"
        assert order_by == OrderBy(order_by=["street", "city"])

    def test_inherited_member(self, reader):
        var = reader.get_property_annotation(USER, "createdAt", "var")

        assert var.type.endswith("DateTimeImmutable")
        assert var.key.class_name == "App\\Entity\\BaseEntity"

    def test_attributes_read(self, reader):
        reader.get_property_annotation(USER, "id", qualified_name(Column))

        read = reader.get_attributes_read(USER, "p:id", qualified_name(Column))

        assert read == {"name": "id", "type": "int", "isPrimaryKey": True}
        assert reader.get_attributes_read(USER, "p:id", qualified_name(Table)) == {}


class TestMethodAnnotations:
    def test_repeated_annotations_preserve_source_order(self, reader):
        params = reader.get_method_annotation(USER, "update", annotation_type_name("Param"))

        assert params == [Param(name="a"), Param(name="b"), Param(name="c")]

    def test_repeated_generics(self, reader):
        annotations = reader.get_method_annotations(USER, "update")

        assert len(annotations) == 4
        assert annotations[-1].name == "return"
        assert annotations[-1].type == "void"

    def test_inherited_method(self, reader):
        param = reader.get_method_annotation(USER, "touch", "param")

        assert (param.type, param.variable, param.comment) == ("string", "$reason", "Why it was touched")


class TestNativeAttributes:
    def test_class_attribute(self, reader):
        table = reader.get_class_annotation(NATIVE, qualified_name(Table))

        assert table == Table(name="native", repository_class_name="NativeRepository")

    def test_attributes_replace_docblock(self, reader):
        column = reader.get_property_annotation(NATIVE, "name", qualified_name(Column))
        order_by = reader.get_property_annotation(NATIVE, "name", qualified_name(OrderBy))

        assert column == Column(name="n", nullable=True, length=32)
        assert order_by == OrderBy(order_by={"one": "asc", "two": "desc"})

    def test_unregistered_attribute_is_generic(self, reader):
        params = reader.get_method_annotation(NATIVE, "rename", "param")

        assert [(p.type, p.variable, p.comment) for p in params] == [
            ("string", "$someArg", None),
            ("Address", "$address", "With a comment"),
        ]


class TestFailurePolicy:
    def test_non_privileged_failure_records_last_error(self, reader):
        strict = reader.get_property_annotation(USER, "loose", annotation_type_name("Strict"))

        assert strict is None
        assert "code" in reader.last_error_message
        assert isinstance(reader.get_property_annotation(USER, "loose", "Strict"), GenericAnnotation)

    def test_successful_lookup_clears_last_error(self, reader):
        reader.get_property_annotation(USER, "loose", annotation_type_name("Strict"))
        assert reader.last_error_message != ""

        var = reader.get_property_annotation(USER, "id", "var")

        assert var.type == "int"
        assert reader.last_error_message == ""

    def test_enumeration_clears_last_error(self, reader):
        reader.get_property_annotation(USER, "loose", annotation_type_name("Strict"))

        reader.get_class_annotations(USER)

        assert reader.last_error_message == ""

    def test_privileged_failure_propagates_in_silent_mode(self, reader):
        with pytest.raises(MissingRequiredAttribute) as exc_info:
            reader.get_property_annotation(USER, "broken", qualified_name(Relationship))

        assert exc_info.value.parameter == "relationship_type"
        assert exc_info.value.privileged is True

    def test_privileged_failure_recorded_when_fully_silent(self, reader):
        reader.set_throw_exceptions(False, privileged=False)

        assert reader.get_property_annotation(USER, "broken", qualified_name(Relationship)) is None
        assert reader.get_property_annotations(USER, "broken") == []
        assert "relationship_type" in reader.last_error_message

    @pytest.mark.parametrize("general, privileged", [(False, False), (False, True), (True, True)])
    def test_unknown_class_is_always_raised(self, reader, general, privileged):
        reader.set_throw_exceptions(general, privileged)

        with pytest.raises(HostDeclarationNotFound):
            reader.get_class_annotation("App\\Entity\\Ghost", qualified_name(Table))
        with pytest.raises(HostDeclarationNotFound):
            reader.resolve_all_for_declaration(DeclarationKey(class_name="App\\Entity\\Ghost"))
        assert "App\\Entity\\Ghost" in reader.last_error_message

    def test_unknown_member_is_always_raised(self, reader):
        reader.set_throw_exceptions(False, privileged=False)

        with pytest.raises(HostDeclarationNotFound):
            reader.get_property_annotation(USER, "ghost", "var")
        with pytest.raises(HostDeclarationNotFound):
            reader.get_method_annotations(USER, "ghost")
        with pytest.raises(HostDeclarationNotFound):
            reader.resolve_for_declaration(DeclarationKey(class_name=USER, kind="method", member="ghost"), "x")
        assert "ghost" in reader.last_error_message


class TestUnqualifiedUpgrade:
    def test_generic_is_upgraded_when_requested_by_qualified_name(self, reader):
        generic = reader.get_property_annotation(USER, "nickname", "Column")
        column = reader.get_property_annotation(USER, "nickname", qualified_name(Column))

        assert isinstance(generic, GenericAnnotation)
        assert column == Column(name="nickname")

    def test_upgrade_is_cached_under_requested_name(self, reader):
        first = reader.get_property_annotation(USER, "nickname", qualified_name(Column))
        second = reader.get_property_annotation(USER, "nickname", qualified_name(Column))

        assert first is second
        key = DeclarationKey(class_name=USER, kind="property", member="nickname")
        assert set(reader.resolve_all_for_declaration(key)) == {"Column", qualified_name(Column)}


class TestCaching:
    def test_repeated_resolution_is_idempotent_and_tokenizes_once(self, source_index, registry):
        tokenizer = MagicMock(wraps=DocblockTokenizer())
        reader = AnnotationReader(source_index, registry, tokenizer=tokenizer)

        first = reader.get_property_annotation(USER, "id", qualified_name(Column))
        second = reader.get_property_annotation(USER, "id", qualified_name(Column))
        reader.get_property_annotation(USER, "id", "var")

        assert first == second
        assert tokenizer.tokenize.call_count == 1

    def test_type_name_attributes_clear_resolved_cache_only(self, source_index, registry):
        tokenizer = MagicMock(wraps=DocblockTokenizer())
        reader = AnnotationReader(source_index, registry, tokenizer=tokenizer)

        before = reader.get_property_annotation(USER, "addresses", qualified_name(Relationship))
        reader.set_type_name_attributes(["childClassName"])
        after = reader.get_property_annotation(USER, "addresses", qualified_name(Relationship))

        assert before.get_child_class_name() == "Address"
        assert after.get_child_class_name() == "App\\Entity\\Address"
        assert tokenizer.tokenize.call_count == 1


class TestFromSettings:
    def test_settings_are_applied(self, source_index, registry):
        settings = ReaderSettings(
            _env_file=None,
            type_name_attributes=["childClassName"],
            throw_exceptions=True,
        )

        reader = AnnotationReader.from_settings(settings, source_index, registry)

        assert reader.throw_exceptions is True
        assert reader.resolver.type_name_attributes == frozenset({"childClassName"})
        relationship = reader.get_property_annotation(USER, "addresses", qualified_name(Relationship))
        assert relationship.get_child_class_name() == "App\\Entity\\Address"

    def test_indexes_source_path(self, tmp_path, registry):
        (tmp_path / "Thing.php").write_text(
            '<?php\nnamespace App;\n\n/**\n * @DocblockReader\\Mapping\\Table(name="things")\n */\nclass Thing {}\n'
        )
        settings = ReaderSettings(_env_file=None, source_path=tmp_path)

        reader = AnnotationReader.from_settings(settings, registry=registry)

        assert reader.get_class_annotation("App\\Thing", qualified_name(Table)) == Table(name="things")
