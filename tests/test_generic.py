"""GenericAnnotation 분해 테스트."""

import pytest
from pydantic import ValidationError

from docblock_reader.models import DeclarationKey, GenericAnnotation
from docblock_reader.resolution.generic import decompose


class StubFinder:
    """MyClass만 App\\Models\\MyClass로 해석하는 이름 해석기."""

    def __init__(self):
        self.calls = []

    def find_qualified_name(self, name, must_exist=False):
        self.calls.append((name, must_exist))
        if name == "MyClass":
            return "App\\Models\\MyClass"
        return None if must_exist else name


class TestDecompose:
    def test_type_variable_and_comment(self):
        generic = GenericAnnotation.parse("var", "int $i Some text")

        assert generic.type == "int"
        assert generic.variable == "$i"
        assert generic.comment == "Some text"
        assert generic.pre_variable_parts == []

    def test_single_word_resolves_through_finder(self):
        finder = StubFinder()

        generic = GenericAnnotation.parse("var", "MyClass", finder)

        assert generic.type == "App\\Models\\MyClass"
        assert generic.variable is None
        assert generic.comment is None
        assert finder.calls == [("MyClass", False)]

    def test_type_before_variable_resolves_through_finder(self):
        generic = GenericAnnotation.parse("param", "MyClass $object", StubFinder())

        assert generic.type == "App\\Models\\MyClass"
        assert generic.variable == "$object"

    def test_unresolved_word_is_kept_as_written(self):
        assert GenericAnnotation.parse("var", "string", StubFinder()).type == "string"
        assert GenericAnnotation.parse("var", "Unknown").type == "Unknown"

    def test_several_words_before_variable(self):
        generic = GenericAnnotation.parse("also_random", "Several words here $variableName")

        assert generic.pre_variable_parts == ["Several", "words", "here"]
        assert generic.variable == "$variableName"
        assert generic.type is None
        assert generic.comment is None

    def test_several_words_without_variable_is_a_comment(self):
        generic = GenericAnnotation.parse("deprecated", "Use something else instead")

        assert generic.comment == "Use something else instead"
        assert generic.type is None
        assert generic.variable is None

    def test_variable_only(self):
        generic = GenericAnnotation.parse("param", "$value")

        assert generic.variable == "$value"
        assert generic.type is None
        assert generic.comment is None

    def test_empty_value(self):
        assert decompose("") == {}

    def test_parts_are_one_indexed(self):
        generic = GenericAnnotation.parse("x", "Some words here $v More words")

        assert generic.part(1) == "Some"
        assert generic.part(3) == "here"
        assert generic.part(0) is None
        assert generic.part(4) is None
        assert generic.parts == {"part_1": "Some", "part_2": "words", "part_3": "here"}
        assert generic.comment == "More words"


class TestGenericAnnotationModel:
    def test_keeps_raw_input_and_key(self):
        key = DeclarationKey(class_name="App\\User", kind="property", member="id")

        generic = GenericAnnotation.parse("var", "int $id", key=key)

        assert generic.name == "var"
        assert generic.value == "int $id"
        assert generic.key == key
        assert generic.key.item_name == "p:id"

    def test_is_immutable(self):
        generic = GenericAnnotation.parse("var", "int $i")

        with pytest.raises(ValidationError):
            generic.type = "string"

    def test_value_equality(self):
        assert GenericAnnotation.parse("var", "int $i x") == GenericAnnotation.parse("var", "int $i x")


class TestDeclarationKey:
    @pytest.mark.parametrize(
        "key, item_name, text",
        [
            (DeclarationKey(class_name="App\\User"), "c", "App\\User"),
            (DeclarationKey(class_name="App\\User", kind="property", member="id"), "p:id", "App\\User::$id"),
            (DeclarationKey(class_name="App\\User", kind="method", member="save"), "m:save", "App\\User::save"),
        ],
    )
    def test_item_name_and_text(self, key, item_name, text):
        assert key.item_name == item_name
        assert str(key) == text
