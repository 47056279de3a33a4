"""
Tests for ddlsync.schema.types module.
"""

import pytest

from ddlsync.exceptions import ConfigurationError
from ddlsync.schema.model import FieldDescriptor, FieldKind
from ddlsync.schema.types import DEFAULT_TYPE_MAPPING, TypeMapper, TypeTemplate


class TestTypeTemplate:
    """Test placeholder resolution in type templates."""

    def test_plain_template(self):
        template = TypeTemplate("datetime")
        assert template.render({"length": 10}) == "datetime"
        assert template.is_parametrized is False

    def test_single_placeholder_with_param(self):
        assert TypeTemplate("varchar({length|255})").render({"length": 50}) == "varchar(50)"

    def test_single_placeholder_fallback(self):
        assert TypeTemplate("varchar({length|255})").render({}) == "varchar(255)"

    def test_candidates_tried_in_order(self):
        template = TypeTemplate("decimal({size|length|10},{precision|2})")
        assert template.render({"length": 8}) == "decimal(8,2)"
        assert template.render({"size": 12, "length": 8}) == "decimal(12,2)"
        assert template.render({"precision": 4}) == "decimal(10,4)"

    def test_no_params_uses_literals(self):
        template = TypeTemplate("decimal({size|length|10},{precision|2})")
        assert template.render() == "decimal(10,2)"

    def test_none_param_counts_as_absent(self):
        assert TypeTemplate("varchar({length|255})").render({"length": None}) == "varchar(255)"

    def test_nested_fallback(self):
        template = TypeTemplate("varchar({length|{size|255}})")
        assert template.render({"length": 20}) == "varchar(20)"
        assert template.render({"size": 30}) == "varchar(30)"
        assert template.render({}) == "varchar(255)"

    def test_param_values_are_not_reparsed(self):
        assert TypeTemplate("enum({values|'a'})").render({"values": "'{x|y}'"}) == "enum('{x|y}')"

    @pytest.mark.parametrize(
        "template",
        [
            "varchar({length|255)",
            "varchar(length|255})",
            "varchar({length})",
            "varchar({|255})",
            "varchar({a|{b|{c|1}}})",
            "varchar({{a|b}|255})",
            "varchar({length|})",
        ],
    )
    def test_malformed_templates(self, template):
        with pytest.raises(ConfigurationError) as exc_info:
            TypeTemplate(template)

        assert "Malformed type template" in str(exc_info.value)
        assert exc_info.value.details["template"] == template


class TestTypeMapper:
    """Test TypeMapper class."""

    @pytest.fixture
    def mapper(self):
        return TypeMapper()

    @pytest.mark.parametrize(
        "kind,expected",
        [
            (FieldKind.INT, "integer"),
            (FieldKind.REAL, "decimal(18,6)"),
            (FieldKind.MONEY, "decimal(14,2)"),
            (FieldKind.DATETIME, "datetime"),
            (FieldKind.DATE, "date"),
            (FieldKind.STRING, "varchar(255)"),
            (FieldKind.TEXT, "text"),
            (FieldKind.BOOLEAN, "bool"),
        ],
    )
    def test_default_mapping(self, mapper, kind, expected):
        assert mapper.map_field_type(FieldDescriptor("f", kind)) == expected

    def test_string_length_param(self, mapper):
        field = FieldDescriptor("name", FieldKind.STRING, {"length": 50})
        assert mapper.map_field_type(field) == "varchar(50)"

    def test_unmapped_kind_uses_default_type(self):
        mapper = TypeMapper({"int": "int(11)"}, default_type="varchar({length|100})")

        assert mapper.map_field_type(FieldDescriptor("n", FieldKind.INT)) == "int(11)"
        assert mapper.map_field_type(FieldDescriptor("d", FieldKind.DATE)) == "varchar(100)"

    def test_custom_parametrized_mapping(self):
        mapper = TypeMapper({"money": "decimal({size|length|10},{precision|2})"})
        field = FieldDescriptor("price", FieldKind.MONEY, {"length": 8})

        assert mapper.map_field_type(field) == "decimal(8,2)"
        assert mapper.map_field_type(FieldDescriptor("p", FieldKind.MONEY)) == "decimal(10,2)"

    def test_mapping_keys_accept_field_kinds(self):
        mapper = TypeMapper({FieldKind.TEXT: "longtext"})
        assert mapper.map_field_type(FieldDescriptor("body", FieldKind.TEXT)) == "longtext"

    def test_malformed_mapping_fails_at_construction(self):
        with pytest.raises(ConfigurationError):
            TypeMapper({"string": "varchar({length|255"})

    def test_malformed_default_type_fails_at_construction(self):
        with pytest.raises(ConfigurationError):
            TypeMapper(default_type="varchar(length})")

    def test_default_mapping_is_not_mutated(self):
        TypeMapper({"int": "bigint"})
        assert DEFAULT_TYPE_MAPPING["int"] == "integer"
