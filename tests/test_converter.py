"""
Tests for model definition and field conversion (models/options.py, models/converter.py).
"""

import datetime

import pytest

from missy import Schema
from missy.faults import (
    ConfigurationFault,
    FieldDefinitionFault,
    TypeConversionFault,
    TypeHandlerFault,
    UnknownFieldFault,
    UnknownTypeFault,
)
from missy.models.options import FieldDefinition, ModelOptions
from missy.types import UNSET, TypeHandler


class SmileType(TypeHandler):
    def norm(self, value, field):
        return f"{value} :)"

    def load(self, value, field):
        return value

    def save(self, value, field):
        return f"{value} :)"


@pytest.fixture
def user_model(schema):
    schema.register_type("smile", SmileType)
    return schema.define("User", {
        "id": int,
        "name": str,
        "login": {"type": "string", "required": True},
        "ctime": {"type": "date", "required": True, "def": datetime.datetime.now},
        "obj": dict,
        "roles": list,
        "json": {"type": "json"},
        "any": None,
        "smile": {"type": "smile"},
        "enabled": bool,
    })


# ============================================================================
# Definitions
# ============================================================================

class TestModelDefinition:

    def test_defaults(self, schema, user_model):
        assert user_model.schema is schema
        assert user_model.name == "User"
        assert user_model.options.to_dict() == {
            "table": "users",
            "pk": ["id"],
            "required": False,
            "entity_prototype": None,
        }

    def test_fields(self, schema, user_model):
        assert list(user_model.fields) == [
            "id", "name", "login", "ctime", "obj", "roles", "json", "any", "smile", "enabled",
        ]
        expected_types = {
            "id": "number", "name": "string", "login": "string", "ctime": "date",
            "obj": "object", "roles": "array", "json": "json", "any": "any",
            "smile": "smile", "enabled": "boolean",
        }
        for name, type_name in expected_types.items():
            field = user_model.fields[name]
            assert field.name == name
            assert field.type == type_name
            assert field.model is user_model
            assert field.type_handler is schema.types[type_name]

        assert user_model.fields["login"].required is True
        assert user_model.fields["name"].required is False
        assert isinstance(user_model.fields["ctime"].get_default(), datetime.datetime)

    def test_options_override(self, schema):
        Profile = schema.define("Profile", {
            "user_id": int,
            "name": str,
            "data": dict,
        }, {"table": "user_profiles", "pk": ["user_id", "name"], "required": True})

        assert Profile.options.table == "user_profiles"
        assert Profile.options.pk == ["user_id", "name"]
        # Model-wide default applies to every field
        assert all(f.required for f in Profile.fields.values())

    def test_unknown_type(self, schema):
        with pytest.raises(UnknownTypeFault) as exc_info:
            schema.define("Bad", {"x": "decimal"})
        assert exc_info.value.metadata["field"] == "x"

    def test_malformed_definition(self, schema):
        with pytest.raises(FieldDefinitionFault):
            schema.define("Bad", {"x": {"required": True}})
        with pytest.raises(FieldDefinitionFault):
            schema.define("Bad", {"x": 42})
        with pytest.raises(FieldDefinitionFault):
            schema.define("Bad", {"x": set})

    def test_unknown_option(self, schema):
        with pytest.raises(ConfigurationFault):
            schema.define("Bad", {"id": int}, {"tabel": "x"})

    def test_field_definition_instance(self, schema):
        field = FieldDefinition("json", required=True)
        Model = schema.define("Doc", {"data": field})
        assert Model.fields["data"].type == "json"
        assert Model.fields["data"].name == "data"
        # The given instance is not bound
        assert field.model is None

    def test_extra_keys_are_kept(self):
        field = FieldDefinition.parse("login", {"type": "string", "max": 64})
        assert field.extra == {"max": 64}
        assert field.to_dict()["max"] == 64

    def test_driver_may_drop_fields(self, driver):
        class DroppingDriver(type(driver)):
            def prepare_field_definition(self, model, name, field):
                return None if name.startswith("_") else field

        schema = Schema(DroppingDriver())
        Model = schema.define("M", {"id": int, "_secret": str})
        assert list(Model.fields) == ["id"]

    def test_model_options_prepare(self):
        options = ModelOptions.prepare("Page", {"pk": "slug"})
        assert options.pk == ["slug"]
        assert options.table == "pages"
        with pytest.raises(ConfigurationFault):
            ModelOptions.prepare("Page", {"pk": []})
        with pytest.raises(ConfigurationFault):
            ModelOptions.prepare("Page", {"entity_prototype": 1})


class TestRegisterType:

    def test_not_callable(self, schema):
        with pytest.raises(TypeHandlerFault):
            schema.register_type("bad", 1)

    def test_factory_fails(self, schema):
        def factory(schema, name):
            raise RuntimeError("nope")

        with pytest.raises(TypeHandlerFault):
            schema.register_type("bad", factory)

    def test_incomplete_handler(self, schema):
        class Half:
            def __init__(self, schema, name):
                pass

            def norm(self, value, field):
                return value

        with pytest.raises(TypeHandlerFault) as exc_info:
            schema.register_type("bad", Half)
        assert exc_info.value.metadata["missing"] == ["load", "save"]

    def test_plain_object_factory(self, schema):
        class Handler:
            def norm(self, value, field):
                return value

            load = save = norm

        assert schema.register_type("plain", lambda schema, name: Handler()) is schema
        assert isinstance(schema.types["plain"], Handler)


# ============================================================================
# Conversion
# ============================================================================

class TestEntityImport:

    @pytest.mark.parametrize("entity, expected", [
        ({}, {}),
        ({"aaaaa": {"a": 1}}, {"aaaaa": {"a": 1}}),
        ({"id": 0.1}, {"id": 0.1}),
        ({"id": "0"}, {"id": 0}),
        ({"name": "1"}, {"name": "1"}),
        ({"login": None}, {"login": ""}),
        ({"login": "kolypto"}, {"login": "kolypto"}),
        ({"ctime": "2012-03-04 15:16:17"}, {"ctime": datetime.datetime(2012, 3, 4, 15, 16, 17)}),
        ({"obj": None}, {"obj": None}),
        ({"obj": 1}, {"obj": None}),
        ({"obj": {"a": 1}}, {"obj": {"a": 1}}),
        ({"obj": [1, 2, 3]}, {"obj": [1, 2, 3]}),
        ({"roles": None}, {"roles": None}),
        ({"roles": 1}, {"roles": [1]}),
        ({"json": None}, {"json": None}),
        ({"json": 1}, {"json": 1}),
        ({"json": "1"}, {"json": 1}),
        ({"json": '{"a":1}'}, {"json": {"a": 1}}),
        ({"any": [1, {"a": 1}]}, {"any": [1, {"a": 1}]}),
        ({"smile": 123}, {"smile": 123}),
        ({"enabled": "true"}, {"enabled": True}),
        ({"enabled": 1}, {"enabled": True}),
    ])
    async def test_import(self, user_model, entity, expected):
        assert await user_model.entity_import(entity) == expected

    async def test_import_does_not_apply_defaults(self, user_model):
        assert await user_model.entity_import({"id": 1}) == {"id": 1}

    async def test_import_malformed_json(self, user_model):
        with pytest.raises(TypeConversionFault):
            await user_model.entity_import({"json": '{"a":1--}'})

    async def test_entity_prototype(self, schema):
        class Entity(dict):
            def title(self):
                return self["name"].title()

        Model = schema.define("Named", {"name": str}, {"entity_prototype": Entity})
        entity = await Model.entity_import({"name": "first"})
        assert isinstance(entity, Entity)
        assert entity.title() == "First"


class TestEntityExport:

    async def export(self, model, entity):
        result = await model.entity_export(entity)
        # Required default
        assert isinstance(result.pop("ctime"), datetime.datetime)
        return result

    @pytest.mark.parametrize("entity, expected", [
        ({}, {}),
        ({"aaaaa": {"a": 1}}, {"aaaaa": {"a": 1}}),
        ({"id": "0"}, {"id": 0}),
        ({"login": None}, {"login": ""}),
        ({"obj": 1}, {"obj": None}),
        ({"roles": 1}, {"roles": [1]}),
        ({"json": None}, {"json": None}),
        ({"json": 1}, {"json": "1"}),
        ({"json": "1"}, {"json": '"1"'}),
        ({"json": {"a": 1}}, {"json": '{"a": 1}'}),
        ({"smile": 123}, {"smile": "123 :)"}),
        ({"enabled": "f"}, {"enabled": False}),
        ({"enabled": 0}, {"enabled": False}),
    ])
    async def test_export(self, user_model, entity, expected):
        assert await self.export(user_model, entity) == expected

    async def test_export_keeps_given_date(self, user_model):
        now = datetime.datetime.now()
        result = await user_model.entity_export({"ctime": now})
        assert result["ctime"] == now

    async def test_export_does_not_mutate(self, user_model):
        entity = {"id": "1"}
        await user_model.entity_export(entity)
        assert entity == {"id": "1"}


class TestDefaults:

    @pytest.fixture
    def model(self, schema):
        return schema.define("Model", {
            "stro": {"type": "string", "required": False, "def": "abc"},
            "str": {"type": "string", "required": True, "def": "abc"},
            "numo": {"type": "number", "required": False, "def": 123},
            "num": {"type": "number", "required": True, "def": 123},
            "anyo": {"type": "any", "required": False, "def": "!!!"},
            "any": {"type": "any", "required": True, "def": "!!!"},
            "s": str,
            "n": int,
            "a": "any",
        }, {"pk": "num"})

    async def test_absent_keys_get_defaults(self, model):
        assert await model.entity_export({}) == {
            "stro": "abc", "str": "abc",
            "numo": 123, "num": 123,
            "anyo": "!!!", "any": "!!!",
        }

    async def test_unset_values_get_defaults(self, model):
        entity = {name: UNSET for name in model.fields}
        assert await model.entity_export(entity) == {
            "stro": "abc", "str": "abc", "s": None,
            "numo": 123, "num": 123, "n": None,
            "anyo": "!!!", "any": "!!!", "a": None,
        }

    async def test_none_on_required_gets_default(self, model):
        entity = {name: None for name in model.fields}
        assert await model.entity_export(entity) == {
            "stro": None, "str": "abc", "s": None,
            "numo": None, "num": 123, "n": None,
            "anyo": None, "any": "!!!", "a": None,
        }

    def test_mutable_default_is_copied(self):
        field = FieldDefinition("array", default=[1])
        first = field.get_default()
        first.append(2)
        assert field.get_default() == [1]


class TestConvertValue:

    def test_unknown_field(self, user_model):
        with pytest.raises(UnknownFieldFault):
            user_model.converter.convert_value("nope", "norm", 1)
        assert user_model.converter.convert_value("nope", "norm", 1, ignore_unknown=True) == 1

    def test_unknown_method(self, user_model):
        with pytest.raises(ValueError):
            user_model.converter.convert_value("id", "dump", 1)

    def test_required_unset_gets_default(self, user_model):
        value = user_model.converter.convert_value("ctime", "norm")
        assert isinstance(value, datetime.datetime)
