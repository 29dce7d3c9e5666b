"""
Tests for the normalized query objects (models/query.py).

Criteria, Projection, Sort, Update: parsing, canonical forms and the
in-process evaluation used by the memory driver.
"""

import pytest

from missy.faults import ModelFault, PrimaryKeyFault, UnknownOperatorFault
from missy.models.query import Criteria, Projection, Sort, Update
from missy.types import UNSET


@pytest.fixture
def page(schema):
    return schema.define("Page", {
        "category": str,
        "id": int,
        "title": str,
        "tags": list,
    }, {"pk": ["category", "id"]})


@pytest.fixture
def log(schema):
    return schema.define("Log", {
        "uid": int,
        "type": str,
        "id": int,
        "title": str,
        "tags": list,
        "entry": dict,
    }, {"pk": ["uid", "type", "id"]})


LOGS = [
    {"uid": 1, "type": "sms", "id": 1, "title": "hello", "tags": ["a", "b"], "entry": {"msg": "you there?"}},
    {"uid": 1, "type": "sms", "id": 2, "title": "yes, here", "tags": None},
    {"uid": 2, "type": "sms", "id": 3, "title": "wassup?", "tags": None},
]


# ============================================================================
# Criteria
# ============================================================================

class TestCriteria:

    @pytest.mark.parametrize("value", [None, 1, "x", []])
    def test_empty(self, page, value):
        c = Criteria(page, value)
        assert c.criteria == {}
        assert not c

    def test_conversion(self, page):
        c = Criteria(page, {"id": "1", "title": 1, "tags": "a", "aaaaa": 1})
        assert c.criteria == {
            "id": {"$eq": 1},
            "title": {"$eq": "1"},
            "tags": {"$eq": ["a"]},
            "aaaaa": {"$eq": 1},
        }

    def test_operators(self, page):
        c = Criteria(page, {
            "id": {"$exists": True},
            "title": {"$ne": 0},
            "category": {"$in": ["public", 1]},
        })
        assert c.criteria == {
            "id": {"$exists": True},
            "title": {"$ne": "0"},
            "category": {"$in": ["public", "1"]},
        }

    def test_vector_operand_wrapped(self, page):
        assert Criteria(page, {"id": {"$nin": "3"}}).criteria == {"id": {"$nin": [3]}}

    def test_plain_dict_value_is_equality(self):
        c = Criteria(None, {"entry": {"msg": "hi"}})
        assert c.criteria == {"entry": {"$eq": {"msg": "hi"}}}

    def test_unknown_operator(self, page):
        with pytest.raises(UnknownOperatorFault) as exc_info:
            Criteria(page, {"anything": {"$wrong": 1}})
        assert exc_info.value.metadata["operator"] == "$wrong"
        assert isinstance(exc_info.value, ModelFault)

    def test_copy(self, page):
        original = Criteria(page, {"id": 1})
        copy = Criteria(page, original)
        assert copy == original
        copy.criteria["id"]["$eq"] = 2
        assert original.criteria["id"]["$eq"] == 1


class TestCriteriaFromPk:

    @pytest.mark.parametrize("pk", [1, [1], [1, 2], [1, 2, 3, 4], None, {"uid": 1}])
    def test_invalid(self, log, pk):
        with pytest.raises(PrimaryKeyFault):
            Criteria.from_pk(log, pk)

    def test_list(self, log):
        c = Criteria.from_pk(log, [1, 2, "3"])
        assert c.criteria == {
            "uid": {"$eq": 1},
            "type": {"$eq": "2"},
            "id": {"$eq": 3},
        }

    def test_dict_and_scalar(self, page, schema):
        c = Criteria.from_pk(page, {"category": "news", "id": "5"})
        assert c.criteria == {"category": {"$eq": "news"}, "id": {"$eq": 5}}

        user = schema.define("User", {"id": int})
        assert Criteria.from_pk(user, "7").criteria == {"id": {"$eq": 7}}


class TestCriteriaMatch:

    @pytest.mark.parametrize("criteria, expected", [
        ({}, [True, True, True]),
        ({"uid": 1}, [True, True, False]),
        ({"uid": "1", "type": "test"}, [False, False, False]),
        ({"uid": 1, "type": "sms"}, [True, True, False]),
        ({"uid": 2, "type": "sms"}, [False, False, True]),
        ({"id": {"$gt": "2"}}, [False, False, True]),
        ({"id": {"$gte": "2"}}, [False, True, True]),
        ({"id": {"$lt": "2"}}, [True, False, False]),
        ({"id": {"$lte": "2"}}, [True, True, False]),
        ({"id": {"$ne": "2"}}, [True, False, True]),
        ({"id": {"$eq": "2"}}, [False, True, False]),
        ({"id": {"$in": ["1", 3, 4]}}, [True, False, True]),
        ({"id": {"$nin": [1, 3, 4]}}, [False, True, False]),
        ({"id": {"$gt": 1, "$lt": 3}}, [False, True, False]),
        ({"entry": {"$exists": True}}, [True, False, False]),
        ({"entry": {"$exists": False}}, [False, True, True]),
        ({"tags": {"$gt": 1}}, [False, False, False]),
    ])
    def test_entity_match(self, log, criteria, expected):
        c = Criteria(log, criteria)
        assert [c.entity_match(entity) for entity in LOGS] == expected

    def test_missing_field(self):
        assert Criteria.match_operator("$ne", UNSET, 1)
        assert Criteria.match_operator("$nin", UNSET, [1])
        assert not Criteria.match_operator("$eq", UNSET, None)
        c = Criteria(None, {"age": {"$lt": 10}})
        assert not c.entity_match({})

    @pytest.mark.parametrize("operator, value, operand, expected", [
        ("$eq", True, 1, False),
        ("$eq", 1, True, False),
        ("$eq", False, 0, False),
        ("$eq", True, True, True),
        ("$eq", 1, 1.0, True),
        ("$ne", True, 1, True),
        ("$in", True, [1, 2], False),
        ("$in", 0, [False], False),
        ("$nin", 1, [True], True),
    ])
    def test_strict_equality(self, operator, value, operand, expected):
        assert Criteria.match_operator(operator, value, operand) is expected


# ============================================================================
# Projection
# ============================================================================

class TestProjection:

    @pytest.mark.parametrize("value", [None, {}, "", [], "*"])
    def test_empty(self, value):
        p = Projection(value)
        assert p.projection == {}
        assert p.inclusion_mode is False
        assert str(p) == "*"

    @pytest.mark.parametrize("value", [["a", "b", "c"], "a,b,c", "+a,b,c", {"a": 1, "b": 1, "c": 1}])
    def test_inclusion(self, value):
        p = Projection(value)
        assert p.projection == {"a": 1, "b": 1, "c": 1}
        assert p.inclusion_mode is True
        assert str(p) == "+a,b,c"

    @pytest.mark.parametrize("value", ["-a,b,c", {"a": 0, "b": 0, "c": 0}])
    def test_exclusion(self, value):
        p = Projection(value)
        assert p.projection == {"a": 0, "b": 0, "c": 0}
        assert p.inclusion_mode is False
        assert str(p) == "-a,b,c"

    def test_copy(self):
        p = Projection(Projection({"a": 0}))
        assert p == Projection("-a")

    def test_unsupported(self):
        with pytest.raises(TypeError):
            Projection(42)

    def test_field_details(self, schema):
        profile = schema.define("Profile", {"user_id": int, "name": str, "data": dict})

        assert Projection().get_field_details(profile) == {
            "fields": ["user_id", "name", "data"], "pick": [], "omit": [],
        }
        assert Projection({"name": 1, "aaaaa": 1}).get_field_details(profile) == {
            "fields": ["name", "aaaaa"], "pick": ["name", "aaaaa"], "omit": [],
        }
        assert Projection({"name": 0, "aaaaa": 0}).get_field_details(profile) == {
            "fields": ["user_id", "data"], "pick": [], "omit": ["name", "aaaaa"],
        }

    def test_entity_apply(self, schema):
        profile = schema.define("Profile", {"user_id": int, "name": str, "data": dict})
        entity = {"user_id": 1, "a": 2, "b": 3, "c": 4}

        assert Projection().entity_apply(profile, entity) == entity
        assert Projection({"user_id": 1, "c": 1}).entity_apply(profile, entity) == {"user_id": 1, "c": 4}
        assert Projection({"user_id": 0, "c": 0}).entity_apply(profile, entity) == {"a": 2, "b": 3}
        assert entity == {"user_id": 1, "a": 2, "b": 3, "c": 4}

    def test_includes_fields(self):
        assert Projection().includes_fields(["id"])
        assert Projection(["id", "name"]).includes_fields(["id"])
        assert not Projection(["name"]).includes_fields(["id"])
        assert not Projection({"id": 0}).includes_fields(["id"])
        assert Projection({"name": 0}).includes_fields(["id"])


# ============================================================================
# Sort
# ============================================================================

A = {"id": 1, "level": 0, "title": "zxy", "cat": 0}
B = {"id": 2, "level": 2, "title": "jkl", "cat": 0}
C = {"id": 3, "level": 1, "title": "ghi", "cat": 1}
D = {"id": 4, "level": 3, "title": "abc", "cat": 1}
DB = [A, B, C, D]


class TestSort:

    @pytest.mark.parametrize("value", [None, "", [], {}])
    def test_empty(self, value):
        s = Sort(value)
        assert s.sort == {}
        assert not s
        assert Sort(value).entities_sort(DB) == DB

    def test_string(self):
        s = Sort("a,b+;c-")
        assert s.sort == {"a": 1, "b": 1, "c": -1}
        assert str(s) == "a+,b+,c-"

    def test_list(self):
        assert Sort(["a", "b+", "c-"]).sort == {"a": 1, "b": 1, "c": -1}
        assert Sort([("a", -1), ("b", 1)]).sort == {"a": -1, "b": 1}

    def test_dict(self):
        assert Sort({"a": 1, "b": -1, "c": 0, "d": 2, "e": "-"}).sort == {
            "a": 1, "b": -1, "c": -1, "d": 1, "e": -1,
        }

    def test_declaration_order(self):
        assert list(Sort("b-,a+").sort) == ["b", "a"]

    @pytest.mark.parametrize("sort, expected", [
        ({"id": -1}, [D, C, B, A]),
        ({"level": -1}, [D, B, C, A]),
        ({"title": 1}, [D, C, B, A]),
        ({"cat": -1, "id": 1}, [C, D, A, B]),
        ({"cat": -1, "id": -1}, [D, C, B, A]),
        ({"cat": 1, "id": 1}, [A, B, C, D]),
        ({"cat": 1, "id": -1}, [B, A, D, C]),
    ])
    def test_entities_sort(self, sort, expected):
        assert Sort(sort).entities_sort(DB) == expected

    def test_stable(self):
        rows = [{"k": 1, "n": i} for i in range(5)] + [{"k": 0, "n": 9}]
        result = Sort("k").entities_sort(rows)
        assert [r["n"] for r in result] == [9, 0, 1, 2, 3, 4]

    def test_none_first_and_mixed_types(self):
        rows = [{"v": 2}, {"v": None}, {"v": "a"}, {}]
        result = Sort("v").entities_sort(rows)
        assert result[:2] == [{"v": None}, {}]
        assert result[2:] == [{"v": 2}, {"v": "a"}]


# ============================================================================
# Update
# ============================================================================

class TestUpdate:

    @pytest.fixture
    def upd(self, schema):
        profile = schema.define("Page", {"id": int, "title": str, "tags": list})
        return Update(profile, {
            "a": 1,
            "$set": {"b": 2},
            "$inc": {"c": 3},
            "$unset": {"d": ""},
            "$setOnInsert": {"e": 5},
            "$rename": {"f": "g"},
            "title": 1,
            "tags": "a",
        })

    def test_normalized(self, upd):
        assert upd.update == {
            "$set": {"a": 1, "b": 2, "title": "1", "tags": ["a"]},
            "$inc": {"c": 3},
            "$unset": {"d": ""},
            "$setOnInsert": {"e": 5},
            "$rename": {"f": "g"},
        }

    def test_explicit_set_wins(self):
        assert Update(None, {"a": 1, "$set": {"a": 2}}).update["$set"] == {"a": 2}

    def test_entity_update(self, upd):
        assert upd.entity_update({}) == {"a": 1, "b": 2, "c": 3, "title": "1", "tags": ["a"]}
        assert upd.entity_update({"d": 4, "f": 6}) == {
            "a": 1, "b": 2, "c": 3, "g": 6, "title": "1", "tags": ["a"],
        }

    def test_inc_counts_from_zero(self):
        upd = Update(None, {"$inc": {"n": 2}})
        assert upd.entity_update({"n": None}) == {"n": 2}
        assert upd.entity_update({"n": 5}) == {"n": 7}

    def test_entity_insert(self, upd, schema):
        assert upd.entity_insert() == {"a": 1, "b": 2, "c": 3, "e": 5, "title": "1", "tags": ["a"]}
        criteria = Criteria(schema.get_model("Page"), {"id": 10, "n": {"$gt": 5}})
        assert upd.entity_insert(criteria) == {
            "id": 10, "a": 1, "b": 2, "c": 3, "e": 5, "title": "1", "tags": ["a"],
        }

    def test_set_values_are_copied(self):
        tags = ["a"]
        upd = Update(None, {"tags": tags})
        entity = upd.entity_update({})
        entity["tags"].append("b")
        assert tags == ["a"]

    def test_invalid(self):
        with pytest.raises(UnknownOperatorFault):
            Update(None, {"$push": {"a": 1}})
        with pytest.raises(ModelFault):
            Update(None, {"$set": 1})
        with pytest.raises(ModelFault):
            Update(None, [1])
        with pytest.raises(ModelFault):
            Update(None, {1: "x"})

    def test_repr_shows_present_operators(self):
        assert repr(Update(None, {"a": 1})) == "Update({'$set': {'a': 1}})"
