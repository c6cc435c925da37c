"""
Unit tests for the Search facade.
"""

import pytest
import numpy as np

from omsearch import Search, Settings, SearchOptions
from omsearch.core.exceptions import (
    InvalidQueryError,
    SchemaError,
    SchemaMismatchError,
    ValidationError,
    VectorDimensionMismatchError,
)
from omsearch.query.conditions import And, Or, Not, and_, equals, range_


@pytest.fixture
def search(simple_schema, transport):
    return Search(simple_schema, transport)


def query_of(transport, call=0):
    return transport.calls[call][1]


def options_of(transport, call=0):
    return transport.calls[call][2]


class TestFluentBuilding:
    """Tests for the fluent condition API."""

    def test_where_eq(self, search, transport):
        """Test a single equality condition."""
        search.where("aString").eq("foo").run()
        assert query_of(transport) == "@aString:{foo}"

    def test_and_chain(self, search, transport):
        """Test chaining with and_."""
        search.where("aString").eq("foo").and_("aNumber").gte(10).run()
        assert query_of(transport) == "@aString:{foo} @aNumber:[10 +inf]"

    def test_or_chain(self, search, transport):
        """Test chaining with or_."""
        search.where("aString").eq("a").or_("aString").eq("b").run()
        assert query_of(transport) == "(@aString:{a} | @aString:{b})"

    def test_mixed_chain_folds_left(self, search):
        """Test mixed chains fold left."""
        s = search.where("aString").eq("a").or_("aString").eq("b").and_("aBoolean").true()
        node = s.conditions
        assert isinstance(node, And)
        assert isinstance(node.children[0], Or)

    def test_nested_group(self, search, transport):
        """Test a nested group."""
        s = search.where("aBoolean").true().and_(
            lambda g: g.where("aString").eq("a").or_("aString").eq("b")
        )
        s.run()
        assert query_of(transport) == "@aBoolean:{1} (@aString:{a} | @aString:{b})"

    def test_empty_group_ignored(self, search):
        """Test an empty group adds nothing."""
        s = search.where("aBoolean").true()
        assert s.and_(lambda g: g).conditions == s.conditions

    def test_group_must_return_search(self, search):
        """Test group builders must return a Search."""
        with pytest.raises(ValidationError):
            search.where(lambda g: None)

    def test_not(self, search, transport):
        """Test negating a condition."""
        search.where("someStrings").not_.contains("alfa").run()
        assert query_of(transport) == "-(@someStrings:{alfa})"

    def test_double_not_cancels(self, search):
        """Test a double negation cancels out."""
        s = search.where("aString").not_.not_.eq("x")
        assert not isinstance(s.conditions, Not)

    def test_ranges(self, search):
        """Test the range shortcuts."""
        field = search.schema["aNumber"]
        assert search.where("aNumber").gt(1).conditions == range_(field, 1, None, min_inclusive=False)
        assert search.where("aNumber").gte(1).conditions == range_(field, 1, None)
        assert search.where("aNumber").lt(1).conditions == range_(field, None, 1, max_inclusive=False)
        assert search.where("aNumber").lte(1).conditions == range_(field, None, 1)
        assert search.where("aNumber").between(1, 2).conditions == range_(field, 1, 2)

    def test_date_aliases(self, search, transport):
        """Test the date shortcuts."""
        search.where("aDate").on_or_after("1970-01-02T00:00:00Z").run()
        assert query_of(transport) == "@aDate:[86400 +inf]"

        search.where("aDate").before("1970-01-02").run()
        assert query_of(transport, 1) == "@aDate:[-inf (86400]"

    def test_text(self, search, transport):
        """Test text matches."""
        search.where("someText").match("quick fox").run()
        search.where("someText").match_exact("quick fox").run()
        assert query_of(transport, 0) == "@someText:(quick fox)"
        assert query_of(transport, 1) == '@someText:"quick fox"'

    def test_contains_one_of(self, search):
        """Test contains_one_of argument forms."""
        a = search.where("someStrings").contains_one_of("x", "y").conditions
        b = search.where("someStrings").contains_one_of(["x", "y"]).conditions
        assert a == b
        assert a.values == ("x", "y")

    def test_in_radius(self, search, transport):
        """Test geo radius conditions."""
        search.where("aPoint").in_radius(2.0, 48.0, 5, "km").run()
        assert query_of(transport) == "@aPoint:[2.0 48.0 5.0 km]"

    def test_field_descriptor_accepted(self, search, simple_schema):
        """Test descriptors are accepted as fields."""
        s = search.where(simple_schema["aString"]).eq("x")
        assert s.conditions == equals(simple_schema["aString"], "x")

    def test_unknown_field(self, search):
        """Test undeclared fields."""
        with pytest.raises(SchemaError):
            search.where("nope")

    def test_type_mismatch_raised_while_building(self, search, transport):
        """Test type mismatches fail before any call."""
        with pytest.raises(SchemaMismatchError):
            search.where("aPoint").contains("x")
        assert transport.calls == []

    def test_builder_is_immutable(self, search):
        """Test every call returns a new Search."""
        base = search.where("aString").eq("a")
        left = base.and_("aNumber").eq(1)
        right = base.or_("aNumber").eq(2)

        assert base.conditions == equals(search.schema["aString"], "a")
        assert isinstance(left.conditions, And)
        assert isinstance(right.conditions, Or)
        assert search.conditions is None

    def test_repr(self, search):
        """Test the repr."""
        assert "SimpleHashEntity:index" in repr(search.where("aString").eq("a"))


class TestRun:
    """Tests for run / count / raw_search."""

    def test_run_decodes(self, search, transport, simple_entity_1_reply):
        """Test run decodes the reply."""
        transport.replies = [simple_entity_1_reply]

        reply = search.run()

        assert reply.total == 1
        assert reply[0].identifier == "1"
        assert reply[0]["aNumber"] == 42.0

    def test_run_default_options(self, search, transport, simple_schema):
        """Test run with default options."""
        search.run()
        index_name, query, options = transport.calls[0]
        assert index_name == "SimpleHashEntity:index"
        assert query == "*"
        assert options == {"RETURN": simple_schema.store_names, "DIALECT": 2}

    def test_run_explicit(self, search, transport, simple_schema):
        """Test run with explicit conditions and options."""
        node = range_(simple_schema["aNumber"], 1, 5)
        search.run(node, SearchOptions(offset=5, count=5, return_fields=["aNumber"]))
        assert transport.calls[0] == (
            "SimpleHashEntity:index",
            "@aNumber:[1 5]",
            {"RETURN": ["aNumber"], "LIMIT": {"from": 5, "size": 5}, "DIALECT": 2},
        )

    def test_fluent_sort(self, search, transport):
        """Test the fluent sort order."""
        search.where("aNumber").gt(0).sort_descending("aDate").run()
        assert options_of(transport)["SORTBY"] == {"BY": "aDate", "DIRECTION": "DESC"}

    def test_sort_by_rejects_bad_direction(self, search):
        """Test invalid sort directions."""
        with pytest.raises(ValidationError):
            search.sort_by("aNumber", "sideways")

    def test_count(self, search, transport):
        """Test counting matches."""
        transport.replies = [[12]]

        assert search.where("aBoolean").true().count() == 12
        assert options_of(transport) == {"RETURN": [], "LIMIT": {"from": 0, "size": 0}, "DIALECT": 2}

    def test_count_explicit_conditions(self, search, transport, simple_schema):
        """Test counting with explicit conditions."""
        transport.replies = [[3]]
        assert search.count(equals(simple_schema["aBoolean"], False)) == 3
        assert query_of(transport) == "@aBoolean:{0}"

    def test_return_count(self, search, transport):
        """Test return_count."""
        transport.replies = [[7]]
        assert search.return_count() == 7

    def test_raw_search(self, search, transport):
        """Test running a raw query string."""
        transport.replies = [[1, b"SimpleHashEntity:5", [b"aNumber", b"inf"]]]

        reply = search.raw_search("@aNumber:[100 +inf]", SearchOptions(count=1))

        assert query_of(transport) == "@aNumber:[100 +inf]"
        assert reply[0]["aNumber"] == float("inf")

    def test_transport_errors_propagate(self, search, transport):
        """Test transport errors reach the caller unchanged."""
        error = ConnectionError("store unreachable")
        transport.replies = [error]

        with pytest.raises(ConnectionError) as exc_info:
            search.run()
        assert exc_info.value is error

    def test_decoded_values_find_same_record(self, search, transport, simple_schema, simple_entity_1_reply):
        """Test decoded values find the same record again."""
        record = search.decoder.decode(simple_entity_1_reply)[0]
        node = and_(*(
            equals(simple_schema[name], record[name])
            for name in ("aString", "aNumber", "aBoolean", "aDate")
        ))
        transport.replies = [simple_entity_1_reply]

        reply = search.run(node)

        assert query_of(transport) == (
            "@aString:{foo} @aNumber:[42.0 42.0] @aBoolean:{0} @aDate:[1000000000 1000000000]"
        )
        assert reply.ids == ["1"]
        assert reply[0].fields == record.fields

    def test_execute_plan(self, search, transport):
        """Test running a compiled plan."""
        plan = search.compiler.compile()
        transport.replies = [[2, b"SimpleHashEntity:a", b"SimpleHashEntity:b"]]
        assert search.execute_plan(plan).ids == ["a", "b"]


class TestVectorSearch:
    """Tests for nearest()."""

    def test_nearest(self, product_schema, transport, random_vector):
        """Test a KNN search."""
        transport.replies = [[
            2,
            b"Product:a", [b"__image_score", b"0", b"name", b"first"],
            b"Product:b", [b"__image_score", b"0.25", b"name", b"second"],
        ]]
        search = Search(product_schema, transport)

        reply = search.nearest("image", 2, random_vector).run()

        _, query, options = transport.calls[0]
        assert query == "*=>[KNN 2 @image $query_vector AS __image_score]"
        assert options["PARAMS"] == {"query_vector": random_vector.tobytes()}
        assert options["SORTBY"] == {"BY": "__image_score", "DIRECTION": "ASC"}
        assert [r.score for r in reply] == [0.0, 0.25]

    def test_nearest_fetches_all_k(self, product_schema, transport, random_vector):
        """Test a KNN search asks for all k neighbours."""
        search = Search(product_schema, transport)
        search.nearest("image", 20, random_vector).run()
        assert options_of(transport)["LIMIT"] == {"from": 0, "size": 20}

    def test_nearest_with_filter(self, product_schema, transport, random_vector):
        """Test a KNN search with a filter."""
        search = Search(product_schema, transport)
        search.where("price").lt(50).nearest("image", 3, random_vector).run()
        assert query_of(transport) == (
            "(@price:[-inf (50])=>[KNN 3 @image $query_vector AS __image_score]"
        )

    def test_nearest_wrong_dimension(self, product_schema, transport):
        """Test a vector of the wrong dimension."""
        search = Search(product_schema, transport)
        with pytest.raises(VectorDimensionMismatchError):
            search.nearest("image", 2, np.zeros(10, dtype=np.float32))
        assert transport.calls == []

    def test_knn_not_allowed_in_group(self, product_schema, transport, random_vector):
        """Test KNN inside a nested group."""
        search = Search(product_schema, transport)
        with pytest.raises(ValidationError):
            search.where(lambda g: g.nearest("image", 2, random_vector))

    def test_custom_param_name(self, product_schema, transport, random_vector):
        """Test a configured vector parameter name."""
        search = Search(product_schema, transport, Settings(vector_param_name="blob"))
        search.nearest("image", 1, random_vector).run()
        assert "$blob" in query_of(transport)
        assert set(options_of(transport)["PARAMS"]) == {"blob"}


class TestAccessors:
    """Tests for first / min / max / page / all helpers."""

    def test_return_first(self, search, transport, simple_entity_1_reply):
        """Test fetching the first match."""
        transport.replies = [simple_entity_1_reply]

        record = search.sort_ascending("aNumber").return_first()

        assert record.identifier == "1"
        options = options_of(transport)
        assert options["LIMIT"] == {"from": 0, "size": 1}
        assert options["SORTBY"] == {"BY": "aNumber", "DIRECTION": "ASC"}
        assert "aString" in options["RETURN"]

    def test_return_first_none(self, search):
        """Test the first match of an empty result."""
        assert search.return_first() is None

    def test_return_first_id(self, search, transport):
        """Test fetching the first identifier."""
        transport.replies = [[1, b"SimpleHashEntity:9"]]
        assert search.return_first_id() == "9"
        assert options_of(transport)["RETURN"] == []

    def test_return_min_and_max(self, search, transport, simple_entity_1_reply):
        """Test fetching the min and max records."""
        transport.replies = [simple_entity_1_reply, simple_entity_1_reply]

        assert search.return_min("aNumber")["aString"] == "foo"
        assert search.return_max("aNumber")["aString"] == "foo"
        assert options_of(transport, 0)["SORTBY"]["DIRECTION"] == "ASC"
        assert options_of(transport, 1)["SORTBY"]["DIRECTION"] == "DESC"

    def test_return_page(self, search, transport):
        """Test fetching a page."""
        search.return_page(20, 10)
        assert options_of(transport)["LIMIT"] == {"from": 20, "size": 10}

    def test_return_page_invalid(self, search, transport):
        """Test an invalid page."""
        with pytest.raises(InvalidQueryError):
            search.return_page(-1, 10)
        assert transport.calls == []

    def test_return_page_of_ids(self, search, transport):
        """Test fetching a page of identifiers."""
        transport.replies = [[9, b"SimpleHashEntity:3", b"SimpleHashEntity:4"]]
        assert search.return_page_of_ids(2, 2) == ["3", "4"]
        assert options_of(transport)["RETURN"] == []

    def test_return_all_pages(self, search, transport):
        """Test fetching every match page by page."""
        transport.replies = [
            [5, b"SimpleHashEntity:1", [], b"SimpleHashEntity:2", []],
            [5, b"SimpleHashEntity:3", [], b"SimpleHashEntity:4", []],
            [5, b"SimpleHashEntity:5", []],
        ]

        records = search.return_all(page_size=2)

        assert [r.identifier for r in records] == ["1", "2", "3", "4", "5"]
        assert [options_of(transport, i)["LIMIT"]["from"] for i in range(3)] == [0, 2, 4]

    def test_return_all_stops_at_total(self, search, transport):
        """Test paging stops at the total."""
        transport.replies = [[2, b"SimpleHashEntity:1", b"SimpleHashEntity:2"]]
        assert search.return_all_ids(page_size=2) == ["1", "2"]
        assert len(transport.calls) == 1

    def test_return_all_default_page_size(self, simple_schema, transport):
        """Test the configured page size."""
        search = Search(simple_schema, transport, Settings(default_page_size=3))
        search.return_all()
        assert options_of(transport)["LIMIT"] == {"from": 0, "size": 3}

    def test_return_all_empty(self, search, transport):
        """Test fetching all of an empty result."""
        assert search.return_all() == []
        assert len(transport.calls) == 1

    def test_return_all_invalid_page_size(self, search):
        """Test an invalid page size."""
        with pytest.raises(ValidationError):
            search.return_all(page_size=-1)
