"""Property-based tests for query-string parsing."""

from hypothesis import given
from hypothesis import strategies as st

from natours.schemas.tour import TOUR_FIELDS
from natours.services.api_features import (
    RESERVED_PARAMETERS,
    APIFeatures,
    Operator,
    parse_filters,
    parse_positive_int,
    parse_projection,
)

reserved_values = st.one_of(
    st.text(max_size=20),
    st.lists(st.text(max_size=20), min_size=2, max_size=4),
)
numeric_fields = st.sampled_from(["duration", "maxGroupSize", "ratingsAverage", "ratingsQuantity", "price"])
operators = st.sampled_from(["gt", "gte", "lt", "lte"])
numbers = st.floats(allow_nan=False, allow_infinity=False, width=32)
projectable = st.lists(st.sampled_from(sorted(TOUR_FIELDS)), min_size=1, unique=True)


@given(st.dictionaries(st.sampled_from(sorted(RESERVED_PARAMETERS)), reserved_values))
def test_reserved_keys_never_filter(query):
    """page, sort, limit and fields never turn into conditions."""
    assert parse_filters(query) == ()


@given(st.dictionaries(st.tuples(numeric_fields, operators), numbers, max_size=5))
def test_each_comparison_key_yields_one_condition(comparisons):
    query = {f"{name}[{op}]": repr(value) for (name, op), value in comparisons.items()}

    conditions = parse_filters(query)

    assert len(conditions) == len(query)
    for condition in conditions:
        assert condition.operator in (Operator.GT, Operator.GTE, Operator.LT, Operator.LTE)
        assert isinstance(condition.value, float)


@given(st.one_of(st.none(), st.text(max_size=8)))
def test_parsed_page_numbers_are_positive(value):
    assert parse_positive_int(value, 1) >= 1


@given(projectable)
def test_inclusion_projection_contains_id_once(fields):
    projection = parse_projection(",".join(fields))

    assert projection[0] == "id"
    assert projection.count("id") == 1
    assert set(projection) == {"id", *fields}


@given(
    st.fixed_dictionaries(
        {},
        optional={
            "difficulty": st.sampled_from(["easy", "medium", "difficult"]),
            "sort": st.sampled_from(["price", "-price", "name,-ratingsAverage"]),
            "page": st.text(max_size=3),
            "limit": st.text(max_size=3),
            "fields": st.sampled_from(["name", "name,price", "-summary"]),
        },
    )
)
def test_build_leaves_query_untouched(query):
    snapshot = dict(query)

    features = APIFeatures.build(query)

    assert dict(features.query_string) == snapshot
    assert query == snapshot
