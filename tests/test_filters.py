"""Tests for metadata filter construction and validation."""

import json

import pytest
from hypothesis import given
from hypothesis import strategies as st

from hvac_search.errors import FilterValidationError
from hvac_search.models.auth import Principal, Role
from hvac_search.models.intent import SearchIntent, SearchInvoicesArgs
from hvac_search.retrieval.filters import (
    FilterBuilder,
    intent_constraints,
    parse_arguments,
    to_chroma_where,
    validate_filter,
)
from hvac_search.retrieval.security import TenantScopedPolicy

queries = st.text(min_size=1, max_size=40).filter(lambda s: s.strip())
free_text = st.text(max_size=20)
amounts = st.floats(min_value=0, max_value=1e9, allow_nan=False, allow_infinity=False)

ARGUMENT_STRATEGIES = {
    SearchIntent.SEARCH_ALL: st.fixed_dictionaries(
        {"query": queries},
        optional={
            "record_type": st.sampled_from(["invoice", "contact", "deal", "stock_item"]) | st.none(),
            "region": free_text | st.none(),
            "vendor": free_text | st.none(),
            "top_k": st.integers(min_value=1, max_value=100),
        },
    ),
    SearchIntent.SEARCH_INVOICES: st.fixed_dictionaries(
        {"query": queries},
        optional={
            "payment_status": st.sampled_from(["paid", "outstanding", "overdue"]) | st.none(),
            "service_type": st.sampled_from(["retrofit", "diagnostic"]) | st.none(),
            "fiscal_year": st.integers(min_value=2000, max_value=2030) | st.just("2024"),
            "fiscal_quarter": st.sampled_from(["Q1", "Q2", "Q3", "Q4"]),
            "vendor": free_text | st.none(),
            "amount_min": amounts,
            "amount_max": amounts,
        },
    ).filter(
        lambda a: "amount_min" not in a or "amount_max" not in a or a["amount_min"] <= a["amount_max"]
    ),
    SearchIntent.SEARCH_CUSTOMERS: st.fixed_dictionaries(
        {"query": queries},
        optional={
            "customer_type": st.sampled_from(["hospital", "school", "warehouse"]) | st.none(),
            "city": free_text | st.none(),
            "state": free_text | st.none(),
        },
    ),
    SearchIntent.SEARCH_EQUIPMENT: st.fixed_dictionaries(
        {"query": queries},
        optional={
            "equipment_type": st.sampled_from(["chiller", "boiler", "heat_pump"]) | st.none(),
            "manufacturer": free_text | st.none(),
            "condition": st.sampled_from(["good", "poor", "critical"]),
            "warranty_status": st.sampled_from(["active", "expired"]),
        },
    ),
}

intent_and_args = st.sampled_from(list(SearchIntent)).flatmap(
    lambda intent: ARGUMENT_STRATEGIES[intent].map(lambda args: (intent, args))
)


def _values(filter):
    for value in filter.values():
        if isinstance(value, dict):
            yield from _values(value)
        else:
            yield value


class TestFilterBuilder:
    """Test filter construction per intent."""

    def test_invoice_intent_constraints(self):
        """Test that search_invoices always scopes to financial invoices."""
        filter = FilterBuilder().build(SearchIntent.SEARCH_INVOICES, {"query": "invoices"})

        assert filter == {"domain": {"$eq": "financial"}, "record_type": {"$eq": "invoice"}}

    def test_customer_and_equipment_constraints(self):
        """Test domain constraints for customers and equipment."""
        assert intent_constraints(SearchIntent.SEARCH_CUSTOMERS) == {
            "domain": {"$eq": "crm"},
            "record_type": {"$eq": "customer"},
        }
        assert intent_constraints(SearchIntent.SEARCH_EQUIPMENT) == {
            "domain": {"$eq": "field_service"},
            "record_type": {"$eq": "equipment"},
        }

    def test_search_all_has_no_domain_filter(self):
        """Test that broad search is unfiltered unless record_type is given."""
        builder = FilterBuilder()

        assert builder.build(SearchIntent.SEARCH_ALL, {"query": "everything"}) == {}
        assert builder.build(
            SearchIntent.SEARCH_ALL, {"query": "contacts", "record_type": "contact"}
        ) == {"record_type": {"$eq": "contact"}}

    def test_overdue_invoices_from_carrier(self):
        """Test the filter for 'overdue invoices from Carrier'."""
        filter = FilterBuilder().build(
            SearchIntent.SEARCH_INVOICES,
            {"query": "overdue invoices from Carrier", "payment_status": "overdue", "vendor": "Carrier"},
        )

        assert filter == {
            "domain": {"$eq": "financial"},
            "record_type": {"$eq": "invoice"},
            "payment_status": {"$eq": "overdue"},
            "vendor": {"$eq": "Carrier"},
        }

    def test_amount_range(self):
        """Test that amount bounds become a single range constraint."""
        filter = FilterBuilder().build(
            SearchIntent.SEARCH_INVOICES,
            {"query": "big invoices", "amount_min": 5000, "amount_max": 20000},
        )

        assert filter["amount"] == {"$gte": 5000.0, "$lte": 20000.0}

    def test_null_and_blank_arguments_are_omitted(self):
        """Test that absent-looking arguments never reach the filter."""
        filter = FilterBuilder().build(
            SearchIntent.SEARCH_CUSTOMERS,
            {"query": "hospitals", "city": "", "state": None, "customer_type": "hospital"},
        )

        assert "city" not in filter
        assert "state" not in filter
        assert filter["customer_type"] == {"$eq": "hospital"}

    def test_fiscal_year_number_is_coerced(self):
        """Test that a numeric fiscal year is filtered as a string."""
        filter = FilterBuilder().build(
            SearchIntent.SEARCH_INVOICES, {"query": "invoices", "fiscal_year": 2024}
        )

        assert filter["fiscal_year"] == {"$eq": "2024"}

    def test_invalid_enum_value_raises(self):
        """Test that an unknown payment status is a filter validation error."""
        with pytest.raises(FilterValidationError) as exc_info:
            FilterBuilder().build(
                SearchIntent.SEARCH_INVOICES, {"query": "invoices", "payment_status": "late"}
            )

        assert "payment_status" in str(exc_info.value)
        assert exc_info.value.status_code == 400

    def test_inverted_amount_range_raises(self):
        """Test that amount_min above amount_max is rejected."""
        with pytest.raises(FilterValidationError, match="amount_min"):
            FilterBuilder().build(
                SearchIntent.SEARCH_INVOICES,
                {"query": "invoices", "amount_min": 500, "amount_max": 100},
            )

    def test_parse_arguments_ignores_unknown_keys(self):
        """Test that extra LLM arguments are dropped."""
        args = parse_arguments(
            SearchIntent.SEARCH_INVOICES, {"query": "invoices", "colour": "blue", "top_k": 5.0}
        )

        assert isinstance(args, SearchInvoicesArgs)
        assert args.top_k == 5
        assert not hasattr(args, "colour")

    @pytest.mark.parametrize(
        "top_k,expected",
        [(0, None), (-5, None), (12.5, 12), ("7", 7), ("lots", None), (float("inf"), None), (True, None)],
    )
    def test_out_of_range_top_k_is_coerced(self, top_k, expected):
        """Test that odd LLM counts fall back to the intent default instead of failing the call."""
        args = parse_arguments(SearchIntent.SEARCH_INVOICES, {"query": "q", "top_k": top_k})

        assert args.top_k == expected

    def test_security_policy_layered_last(self):
        """Test that policy constraints are added on top of user constraints."""
        builder = FilterBuilder(TenantScopedPolicy())
        principal = Principal(
            user_id="u1", email="e@opco.com", role=Role.EMPLOYEE, opco_code="OPCO002"
        )

        filter = builder.build(
            SearchIntent.SEARCH_INVOICES, {"query": "invoices", "payment_status": "paid"}, principal
        )

        assert filter["payment_status"] == {"$eq": "paid"}
        assert filter["opco_id"] == {"$eq": "OPCO002"}
        assert filter["role_required"] == {"$in": ["employee", "vendor_portal"]}

    @given(intent_and_args)
    def test_built_filters_are_valid(self, case):
        """Property: built filters have no nulls and no stray operators, and validate."""
        intent, args = case
        filter = FilterBuilder().build(intent, args)

        assert all(not key.startswith("$") for key in filter)
        assert all(value is not None for value in _values(filter))
        validate_filter(filter)

    @given(intent_and_args)
    def test_built_filters_survive_json_round_trip(self, case):
        """Property: serializing then parsing a built filter yields the same filter."""
        intent, args = case
        filter = FilterBuilder().build(intent, args)

        assert json.loads(json.dumps(filter)) == filter


class TestValidateFilter:
    """Test filter validation rules."""

    def test_accepts_logical_operators(self):
        """Test that $and / $or are allowed at the top level."""
        validate_filter({"$or": [{"vendor": {"$eq": "Carrier"}}, {"vendor": {"$eq": "Trane"}}]})

    @pytest.mark.parametrize("operator", ["$eq", "$in", "$nor", "$where"])
    def test_rejects_other_top_level_operators(self, operator):
        """Test that other $-keys are rejected at the top level."""
        with pytest.raises(FilterValidationError, match="top-level operator"):
            validate_filter({operator: "x"})

    def test_rejects_nested_null(self):
        """Test that a null anywhere in the filter is rejected with its path."""
        with pytest.raises(FilterValidationError, match="vendor.\\$eq"):
            validate_filter({"domain": {"$eq": "financial"}, "vendor": {"$eq": None}})

    def test_rejects_null_inside_list(self):
        """Test that nulls inside $in lists are rejected."""
        with pytest.raises(FilterValidationError):
            validate_filter({"role_required": {"$in": ["admin", None]}})

    def test_rejects_non_mapping(self):
        """Test that a filter must be a mapping."""
        with pytest.raises(FilterValidationError):
            validate_filter(["vendor"])


class TestChromaWhere:
    """Test translation to Chroma where clauses."""

    def test_empty_filter(self):
        assert to_chroma_where({}) is None

    def test_single_clause_is_not_wrapped(self):
        assert to_chroma_where({"vendor": {"$eq": "Carrier"}}) == {"vendor": {"$eq": "Carrier"}}

    def test_multiple_fields_are_joined_with_and(self):
        where = to_chroma_where(
            {"domain": {"$eq": "financial"}, "record_type": {"$eq": "invoice"}}
        )

        assert where == {
            "$and": [{"domain": {"$eq": "financial"}}, {"record_type": {"$eq": "invoice"}}]
        }

    def test_range_is_split_into_clauses(self):
        where = to_chroma_where({"amount": {"$gte": 10.0, "$lte": 20.0}})

        assert where == {"$and": [{"amount": {"$gte": 10.0}}, {"amount": {"$lte": 20.0}}]}

    def test_bare_value_becomes_eq(self):
        assert to_chroma_where({"state": "AZ"}) == {"state": {"$eq": "AZ"}}

    def test_logical_operator_is_translated_recursively(self):
        where = to_chroma_where(
            {
                "$or": [
                    {"vendor": {"$eq": "Carrier"}},
                    {"vendor": {"$eq": "Trane"}, "state": {"$eq": "AZ"}},
                ]
            }
        )

        assert where == {
            "$or": [
                {"vendor": {"$eq": "Carrier"}},
                {"$and": [{"vendor": {"$eq": "Trane"}}, {"state": {"$eq": "AZ"}}]},
            ]
        }
