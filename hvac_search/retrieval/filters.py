"""Metadata filter construction and validation.

Filters use the ``$eq/$gte/$lte/$in`` operator algebra with optional
top-level ``$and``/``$or``. The flat form built here (one key per field) is
translated to Chroma's ``where`` syntax only at the storage boundary.
"""

import logging
from collections.abc import Mapping
from typing import Any, assert_never

from pydantic import ValidationError

from hvac_search.errors import FilterValidationError
from hvac_search.models.auth import Principal
from hvac_search.models.intent import SearchArgs, SearchIntent
from hvac_search.retrieval.security import NoopPolicy, SecurityPolicy

logger = logging.getLogger(__name__)

MetadataFilter = dict[str, Any]

LOGICAL_OPERATORS = frozenset({"$and", "$or"})

# Argument fields that map one-to-one onto an equality constraint
EQUALITY_FIELDS = (
    "record_type",
    "payment_status",
    "service_type",
    "fiscal_year",
    "fiscal_quarter",
    "vendor",
    "region",
    "customer_type",
    "city",
    "state",
    "equipment_type",
    "manufacturer",
    "condition",
    "warranty_status",
)


def intent_constraints(intent: SearchIntent) -> MetadataFilter:
    """Domain and record-type constraints implied by the intent alone."""
    if intent is SearchIntent.SEARCH_INVOICES:
        return {"domain": {"$eq": "financial"}, "record_type": {"$eq": "invoice"}}
    elif intent is SearchIntent.SEARCH_CUSTOMERS:
        return {"domain": {"$eq": "crm"}, "record_type": {"$eq": "customer"}}
    elif intent is SearchIntent.SEARCH_EQUIPMENT:
        return {"domain": {"$eq": "field_service"}, "record_type": {"$eq": "equipment"}}
    elif intent is SearchIntent.SEARCH_ALL:
        # Broad search: no domain filter
        return {}
    else:
        assert_never(intent)


def user_constraints(args: SearchArgs) -> MetadataFilter:
    """Constraints for the optional arguments that are present."""
    values = args.model_dump(exclude_none=True)
    constraints: MetadataFilter = {
        name: {"$eq": values[name]} for name in EQUALITY_FIELDS if name in values
    }

    amount_range: dict[str, float] = {}
    if "amount_min" in values:
        amount_range["$gte"] = values["amount_min"]
    if "amount_max" in values:
        amount_range["$lte"] = values["amount_max"]
    if amount_range:
        constraints["amount"] = amount_range

    return constraints


def parse_arguments(intent: SearchIntent, arguments: Mapping[str, Any]) -> SearchArgs:
    """Validate raw tool arguments against the intent's schema.

    Raises:
        FilterValidationError: If any argument is malformed
    """
    try:
        return intent.args_model.model_validate(dict(arguments))
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(loc) for loc in err['loc']) or 'arguments'}: {err['msg']}"
            for err in e.errors()
        )
        raise FilterValidationError(
            f"Invalid arguments for {intent.value}: {errors}",
            operation="build_filter",
            cause=e,
        ) from e


def validate_filter(filter: Mapping[str, Any]) -> None:
    """Reject filters the vector store would misread.

    Rules: only ``$and``/``$or`` may appear as top-level operators, and no
    value anywhere may be null (omit the key instead).

    Raises:
        FilterValidationError: If the filter breaks a rule
    """
    if not isinstance(filter, Mapping):
        raise FilterValidationError(
            f"Metadata filter must be a mapping, got {type(filter).__name__}",
            operation="validate_filter",
        )

    for key in filter:
        if key.startswith("$") and key not in LOGICAL_OPERATORS:
            raise FilterValidationError(
                f"Invalid top-level operator: {key}. "
                "Only $and and $or are allowed at the top level.",
                operation="validate_filter",
            )

    _check_for_null(filter, "")


def _check_for_null(value: Any, path: str) -> None:
    if isinstance(value, Mapping):
        items = ((f"{path}.{k}" if path else str(k), v) for k, v in value.items())
    elif isinstance(value, (list, tuple)):
        items = ((f"{path}[{i}]", v) for i, v in enumerate(value))
    else:
        return

    for current_path, child in items:
        if child is None:
            raise FilterValidationError(
                f"Null metadata value at {current_path}. "
                "Remove the key instead of setting it to null.",
                operation="validate_filter",
            )
        _check_for_null(child, current_path)


def to_chroma_where(filter: Mapping[str, Any]) -> dict[str, Any] | None:
    """Translate a flat filter into a Chroma ``where`` clause.

    Chroma accepts one field and one operator per clause, so multi-field and
    multi-operator (range) conditions are split and joined with ``$and``.

    Returns:
        The where clause, or None for an empty filter
    """
    clauses: list[dict[str, Any]] = []
    for key, condition in filter.items():
        if key in LOGICAL_OPERATORS:
            parts = [to_chroma_where(part) for part in condition]
            parts = [part for part in parts if part]
            if len(parts) == 1:
                clauses.append(parts[0])
            elif parts:
                clauses.append({key: parts})
        elif isinstance(condition, Mapping):
            for operator, value in condition.items():
                clauses.append({key: {operator: value}})
        else:
            clauses.append({key: {"$eq": condition}})

    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return {"$and": clauses}


class FilterBuilder:
    """Builds validated metadata filters for tool calls.

    Order: intent constraints, then user constraints, then the security
    policy, then validation.
    """

    def __init__(self, policy: SecurityPolicy | None = None):
        """Initialize filter builder.

        Args:
            policy: Security policy applied to every filter (default: NoopPolicy)
        """
        self.policy = policy or NoopPolicy()

    def build(
        self,
        intent: SearchIntent,
        args: SearchArgs | Mapping[str, Any],
        principal: Principal | None = None,
    ) -> MetadataFilter:
        """Build the filter for one tool call.

        Args:
            intent: Selected search intent
            args: Parsed arguments or the raw argument mapping
            principal: Authenticated user for the security policy

        Returns:
            Validated metadata filter

        Raises:
            FilterValidationError: If arguments or the assembled filter are invalid
        """
        if not isinstance(args, SearchArgs):
            args = parse_arguments(intent, args)

        filter: MetadataFilter = {**intent_constraints(intent), **user_constraints(args)}
        filter = self.policy.apply(filter, principal)
        validate_filter(filter)

        logger.debug(f"Built filter for {intent.value}: {filter}")
        return filter
