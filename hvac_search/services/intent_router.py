"""Tool-selection LLM call: map a question to search intents and arguments."""

import json
from typing import Any

from hvac_search.clients.openai_client import OpenAIClient
from hvac_search.logging_config import get_logger
from hvac_search.models.intent import RoutingDecision, SearchIntent, ToolCall
from hvac_search.retrieval.retry import RetryOptions, retry_async

logger = get_logger(__name__)

NO_TOOL_ANSWER = "I need more information to answer your question."

RECORD_TYPES = [
    "invoice", "expense", "gl_entry", "contact", "deal",
    "activity", "campaign", "lead", "stock_item", "regional_summary",
]
SERVICE_TYPES = [
    "emergency_repair", "scheduled_repair", "preventive_maintenance",
    "installation_new", "retrofit", "diagnostic",
]
CUSTOMER_TYPES = [
    "office_building", "retail_store", "warehouse", "hospital", "school",
    "data_center", "restaurant", "hotel", "manufacturing_plant", "shopping_mall",
    "municipal_building", "sports_arena", "senior_living", "apartment_complex",
]
EQUIPMENT_TYPES = [
    "rooftop_unit", "split_system", "chiller", "boiler", "furnace",
    "heat_pump", "air_handler", "vrf_system", "package_unit",
]


def _query_param(examples: str) -> dict[str, Any]:
    return {
        "type": "string",
        "description": (
            "REQUIRED: The user's search query. This must always contain the user's "
            f"actual search terms. Examples: {examples}. Never leave this empty or null."
        ),
    }


def _top_k_param(default: int) -> dict[str, Any]:
    return {
        "type": "number",
        "description": f"Number of results to return (default {default}, max 100)",
        "default": default,
    }


def _function(name: str, description: str, properties: dict[str, Any]) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": name,
            "description": description,
            "parameters": {
                "type": "object",
                "properties": properties,
                "required": ["query"],
            },
        },
    }


TOOLS: list[dict[str, Any]] = [
    _function(
        SearchIntent.SEARCH_ALL.value,
        "General search across ALL data types - invoices, expenses, CRM contacts, deals, "
        "activities, inventory, marketing campaigns, leads, and regional data. Use this for "
        "broad queries or when the user wants to search across multiple domains.",
        {
            "query": _query_param('"list all equipment", "show me everything from Q4", "all records for Carrier"'),
            "record_type": {
                "type": "string",
                "enum": RECORD_TYPES,
                "description": "Optionally filter by specific record type",
            },
            "region": {"type": "string", "description": "Filter by region name (optional)"},
            "vendor": {"type": "string", "description": "Filter by vendor name (optional)"},
            "top_k": _top_k_param(SearchIntent.SEARCH_ALL.default_top_k),
        },
    ),
    _function(
        SearchIntent.SEARCH_INVOICES.value,
        "Search for invoices and service transactions. Use this to find billing information, "
        "payment status, service history, and financial records.",
        {
            "query": _query_param('"overdue invoices", "preventive maintenance in June", "invoices over $5000"'),
            "payment_status": {
                "type": "string",
                "enum": ["paid", "outstanding", "overdue"],
                "description": "Filter by payment status (optional)",
            },
            "service_type": {
                "type": "string",
                "enum": SERVICE_TYPES,
                "description": "Filter by type of service (optional)",
            },
            "fiscal_year": {
                "type": "string",
                "description": 'Filter by fiscal year (e.g., "2024") (optional)',
            },
            "fiscal_quarter": {
                "type": "string",
                "enum": ["Q1", "Q2", "Q3", "Q4"],
                "description": "Filter by fiscal quarter (optional)",
            },
            "vendor": {
                "type": "string",
                "description": 'Filter by vendor name (e.g., "Carrier") (optional)',
            },
            "amount_min": {"type": "number", "description": "Minimum invoice amount (optional)"},
            "amount_max": {"type": "number", "description": "Maximum invoice amount (optional)"},
            "top_k": _top_k_param(SearchIntent.SEARCH_INVOICES.default_top_k),
        },
    ),
    _function(
        SearchIntent.SEARCH_CUSTOMERS.value,
        "Search for customer information. Use this to find customer details, locations, "
        "facility types, and contact information.",
        {
            "query": _query_param('"office buildings in Phoenix", "large facilities", "hospitals"'),
            "customer_type": {
                "type": "string",
                "enum": CUSTOMER_TYPES,
                "description": "Filter by customer facility type (optional)",
            },
            "city": {"type": "string", "description": "Filter by city (optional)"},
            "state": {
                "type": "string",
                "description": 'Filter by state abbreviation (e.g., "AZ", "CA") (optional)',
            },
            "top_k": _top_k_param(SearchIntent.SEARCH_CUSTOMERS.default_top_k),
        },
    ),
    _function(
        SearchIntent.SEARCH_EQUIPMENT.value,
        "Search for HVAC equipment inventory. Use this to find equipment details, condition, "
        "age, warranty status, and maintenance needs.",
        {
            "query": _query_param('"Carrier rooftop units", "equipment needing replacement", "units with expired warranty"'),
            "equipment_type": {
                "type": "string",
                "enum": EQUIPMENT_TYPES,
                "description": "Filter by equipment type (optional)",
            },
            "manufacturer": {
                "type": "string",
                "description": 'Filter by manufacturer (e.g., "Carrier", "Trane", "Lennox") (optional)',
            },
            "condition": {
                "type": "string",
                "enum": ["excellent", "good", "fair", "poor", "critical"],
                "description": "Filter by equipment condition (optional)",
            },
            "warranty_status": {
                "type": "string",
                "enum": ["active", "expired"],
                "description": "Filter by warranty status (optional)",
            },
            "top_k": _top_k_param(SearchIntent.SEARCH_EQUIPMENT.default_top_k),
        },
    ),
]

SYSTEM_PROMPT = """You are a helpful assistant for searching historical HVAC business data.

# Available Tools

You have access to four search tools. Each tool REQUIRES a query parameter:

1. **search_all** - PREFERRED for broad searches across ALL data types (invoices, expenses, contacts, deals, activities, inventory, marketing, leads, regional data)
   - Use this for queries like "list all equipment", "show me everything", "find all records", "list everything from Carrier"
   - Returns up to 25 results by default
   - Can optionally filter by record_type: invoice, expense, gl_entry, contact, deal, activity, campaign, lead, stock_item, regional_summary

2. **search_invoices** - Search billing, payment, and service transaction records
   - Use filters like payment_status, service_type, fiscal_year, vendor, amount_min, amount_max when explicitly mentioned

3. **search_customers** - Search customer information and facility details
   - Use filters like customer_type, city, state when explicitly mentioned

4. **search_equipment** - Search HVAC equipment inventory
   - Use filters like equipment_type, manufacturer, condition when explicitly mentioned

# Instructions

- CRITICAL: ALWAYS provide the user's question or search terms in the "query" parameter. Never call a tool with an empty or null query.
- For broad queries like "list all X" or "show me everything", use **search_all** - it searches across all data types.
- When in doubt, use search_all rather than a more specific tool.
- Extract filters from the user's query when mentioned (Q1, Q2, Q3, Q4, paid, overdue, etc.) but don't require them.
- You can call multiple tools if needed to fully answer the question.

# Examples

User: "List all equipment" or "Show me inventory"
→ Call: search_all(query="equipment inventory", record_type="stock_item")

User: "Show me everything from Carrier"
→ Call: search_all(query="Carrier")

User: "List all records"
→ Call: search_all(query="all records")

User: "Show me overdue invoices"
→ Call: search_invoices(query="overdue invoices", payment_status="overdue")

User: "Overdue invoices from Carrier"
→ Call: search_invoices(query="overdue invoices from Carrier", payment_status="overdue", vendor="Carrier")

User: "Find CRM contacts"
→ Call: search_all(query="CRM contacts", record_type="contact")

User: "What deals are in the pipeline?"
→ Call: search_all(query="deals pipeline", record_type="deal")

User: "Show me marketing campaigns"
→ Call: search_all(query="marketing campaigns", record_type="campaign")

User: "Tell me about that"
→ Response: "I need more context. What would you like to know about?\""""


def parse_arguments(raw: Any) -> dict[str, Any]:
    """Decode tool-call arguments; malformed or non-object JSON becomes {}."""
    if isinstance(raw, dict):
        return dict(raw)
    if not isinstance(raw, str) or not raw.strip():
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Malformed tool arguments, treating as empty: {raw[:100]}")
        return {}
    return parsed if isinstance(parsed, dict) else {}


def materialize_query(arguments: dict[str, Any], user_query: str) -> str:
    """Search string for a tool call, falling back to the user's own query.

    An empty, null, whitespace-only or non-string ``query`` argument is
    replaced so that no empty string ever reaches the embedding step.
    """
    value = arguments.get("query")
    if isinstance(value, str) and value.strip():
        return value.strip()
    return user_query.strip()


def _get(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


class IntentRouter:
    """Selects search tools for a question with a deterministic LLM call."""

    def __init__(
        self,
        openai_client: OpenAIClient,
        temperature: float = 0.0,
        seed: int | None = 42,
        retry_options: RetryOptions | None = None,
    ):
        """Initialize intent router.

        Args:
            openai_client: Chat completion client
            temperature: Sampling temperature (0 for reproducible tool choice)
            seed: Sampling seed
            retry_options: Retry policy for the LLM call
        """
        self.openai_client = openai_client
        self.temperature = temperature
        self.seed = seed
        self.retry_options = retry_options or RetryOptions()

    async def route(self, user_query: str) -> RoutingDecision:
        """Choose tool calls for user_query.

        Args:
            user_query: Raw question (non-blank)

        Returns:
            RoutingDecision with tool calls, or a direct answer when the
            model calls no tool
        """
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": user_query},
        ]

        message = await retry_async(
            lambda: self.openai_client.chat_with_tools(
                messages=messages,
                tools=TOOLS,
                temperature=self.temperature,
                seed=self.seed,
                tool_choice="auto",
            ),
            self.retry_options,
            operation_name="tool_selection",
        )

        raw_calls = _get(message, "tool_calls") or []
        content = _get(message, "content")

        tool_calls: list[ToolCall] = []
        replayed_calls: list[dict[str, Any]] = []
        for raw_call in raw_calls:
            function = _get(raw_call, "function")
            name = _get(function, "name")
            try:
                intent = SearchIntent(name)
            except ValueError:
                logger.warning(f"Ignoring unknown tool '{name}'")
                continue

            raw_arguments = _get(function, "arguments")
            arguments = parse_arguments(raw_arguments)
            query = materialize_query(arguments, user_query)
            if arguments.get("query") != query:
                logger.info(
                    f"Using fallback query for {intent.value}: "
                    f"LLM provided {arguments.get('query')!r}, using {query!r}"
                )
            arguments["query"] = query

            call_id = _get(raw_call, "id") or f"call_{len(tool_calls)}"
            tool_calls.append(ToolCall(id=call_id, intent=intent, arguments=arguments))
            replayed_calls.append(
                {
                    "id": call_id,
                    "type": "function",
                    "function": {
                        "name": intent.value,
                        "arguments": raw_arguments if isinstance(raw_arguments, str) else json.dumps(arguments),
                    },
                }
            )

        if not tool_calls:
            answer = content or NO_TOOL_ANSWER
            logger.info("✓ No tool selected; answering directly")
            return RoutingDecision(answer=answer)

        logger.info(
            f"✓ Selected {len(tool_calls)} tool call(s): "
            + ", ".join(f"{c.intent.value}({c.arguments})" for c in tool_calls)
        )
        return RoutingDecision(
            tool_calls=tuple(tool_calls),
            assistant_message={
                "role": "assistant",
                "content": content,
                "tool_calls": replayed_calls,
            },
        )
