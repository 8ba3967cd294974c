"""Summarization LLM call over tool results."""

from collections.abc import Sequence
from typing import Any

from hvac_search.clients.openai_client import OpenAIClient
from hvac_search.logging_config import get_logger
from hvac_search.models.intent import RoutingDecision, ToolExecutionResult
from hvac_search.retrieval.retry import RetryOptions, retry_async

logger = get_logger(__name__)

FALLBACK_ANSWER = "Unable to generate response"

SUMMARY_PROMPT = """You are a helpful assistant for searching historical HVAC business data.

Instead of listing each result in detail, provide a high-level summary that includes:
1. The count of results found (e.g., "Found 6 invoices")
2. The type of records (invoices, customers, or equipment)
3. A brief overview of what the results show (e.g., key patterns, date ranges, amounts, common characteristics)

Only state facts that appear in the tool results. If a tool reports an error or returns no results, say so plainly instead of guessing.

Do NOT create a detailed markdown list of each individual record. The detailed information will be displayed separately in the sources section. Keep your response concise, informative, and focused on the big picture."""


class AnswerSynthesizer:
    """Second pass of the two-call protocol: tool outputs in, prose out."""

    def __init__(
        self,
        openai_client: OpenAIClient,
        temperature: float = 0.3,
        max_tokens: int = 800,
        retry_options: RetryOptions | None = None,
    ):
        self.openai_client = openai_client
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.retry_options = retry_options or RetryOptions()

    @staticmethod
    def build_messages(
        user_query: str,
        decision: RoutingDecision,
        executions: Sequence[ToolExecutionResult],
    ) -> list[dict[str, Any]]:
        """Transcript for the summarization call.

        The router's assistant message is replayed verbatim, followed by one
        tool message per tool call in the order the router issued them.
        """
        messages: list[dict[str, Any]] = [
            {"role": "system", "content": SUMMARY_PROMPT},
            {"role": "user", "content": user_query},
        ]
        if decision.assistant_message is not None:
            messages.append(decision.assistant_message)
        messages.extend(execution.to_tool_message() for execution in executions)
        return messages

    async def synthesize(
        self,
        user_query: str,
        decision: RoutingDecision,
        executions: Sequence[ToolExecutionResult],
    ) -> str:
        """Summarize tool results for user_query.

        Returns:
            Prose answer (a fixed fallback when the model returns nothing)
        """
        messages = self.build_messages(user_query, decision, executions)
        logger.info(f"→ Summarizing {len(executions)} tool result(s)")

        answer = await retry_async(
            lambda: self.openai_client.generate(
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            ),
            self.retry_options,
            operation_name="summarization",
        )
        answer = (answer or "").strip()
        if not answer:
            logger.warning("Summarization returned no text; using fallback answer")
            return FALLBACK_ANSWER

        logger.info(f"✓ Generated answer ({len(answer)} chars)")
        return answer
