"""Search service implementing the routing, retrieval and shaping pipeline."""

import asyncio
import time

from hvac_search.clients.openai_client import OpenAIClient
from hvac_search.config import get_settings
from hvac_search.errors import FilterValidationError
from hvac_search.logging_config import get_logger
from hvac_search.models.auth import Principal
from hvac_search.models.intent import EntityIntent, ToolCall, ToolExecutionResult
from hvac_search.models.query import SearchRequest, SearchResponse, SearchResult
from hvac_search.retrieval.aggregation import aggregate, detect_entity_intent
from hvac_search.retrieval.filters import FilterBuilder, parse_arguments
from hvac_search.retrieval.normalizer import normalize
from hvac_search.retrieval.retriever import VectorRetriever, effective_top_k
from hvac_search.retrieval.retry import RetryOptions
from hvac_search.retrieval.security import get_security_policy
from hvac_search.retrieval.visualization import generate
from hvac_search.services.answer_synthesizer import AnswerSynthesizer
from hvac_search.services.intent_router import IntentRouter
from hvac_search.storage.vector_store import VectorStore

logger = get_logger(__name__)


def merge_sources(executions: list[ToolExecutionResult]) -> list[SearchResult]:
    """Union tool results, keeping the first occurrence of each id.

    The merged list is ordered by relevance score, highest first (stable).
    """
    seen: set[str] = set()
    merged: list[SearchResult] = []
    for execution in executions:
        for result in execution.results:
            if result.id in seen:
                continue
            seen.add(result.id)
            merged.append(result)
    merged.sort(key=lambda r: r.score, reverse=True)
    return merged


class SearchService:
    """Service handling the natural-language search pipeline.

    1. Route the question to search tools (LLM call, temperature 0)
    2. For each tool call, concurrently: build the filter, embed, query
    3. Normalize and merge hits
    4. Aggregate into entity cards when the query asks for vendors
    5. Summarize tool results (second LLM call)
    6. Derive chart descriptors
    """

    def __init__(
        self,
        openai_client: OpenAIClient | None = None,
        vector_store: VectorStore | None = None,
        router: IntentRouter | None = None,
        retriever: VectorRetriever | None = None,
        synthesizer: AnswerSynthesizer | None = None,
        filter_builder: FilterBuilder | None = None,
        retry_options: RetryOptions | None = None,
    ):
        """Initialize search service.

        Args:
            openai_client: OpenAI client for embeddings and chat completions
            vector_store: Vector store holding the record vectors
            router: Tool-selection stage
            retriever: Embed-and-query stage
            synthesizer: Summarization stage
            filter_builder: Filter builder with the configured security policy
            retry_options: Retry policy for every external call
        """
        self.settings = get_settings()

        self.retry_options = retry_options or RetryOptions(
            max_retries=self.settings.retry_max_retries,
            base_delay=self.settings.retry_base_delay,
            max_delay=self.settings.retry_max_delay,
        )
        self.openai_client = openai_client or OpenAIClient(
            api_key=self.settings.openai_api_key,
            model=self.settings.openai_model,
            embedding_model=self.settings.openai_embedding_model,
            embedding_dimension=self.settings.embedding_dimension,
            timeout=self.settings.llm_timeout,
        )
        self.vector_store = vector_store or VectorStore(
            persist_directory=self.settings.vector_db_path,
            collection_name=self.settings.collection_name,
            host=self.settings.chroma_host,
            port=self.settings.chroma_port,
            dimension=self.settings.embedding_dimension,
            query_timeout=self.settings.vector_query_timeout,
        )
        self.router = router or IntentRouter(
            self.openai_client,
            temperature=self.settings.router_temperature,
            seed=self.settings.router_seed,
            retry_options=self.retry_options,
        )
        self.retriever = retriever or VectorRetriever(
            self.openai_client,
            self.vector_store,
            retry_options=self.retry_options,
        )
        self.synthesizer = synthesizer or AnswerSynthesizer(
            self.openai_client,
            temperature=self.settings.summary_temperature,
            max_tokens=self.settings.summary_max_tokens,
            retry_options=self.retry_options,
        )
        self.filter_builder = filter_builder or FilterBuilder(
            get_security_policy(self.settings.security_policy)
        )
        self.max_charts = self.settings.max_charts

        logger.info(
            f"SearchService initialized: model={self.settings.openai_model}, "
            f"collection={self.settings.collection_name}, "
            f"security_policy={self.filter_builder.policy.name}"
        )

    async def execute_tool_call(
        self,
        call: ToolCall,
        max_results: int,
        principal: Principal | None = None,
    ) -> ToolExecutionResult:
        """Run one tool call end to end.

        A malformed argument set or filter aborts only this call: the result
        carries the error text so the summarization call can mention it.
        Upstream failures propagate.
        """
        try:
            args = parse_arguments(call.intent, call.arguments)
            filter = self.filter_builder.build(call.intent, args, principal)
        except FilterValidationError as e:
            logger.warning(f"✗ {call.intent.value} skipped: {e.message}")
            return ToolExecutionResult(tool_call=call, error=f"Filter validation failed: {e.message}")

        top_k = effective_top_k(call.intent, args.top_k, max_results)
        logger.info(f"→ {call.intent.value}: query='{args.query}', top_k={top_k}, filter={filter}")

        hits = await self.retriever.retrieve(args.query, filter, top_k)
        results = normalize(hits)
        return ToolExecutionResult(
            tool_call=call,
            filters_applied=filter,
            results=tuple(results),
        )

    async def search(
        self,
        request: SearchRequest,
        principal: Principal | None = None,
    ) -> SearchResponse:
        """Execute the search pipeline.

        Args:
            request: Search request with query and result ceiling
            principal: Authenticated user for the security policy

        Returns:
            SearchResponse with answer, sources and optional charts

        Raises:
            SearchError: Typed failure from any stage
        """
        start_time = time.time()

        logger.info("=" * 80)
        logger.info("🔍 SEARCH PIPELINE START")
        logger.info("=" * 80)
        logger.info(f"Query: '{request.query}'")
        logger.info(f"Parameters: max_results={request.max_results}")
        logger.info("-" * 80)

        decision = await self.router.route(request.query)
        if not decision.needs_retrieval:
            processing_time = time.time() - start_time
            logger.info(f"✓ Direct answer in {processing_time:.2f}s")
            return SearchResponse(
                answer=decision.answer or "",
                sources=[],
                processing_time=processing_time,
            )

        # A failing call cancels its siblings; the first error surfaces as-is
        try:
            async with asyncio.TaskGroup() as group:
                tasks = [
                    group.create_task(self.execute_tool_call(call, request.max_results, principal))
                    for call in decision.tool_calls
                ]
        except ExceptionGroup as exc_group:
            logger.error(f"✗ {len(exc_group.exceptions)} tool call(s) failed; cancelled the rest")
            raise exc_group.exceptions[0] from None
        executions = [task.result() for task in tasks]

        sources = merge_sources(executions)
        logger.info(f"✓ Collected {len(sources)} unique results from {len(executions)} tool call(s)")

        detected = detect_entity_intent(request.query)
        final_sources, applied = aggregate(sources, detected)
        logger.info(f"Entity view: detected={detected.value}, applied={applied.value}")

        logger.info("-" * 80)
        answer = await self.synthesizer.synthesize(request.query, decision, executions)

        visualization = generate(final_sources, applied, request.query, self.max_charts)

        processing_time = time.time() - start_time
        logger.info("=" * 80)
        logger.info(
            f"✓ SEARCH COMPLETE in {processing_time:.2f}s "
            f"({len(final_sources)} sources, "
            f"{len(visualization.charts) if visualization else 0} charts)"
        )
        logger.info("=" * 80)

        return SearchResponse(
            answer=answer,
            sources=final_sources,
            visualization=visualization,
            entity_type=applied.value if applied is not EntityIntent.NONE else None,
            processing_time=processing_time,
        )

    async def close(self) -> None:
        """Release the OpenAI HTTP client."""
        await self.openai_client.close()
