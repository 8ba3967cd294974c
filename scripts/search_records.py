#!/usr/bin/env python3
"""Script to search HVAC records with sample questions."""

import asyncio
import os
import sys

import httpx


API_BASE_URL = os.environ.get("HVAC_SEARCH_URL", "http://localhost:8000")
SESSION_TOKEN = os.environ.get("HVAC_SEARCH_SESSION", "demo-session")

SAMPLE_QUESTIONS = [
    "Show me overdue invoices from Carrier",
    "Which vendors do we work with most?",
    "Compare revenue by region",
    "List all equipment",
    "Hospitals in Phoenix",
    "What deals are in the pipeline?",
]


async def search_api(client: httpx.AsyncClient, query: str, max_results: int = 25) -> dict | None:
    """Send a search request to the API.

    Args:
        client: HTTP client
        query: Question to ask
        max_results: Result ceiling

    Returns:
        Response data from API
    """
    response = await client.post(
        f"{API_BASE_URL}/api/v1/search",
        json={"query": query, "maxResults": max_results},
        cookies={"session": SESSION_TOKEN},
    )

    if response.status_code == 200:
        return response.json()
    else:
        print(f"Error: {response.status_code}")
        print(response.text)
        return None


def print_response(query: str, response: dict):
    """Print search response in a formatted way."""
    print(f"\n{'='*80}")
    print(f"Query: {query}")
    print(f"{'='*80}")
    print(f"\nAnswer:\n{response['answer']}\n")

    if response.get("entity_type"):
        print(f"Entity view: {response['entity_type']}")

    sources = response.get("sources", [])
    if sources:
        print(f"Sources ({len(sources)}):")
        for i, source in enumerate(sources[:10], 1):
            meta = source.get("metadata", {})
            print(f"\n  {i}. [{meta.get('record_type') or meta.get('entity_type', '')}] {source['text'][:100]}")
            print(f"     Score: {source['score']:.2%} | Vendor: {meta.get('vendor', '')} | Amount: {meta.get('amount', 0):,.2f}")
        if len(sources) > 10:
            print(f"\n  ... {len(sources) - 10} more")

    charts = (response.get("visualization") or {}).get("charts", [])
    for chart in charts:
        print(f"\n  Chart [{chart['type']}] {chart['title']}")
        for point in chart["data"]:
            print(f"     {point['label']}: {point['value']:g}")

    print(f"\nProcessing time: {response['processing_time']:.2f}s")


async def interactive_mode(client: httpx.AsyncClient):
    """Ask questions interactively."""
    print("\n" + "="*80)
    print("Interactive Search Mode")
    print("="*80)
    print("Enter your questions (or 'quit' to exit)")
    print()

    while True:
        try:
            query = input("Query: ").strip()

            if not query:
                continue

            if query.lower() in ["quit", "exit", "q"]:
                print("Goodbye!")
                break

            response = await search_api(client, query)
            if response:
                print_response(query, response)

            print()

        except KeyboardInterrupt:
            print("\nGoodbye!")
            break
        except EOFError:
            break


async def sample_queries_mode(client: httpx.AsyncClient):
    """Run the predefined sample questions."""
    print("\n" + "="*80)
    print("Running Sample Searches")
    print("="*80)

    for i, query in enumerate(SAMPLE_QUESTIONS, 1):
        print(f"\n[{i}/{len(SAMPLE_QUESTIONS)}] Searching...")
        response = await search_api(client, query)

        if response:
            print_response(query, response)

        if i < len(SAMPLE_QUESTIONS):
            await asyncio.sleep(1)  # Small delay between queries


async def main():
    """Main function to run search script."""
    mode = "interactive"

    if len(sys.argv) > 1:
        if sys.argv[1] == "--sample":
            mode = "sample"
        elif sys.argv[1] == "--help":
            print("Usage: python search_records.py [--sample|--interactive]")
            print()
            print("Modes:")
            print("  --interactive  Ask questions interactively (default)")
            print("  --sample       Run predefined sample questions")
            print()
            print("Environment: HVAC_SEARCH_URL, HVAC_SEARCH_SESSION")
            sys.exit(0)

    async with httpx.AsyncClient(timeout=60.0) as client:
        # Check if API is running
        try:
            response = await client.get(f"{API_BASE_URL}/health")
            if response.status_code != 200:
                print("Error: API is not responding correctly")
                sys.exit(1)
        except httpx.ConnectError:
            print(f"Error: Cannot connect to API at {API_BASE_URL}")
            print("Make sure the API server is running:")
            print("  uvicorn hvac_search.main:app --reload")
            sys.exit(1)

        # Check the vector store has records
        response = await client.get(
            f"{API_BASE_URL}/api/v1/debug/vector-store",
            cookies={"session": SESSION_TOKEN},
        )
        if response.status_code == 200:
            info = response.json()["vector_store"]
            if not info["count"]:
                print(f"Warning: collection '{info['collection']}' is empty")
                sys.exit(1)
            print(f"Found {info['count']} records in '{info['collection']}'")

        if mode == "sample":
            await sample_queries_mode(client)
        else:
            await interactive_mode(client)


if __name__ == "__main__":
    asyncio.run(main())
