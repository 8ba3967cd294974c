#!/usr/bin/env python3
"""Script to seed a local Chroma collection with records from a JSON Lines file.

Each line is an object with an ``id``, a ``text`` to embed and a ``metadata``
object (vendor, amount, record_type, domain, ...). Production indexes are
populated elsewhere; this is for local development.
"""

import asyncio
import json
import sys
from pathlib import Path

from hvac_search.clients.openai_client import OpenAIClient
from hvac_search.config import get_settings
from hvac_search.retrieval.retry import RetryOptions, retry_async
from hvac_search.storage.vector_store import VectorRecord, VectorStore

RECORDS_FILE = Path("data/records.jsonl")
BATCH_SIZE = 50


def load_records(path: Path) -> list[dict]:
    """Read one record per non-blank line."""
    records = []
    with open(path, encoding="utf-8") as f:
        for line_number, line in enumerate(f, 1):
            if not line.strip():
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as e:
                print(f"✗ Skipping line {line_number}: {e}")
                continue
            if not record.get("id") or not record.get("text"):
                print(f"✗ Skipping line {line_number}: missing id or text")
                continue
            records.append(record)
    return records


async def embed_batch(client: OpenAIClient, batch: list[dict], retry: RetryOptions) -> list[VectorRecord]:
    """Embed the text of each record in a batch."""
    vectors = []
    for record in batch:
        text = record["text"]
        embedding = await retry_async(
            lambda text=text: client.embed_text(text),
            retry,
            operation_name="embed",
        )
        metadata = {"text": text, **record.get("metadata", {})}
        vectors.append(VectorRecord(id=record["id"], embedding=embedding, metadata=metadata, document=text))
    return vectors


async def main():
    """Embed and upsert every record in the records file."""
    path = Path(sys.argv[1]) if len(sys.argv) > 1 else RECORDS_FILE
    if not path.exists():
        print(f"Error: File {path} does not exist")
        sys.exit(1)

    records = load_records(path)
    if not records:
        print(f"No records found in {path}")
        sys.exit(0)

    settings = get_settings()
    retry = RetryOptions(
        max_retries=settings.retry_max_retries,
        base_delay=settings.retry_base_delay,
        max_delay=settings.retry_max_delay,
    )
    store = VectorStore(
        persist_directory=settings.vector_db_path,
        collection_name=settings.collection_name,
        host=settings.chroma_host,
        port=settings.chroma_port,
        dimension=settings.embedding_dimension,
    )

    print(f"Seeding {len(records)} records into '{settings.collection_name}'\n")

    async with OpenAIClient(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        embedding_model=settings.openai_embedding_model,
        embedding_dimension=settings.embedding_dimension,
    ) as client:
        written = 0
        for start in range(0, len(records), BATCH_SIZE):
            batch = records[start : start + BATCH_SIZE]
            vectors = await embed_batch(client, batch, retry)
            written += await store.upsert(vectors)
            print(f"✓ {written}/{len(records)} records")

    print(f"\n{'='*60}")
    print(f"Collection now holds {await store.count()} records")
    print(f"{'='*60}")


if __name__ == "__main__":
    asyncio.run(main())
