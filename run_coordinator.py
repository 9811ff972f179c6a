#!/usr/bin/env python3
"""
Coordinator command line entry point.

Builds a coordinator with a single search worker, submits one query,
waits for it to finish and prints the task as JSON.

Usage:
    python run_coordinator.py --query "fano plane"                     # hybrid
    python run_coordinator.py --query "fano plane" --mode vector --seed-file docs.json
    python run_coordinator.py --query "fano plane" --mode web --max-results 5

Web search needs search.endpoint in config.yaml (or --endpoint). Vector
search uses the local hash embedder and an in-memory index seeded from
--seed-file: a JSON list of {"id", "content", "metadata"} objects.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

from shared.logging import get_logger

from coordinator import (
    Coordinator,
    HashEmbeddingProvider,
    HttpWebSearchProvider,
    InMemoryVectorIndex,
    SearchWorker,
    Settings,
    ValidationError,
    InitializationError,
    load_config,
)

log = get_logger("cli", "run")


async def seed_index(
    index: InMemoryVectorIndex, embedder: HashEmbeddingProvider, path: Path
) -> int:
    """Embed and load documents from a JSON file into the index."""
    documents = json.loads(path.read_text(encoding="utf-8"))
    for i, doc in enumerate(documents):
        content = doc.get("content", "")
        index.add_document(
            doc_id=str(doc.get("id", i)),
            content=content,
            embedding=await embedder.embed(content),
            metadata=doc.get("metadata", {}),
        )
    log.info("cli.run.index_seeded", documents=index.count(), path=str(path))
    return index.count()


async def build_worker(settings: Settings, seed_file: Optional[Path] = None) -> SearchWorker:
    """Create a search worker from settings."""
    search = settings.search

    web = None
    if search.endpoint:
        web = HttpWebSearchProvider(
            endpoint=search.endpoint,
            api_key=search.api_key,
            timeout=search.request_timeout,
        )

    embedder = HashEmbeddingProvider(dimension=search.embedding_dimension)
    index = InMemoryVectorIndex(dimension=search.embedding_dimension)
    if seed_file:
        await seed_index(index, embedder, seed_file)

    return SearchWorker(
        worker_id="search-worker-1",
        web_provider=web,
        embedding_provider=embedder,
        vector_index=index,
        config=search,
    )


async def run_query(
    settings: Settings,
    query: str,
    mode: str,
    max_results: Optional[int] = None,
    priority: str = "medium",
    seed_file: Optional[Path] = None,
    timeout: Optional[float] = None,
) -> dict:
    """Run a single query through a fresh coordinator and return the task dict."""
    payload = {"query": query, "search_type": mode}
    if max_results is not None:
        payload["max_results"] = max_results

    worker = await build_worker(settings, seed_file)
    if not worker.can_handle(f"{mode}-search"):
        raise ValidationError(
            f"No configured provider supports {mode} search "
            "(web and hybrid search need search.endpoint)",
            field="search_type",
        )

    async with Coordinator(settings.coordinator) as coordinator:
        await coordinator.register_worker(worker)
        task_id = coordinator.submit_task("search", payload, priority)
        task = await coordinator.wait_for_task(task_id, timeout=timeout)
        return task.to_dict()


async def main() -> int:
    parser = argparse.ArgumentParser(
        description="searchpool - run a query through the retrieval coordinator",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--query", required=True, help="Search query")
    parser.add_argument(
        "--mode",
        choices=["web", "vector", "hybrid"],
        default="hybrid",
        help="Retrieval mode (default: hybrid)"
    )
    parser.add_argument("--max-results", type=int, default=None,
                        help="Result budget (default: 10, or 5 for vector)")
    parser.add_argument(
        "--priority",
        choices=["low", "medium", "high", "critical"],
        default="medium",
        help="Task priority (default: medium)"
    )
    parser.add_argument("--config", default=None,
                        help="Path to config.yaml (default: $SEARCHPOOL_CONFIG or ./config.yaml)")
    parser.add_argument("--endpoint", default=None,
                        help="Web search endpoint (overrides config)")
    parser.add_argument("--seed-file", type=Path, default=None,
                        help="JSON documents to load into the vector index")
    parser.add_argument("--timeout", type=float, default=None,
                        help="Seconds to wait for the result")
    args = parser.parse_args()

    settings = load_config(args.config)
    if args.endpoint:
        settings.search.endpoint = args.endpoint

    try:
        task = await run_query(
            settings,
            query=args.query,
            mode=args.mode,
            max_results=args.max_results,
            priority=args.priority,
            seed_file=args.seed_file,
            timeout=args.timeout,
        )
    except ValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except InitializationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except asyncio.TimeoutError:
        print(f"Error: no result within {args.timeout}s", file=sys.stderr)
        return 1

    print(json.dumps(task, indent=2))
    return 0 if task["status"] == "completed" else 1


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\nShutdown requested...")
