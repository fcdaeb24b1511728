"""ThreadScout - answers from forum discussions

Simple CLI for running a single query.
"""

import argparse
import asyncio

from threadscout.agents.orchestrator import RetrievalOrchestrator


async def run_query(
    query: str,
    model: str | None = None,
    mode: str = "balanced",
    file_ids: list[str] | None = None,
) -> int:
    """Run one query and print sources and the streamed answer."""
    print(f"Query: {query}")
    print("-" * 50)

    orchestrator = RetrievalOrchestrator(model=model)
    exit_code = 0

    async for event in orchestrator.run(query, [], mode, file_ids or []):
        event_type = event.event.value
        data = event.data

        if event_type == "sources":
            sources = data.get("sources", [])
            print(f"\n[*] Sources ({len(sources)}):")
            for i, source in enumerate(sources, 1):
                metadata = source.get("metadata", {})
                print(f"  {i}. {metadata.get('title', 'Untitled')[:80]}")
                print(f"     {metadata.get('url', '')}")
            print(f"\n{'='*50}")

        elif event_type == "response":
            print(data.get("chunk", ""), end="", flush=True)

        elif event_type == "end":
            print(f"\n\n[*] Done in {data.get('runtime_ms')}ms")

        elif event_type == "error":
            print(f"\n[!] Error ({data.get('stage', 'unknown')}): {data.get('message', 'Unknown error')}")
            exit_code = 1

    return exit_code


def main():
    parser = argparse.ArgumentParser(description="ThreadScout discussion search")
    parser.add_argument("--query", "-q", required=True, help="Question to answer")
    parser.add_argument("--model", "-m", help="Model to use (default: from config)")
    parser.add_argument(
        "--mode",
        choices=["speed", "balanced", "quality"],
        default="balanced",
        help="Optimization mode for reranking",
    )
    parser.add_argument(
        "--file-id",
        action="append",
        dest="file_ids",
        help="Uploaded file id to include (repeatable)",
    )

    args = parser.parse_args()

    raise SystemExit(asyncio.run(run_query(args.query, args.model, args.mode, args.file_ids)))


if __name__ == "__main__":
    main()
