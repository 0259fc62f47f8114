#!/usr/bin/env python3
"""
Demo script for the content resolver.

Runs the search pipeline against the static dataset (no network needed) on a
throwaway SQLite file: cold miss, cache hit, cross-source deduplication,
hierarchy reconciliation and a duplicate report.
"""

import asyncio
import tempfile
from pathlib import Path

from content_resolver.database import Database
from content_resolver.entities import EntityType, RawRecord
from content_resolver.logging_config import configure_logging
from content_resolver.repositories import StaticProvider
from content_resolver.services import MaintenanceService, ProviderRegistry, SearchOrchestrator


def print_section(title: str) -> None:
    """Print a section header."""
    print("\n" + "=" * 70)
    print(f"  {title}")
    print("=" * 70)


async def demo_search(orchestrator: SearchOrchestrator) -> None:
    """Cold miss, then the same query from cache."""
    print_section("Cache-first search")

    for attempt in ("cold", "warm"):
        outcome = await orchestrator.search("IIT", EntityType.ORGANIZATION)
        status = "HIT" if outcome.cache_hit else "MISS"
        print(f"\n  [{attempt}] {status} in {outcome.latency_ms:.1f} ms, {outcome.total_results} results")
        for entity in outcome.results:
            print(f"    - {entity.name} ({entity.category})")


async def demo_dedup(orchestrator: SearchOrchestrator) -> None:
    """The same organization from two sources collapses to one canonical entity."""
    print_section("Cross-source deduplication")

    engine = orchestrator.engine
    first = await engine.reconcile("ext-1", "source-a", "Example University", {"country": "Exampleland"})
    second = await engine.reconcile("ext-2", "source-b", "  example   UNIVERSITY ", {"country": "Exampleland"})

    print(f"\n  source-a row: canonical={first.is_canonical} id={first.id}")
    print(f"  source-b row: canonical={second.is_canonical} points to {second.canonical_id}")


async def demo_hierarchy(orchestrator: SearchOrchestrator) -> None:
    """Reconcile an organization with programs, terms and items."""
    print_section("Hierarchy reconciliation")

    organization = RawRecord(
        external_id="demo-org",
        name="Demo Institute of Technology",
        normalized_name="demo institute of technology",
        provider="demo",
        country="India",
    )
    counts = await orchestrator.engine.reconcile_hierarchy(
        "demo",
        organization,
        [
            {
                "external_id": "demo-btech",
                "name": "Bachelor of Technology in Computer Science",
                "duration": "4 years",
                "terms": [
                    {
                        "external_id": f"demo-sem-{n}",
                        "name": f"Semester {n}",
                        "number": n,
                        "items": [{"external_id": f"demo-sub-{n}", "name": f"Subject {n}", "credits": 4}],
                    }
                    for n in (1, 2)
                ],
            }
        ],
    )
    print(f"\n  {counts}")


async def demo_duplicates(orchestrator: SearchOrchestrator, maintenance: MaintenanceService) -> None:
    """Fuzzy near-duplicate report (nothing is merged)."""
    print_section("Near-duplicate report")

    engine = orchestrator.engine
    await engine.reconcile("nd-1", "demo", "University of Exampleland", {})
    await engine.reconcile("nd-2", "demo", "University of Examplelnd", {})

    for pair in await maintenance.duplicate_report(EntityType.ORGANIZATION):
        print(f"\n  {pair.first.name!r} ~ {pair.second.name!r} ({pair.similarity:.0%})")


async def run() -> None:
    with tempfile.TemporaryDirectory() as tmp:
        database = Database.create(f"sqlite+aiosqlite:///{Path(tmp) / 'demo.db'}")
        await database.create_all()

        registry = ProviderRegistry(default="static")
        registry.register(StaticProvider())
        orchestrator = SearchOrchestrator.create(database, registry)
        maintenance = MaintenanceService(orchestrator)

        try:
            await demo_search(orchestrator)
            await demo_dedup(orchestrator)
            await demo_hierarchy(orchestrator)
            await demo_duplicates(orchestrator, maintenance)
            await orchestrator.drain()
        finally:
            await database.dispose()


def main() -> None:
    """Run all demos."""
    configure_logging("WARNING")
    print("\nContent Resolver Demo")
    print("=" * 70)
    print("Static dataset, SQLite persistent tier, no Redis")

    try:
        asyncio.run(run())

        print("\n" + "=" * 70)
        print("Demo completed successfully!")
        print("=" * 70)

    except Exception as e:
        print(f"\nError: {e}")
        print("\nInstall the package first:")
        print("  pip install -e .")


if __name__ == "__main__":
    main()
