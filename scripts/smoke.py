# scripts/smoke.py
"""
Smoke Test Script for the pagestate hydrator.

Runs one hydration per URL against a live backend node and prints a short
summary of each snapshot plus the recorded spans.

Usage
-----
1. Hydrate the default pages against BACKEND_URL (or the public node):
    $ uv run python scripts/smoke.py

2. Hydrate specific pages in full render mode:
    $ uv run python scripts/smoke.py --full /@alice /hot/hive-167922
"""

import argparse
import asyncio
import logging
import sys
import traceback
import uuid
from pathlib import Path

from dotenv import load_dotenv

from pagestate.core.settings import load_settings
from pagestate.core.timing.registry import RequestTimer
from pagestate.core.timing.trace import TimingRecord
from pagestate.pipelines.hydrate import HydrationError, StateAssembler

# --------------------------------------------------------------------------- #
# Environment Setup
# --------------------------------------------------------------------------- #
env_path = Path(".env")
if env_path.exists():
    load_dotenv(env_path)
    print("✅ Loaded .env file")
else:
    print("⚠️  No .env file found, using BACKEND_URL from the environment or the default.")

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

DEFAULT_URLS = ["/trending", "/hot/photography", "/@steemitblog"]


async def _run(urls: list[str], full_render: bool) -> int:
    records: list[TimingRecord] = []
    settings = load_settings().model_copy(update={"time_log": True})
    assembler = StateAssembler.from_settings(settings, sink=records.append)
    print(f"\n🔌 Backend: {settings.backend_url}")

    failures = 0
    for url in urls:
        request_timer = RequestTimer()
        rid = uuid.uuid4().hex[:8]
        try:
            snapshot = await assembler.hydrate(
                url,
                full_render=full_render,
                request_id=rid,
                request_timer=request_timer,
            )
        except HydrationError as exc:
            failures += 1
            print(f"\n❌ {url}: {exc}")
            traceback.print_exception(exc.cause)
            continue

        print(f"\n✅ {url} (request {rid})")
        print(f"  - content entries: {len(snapshot.content)}")
        for tag, sorts in snapshot.discussion_idx.items():
            for sort, keys in sorts.items():
                print(f"  - index [{tag or '*'}][{sort}]: {len(keys)} keys")
        print(f"  - communities: {list(snapshot.community)}")
        print(f"  - profiles: {list(snapshot.profiles)}")
        if snapshot.topics is not None:
            print(f"  - topics: {len(snapshot.topics)}")
        for name, elapsed in request_timer.durations().items():
            print(f"  - {name}: {elapsed:.1f}ms")

    print("\n🕵️  Spans:")
    for record in records:
        print(f"  {record.label}: {record.elapsed_ms:.1f}ms")
    return failures


def main() -> None:
    """Execute the smoke test workflow."""
    parser = argparse.ArgumentParser(description="Run pagestate smoke test")
    parser.add_argument("urls", nargs="*", help="Page URL paths to hydrate")
    parser.add_argument("--full", action="store_true", help="Use full render mode")
    args = parser.parse_args()

    failures = asyncio.run(_run(args.urls or DEFAULT_URLS, args.full))
    print("\n" + "=" * 60)
    print("✅ Smoke run finished" if not failures else f"❌ {failures} hydration(s) failed")
    print("=" * 60)
    sys.exit(1 if failures else 0)


if __name__ == "__main__":
    main()
