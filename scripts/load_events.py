import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List

import httpx


class OrderEventLoader:
    def __init__(self, api_url: str, timeout: float = 30.0):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.endpoint = f"{self.api_url}/v1/orders/events"

    def read_events(self, file_path: Path) -> List[Dict[str, Any]]:
        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        events = []
        with open(file_path, "r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    events.append(json.loads(line))
                except json.JSONDecodeError as e:
                    print(f"Warning: JSON decode error at line {line_num}: {e}")

        print(f"Loaded {len(events)} order events from {file_path.name}")
        return events

    async def send_events(self, events: List[Dict[str, Any]]) -> Dict[str, Any]:
        stats: Dict[str, Any] = {
            "total": len(events),
            "created": 0,
            "replayed": 0,
            "failed": 0,
            "errors": [],
        }

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            print(f"\nSending {len(events)} events to {self.endpoint}")
            print("-" * 60)

            for idx, event in enumerate(events, 1):
                label = f"{event.get('event_type', 'unknown')} {event.get('order_id', 'unknown')}"

                try:
                    response = await client.post(self.endpoint, json=event)
                except httpx.RequestError as e:
                    stats["failed"] += 1
                    print(f"[{idx}/{len(events)}] ERROR: {label} - Connection error: {e}")
                    stats["errors"].append({"event": label, "error": str(e)})
                    continue

                if response.status_code == 201:
                    stats["created"] += 1
                    print(f"[{idx}/{len(events)}] CREATED: {label}")
                elif response.status_code == 200:
                    body = response.json()
                    failed = len((body.get("result") or {}).get("failed", []))
                    if body.get("idempotent"):
                        stats["replayed"] += 1
                        print(f"[{idx}/{len(events)}] REPLAYED: {label}")
                    else:
                        print(f"[{idx}/{len(events)}] APPLIED: {label} ({failed} item failures)")
                else:
                    stats["failed"] += 1
                    detail = response.text[:100]
                    print(
                        f"[{idx}/{len(events)}] FAILED: {label} - {response.status_code}: {detail}"
                    )
                    stats["errors"].append(
                        {"event": label, "status": response.status_code, "detail": detail}
                    )

        return stats

    def print_summary(self, stats: Dict[str, Any]) -> None:
        print("\n" + "=" * 60)
        print("LOADING SUMMARY")
        print("=" * 60)
        print(f"Total events:     {stats['total']}")
        print(f"Created:          {stats['created']}")
        print(f"Replayed:         {stats['replayed']}")
        print(f"Failed:           {stats['failed']}")

        if stats["errors"]:
            print(f"\nWarning: {len(stats['errors'])} errors detected")


async def main() -> int:
    """Replay order events from a JSONL file against the API."""
    parser = argparse.ArgumentParser(description="Load order events from a JSONL file")
    parser.add_argument(
        "--file", type=str, required=True, help="Path to JSONL file of order events"
    )
    parser.add_argument(
        "--url",
        type=str,
        default="http://localhost:8000",
        help="Base URL of the API (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=30.0,
        help="Request timeout in seconds (default: 30)",
    )
    args = parser.parse_args()

    loader = OrderEventLoader(api_url=args.url, timeout=args.timeout)
    try:
        events = loader.read_events(Path(args.file))
    except FileNotFoundError as e:
        print(f"\nError: {e}")
        return 1

    stats = await loader.send_events(events)
    loader.print_summary(stats)
    return 1 if stats["failed"] else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
