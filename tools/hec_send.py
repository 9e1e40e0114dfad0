#!/usr/bin/env python3
"""
heclogger Send Tool
Sends events to an HTTP Event Collector and reports what happened
"""

import argparse
import asyncio
import json
import os
import sys
from typing import Any

from rich.console import Console
from rich.table import Table

from heclogger import ConfigError, ContextError, HecLogger, Level

# Rich console for pretty output
console = Console()


class EventSender:
    def __init__(self, config: dict[str, Any], transport=None):
        self.hec = HecLogger(config, transport=transport)
        self.failures: list[dict[str, Any]] = []
        self.hec.error = self.record_failure

    def record_failure(self, error: Exception, context: Any):
        """Error sink: remember every failed delivery"""
        self.failures.append({"error": type(error).__name__, "detail": str(error)})

    async def send_each(self, messages: list[str], severity: str, source: str | None) -> list[dict]:
        """Send messages one request at a time"""
        results = []
        for message in messages:
            metadata = {"source": source} if source else {}
            task = self.hec.send({"message": message, "severity": severity, "metadata": metadata})
            outcome = await task if task is not None else None
            results.append(self.describe(message, outcome))
        return results

    async def send_batch(self, messages: list[str], severity: str, source: str | None) -> list[dict]:
        """Queue every message and send them in one request"""
        self.hec.configure({"auto_flush": False})
        metadata = {"source": source} if source else {}
        for message in messages:
            self.hec.send({"message": message, "severity": severity, "metadata": metadata})
        outcome = await self.hec.flush()
        return [self.describe(f"{len(messages)} events", outcome)]

    def describe(self, label: str, outcome) -> dict:
        """Summarize a DeliveryResult as a table row"""
        if outcome is None:
            return {"event": label, "status": "skipped", "attempts": 0, "detail": ""}
        if outcome.ok:
            status, detail = "sent", json.dumps(outcome.body) if outcome.body is not None else ""
        elif outcome.error is not None:
            status, detail = "failed", str(outcome.error)
        else:
            status, detail = "rejected", str(outcome.service_error)
        return {"event": label, "status": status, "attempts": outcome.attempts, "detail": detail}

    def display_results_table(self, results: list[dict]):
        """Display delivery results in a table"""
        table = Table(title="Delivery Results", show_header=True)
        table.add_column("Event", style="cyan")
        table.add_column("Status", style="green")
        table.add_column("Attempts", style="magenta", width=8)
        table.add_column("Detail", style="white")

        colors = {"sent": "green", "rejected": "yellow", "failed": "red", "skipped": "white"}
        for row in results:
            color = colors[row["status"]]
            table.add_row(
                row["event"][:60],
                f"[{color}]{row['status']}[/{color}]",
                str(row["attempts"]),
                row["detail"][:80],
            )

        console.print(table)

    async def close(self):
        await self.hec.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Send events to an HTTP Event Collector")
    parser.add_argument("messages", nargs="*",
                        help="Messages to send (read from stdin, one per line, if omitted)")
    parser.add_argument("--token", default=os.getenv("HEC_TOKEN"),
                        help="Collector token (default: $HEC_TOKEN)")
    parser.add_argument("--url", default=os.getenv("HEC_URL"),
                        help="Collector URL (default: $HEC_URL)")
    parser.add_argument("--severity", default=Level.INFO.value,
                        choices=[level.value for level in Level],
                        help="Severity for every event")
    parser.add_argument("--source", help="Event source metadata")
    parser.add_argument("--max-retries", type=int, default=0,
                        help="Retries after a transport failure")
    parser.add_argument("--batch", action="store_true",
                        help="Send all messages in a single request")
    parser.add_argument("--json", action="store_true",
                        help="Output in JSON format")
    return parser


async def main(argv: list[str] | None = None, transport=None) -> int:
    args = build_parser().parse_args(argv)

    messages = args.messages or [line.rstrip("\n") for line in sys.stdin if line.strip()]
    if not messages:
        console.print("[yellow]No messages to send[/yellow]")
        return 0

    config = {"token": args.token, "url": args.url, "max_retries": args.max_retries}
    try:
        sender = EventSender(config, transport=transport)
    except ConfigError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        return 2

    try:
        if args.batch:
            results = await sender.send_batch(messages, args.severity, args.source)
        else:
            results = await sender.send_each(messages, args.severity, args.source)
    except ContextError as e:
        console.print(f"[red]Invalid event: {e}[/red]")
        return 2
    finally:
        await sender.close()

    if args.json:
        print(json.dumps({"results": results, "failures": sender.failures}, indent=2))
    else:
        sender.display_results_table(results)
        console.print("\n[bold]Summary:[/bold]")
        console.print(f"  • Requests: {len(results)}")
        console.print(f"  • Sent: {sum(1 for r in results if r['status'] == 'sent')}")
        console.print(f"  • Failures reported: {len(sender.failures)}")

    return 1 if sender.failures else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
