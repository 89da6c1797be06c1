#!/usr/bin/env python3
"""
BizForge CLI - Main Entry Point

Usage:
    bizforge start requirement.json     # Start a generation run and follow it
    bizforge start requirement.json --no-watch
    bizforge watch <job_id>             # Follow an already running job
    bizforge --help                     # Show help

requirement.json holds the body of POST /api/v1/orchestrations:
    {"requirement": {...}, "application": {"id": "...", "name": "..."}, "options": {...}}
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
from rich.console import Console

from cli.config import CLIConfig
from cli.push_client import ConnectionStatus, ProgressChannelClient, TransportError


EXIT_OK = 0
EXIT_FAILED = 1
EXIT_TRANSPORT = 2

STATUS_STYLES = {
    ConnectionStatus.CONNECTED: "green",
    ConnectionStatus.RECONNECTING: "yellow",
    ConnectionStatus.FAILED: "red",
}


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for CLI"""
    parser = argparse.ArgumentParser(
        prog="bizforge",
        description="BizForge - generate business applications and follow their progress",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  bizforge start requirement.json          Start a run and watch its progress
  bizforge start requirement.json --no-watch
  bizforge watch crm-app                   Follow the progress of job crm-app

Environment:
  BIZFORGE_API_URL    API base URL (default http://localhost:8000/api/v1)
  BIZFORGE_WS_URL     WebSocket base URL (default ws://localhost:8000)
""",
    )
    parser.add_argument("--config", help="JSON file with CLI settings")
    parser.add_argument("--api-url", help="API base URL")
    parser.add_argument("--ws-url", help="WebSocket base URL")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show connection status changes")

    subparsers = parser.add_subparsers(dest="command")

    start = subparsers.add_parser("start", help="Start a generation run")
    start.add_argument("requirement", help="Path to the request JSON file")
    start.add_argument("--no-watch", action="store_true", help="Return as soon as the job is accepted")

    watch = subparsers.add_parser("watch", help="Follow a job's progress")
    watch.add_argument("job_id", help="Job id (the application id)")

    return parser


def load_config(args: argparse.Namespace) -> CLIConfig:
    config = CLIConfig.load_default(args.config)
    if args.api_url:
        config.api_base_url = args.api_url
    if args.ws_url:
        config.ws_base_url = args.ws_url
    if args.verbose:
        config.verbose = True
    return config


def render_progress(console: Console, data: Dict[str, Any]) -> None:
    """Print one generation_progress payload"""
    stage = data.get("stage", "?")
    percent = data.get("progress", 0)
    style = "red" if stage == "failed" else "green" if stage == "completed" else "cyan"

    line = f"[{style}]{percent:>3}%[/{style}] [bold]{stage}[/bold] {data.get('message', '')}"
    if data.get("currentComponent"):
        line += f" [dim]({data['currentComponent']})[/dim]"
    console.print(line)

    for error in data.get("errors") or []:
        console.print(f"      [red]✗ {error}[/red]")


def read_request(path: str) -> Dict[str, Any]:
    with open(Path(path)) as f:
        body = json.load(f)
    if "requirement" not in body or "application" not in body:
        raise ValueError("request file needs 'requirement' and 'application'")
    return body


async def start_job(config: CLIConfig, body: Dict[str, Any]) -> Dict[str, Any]:
    """POST the request; returns the job response"""
    async with httpx.AsyncClient(timeout=config.timeout) as client:
        response = await client.post(f"{config.api_base_url.rstrip('/')}/orchestrations", json=body)
        if response.status_code >= 400:
            try:
                error = response.json().get("error", {})
                message = error.get("message", response.text)
            except ValueError:
                message = response.text
            raise RuntimeError(f"{response.status_code}: {message}")
        return response.json()


async def watch_job(config: CLIConfig, console: Console, job_id: str) -> int:
    """Follow a job until it completes or fails; returns the exit code"""
    def on_status_change(status: ConnectionStatus) -> None:
        if config.verbose or status in (ConnectionStatus.RECONNECTING, ConnectionStatus.FAILED):
            style = STATUS_STYLES.get(status, "dim")
            console.print(f"[{style}]● {status.value}[/{style}]")

    client = ProgressChannelClient(
        config.progress_url(job_id),
        on_progress=lambda data: render_progress(console, data),
        on_error=lambda message: console.print(f"[red]Error: {message}[/red]"),
        on_status_change=on_status_change,
        config=config,
    )

    try:
        await client.run()
    except TransportError:
        return EXIT_TRANSPORT

    last_stage: Optional[str] = (client.last_progress or {}).get("stage")
    if last_stage == "completed":
        console.print(f"\n[green]✓ {job_id} generated[/green]")
        return EXIT_OK
    if last_stage == "failed":
        console.print(f"\n[red]✗ {job_id} failed[/red]")
    return EXIT_FAILED


async def run_start(config: CLIConfig, console: Console, path: str, watch: bool) -> int:
    try:
        body = read_request(path)
    except (OSError, ValueError) as e:
        console.print(f"[red]Cannot read {path}: {e}[/red]")
        return EXIT_FAILED

    try:
        job = await start_job(config, body)
    except (httpx.HTTPError, RuntimeError) as e:
        console.print(f"[red]Could not start job: {e}[/red]")
        return EXIT_FAILED

    console.print(f"[bold]Job {job['job_id']}[/bold] {job['status']}")
    if not watch:
        console.print(f"[dim]Progress: {config.ws_base_url.rstrip('/')}{job['progress_url']}[/dim]")
        return EXIT_OK

    return await watch_job(config, console, job["job_id"])


def main():
    """Main entry point"""
    parser = create_parser()
    args = parser.parse_args()

    console = Console()
    config = load_config(args)

    if args.command is None:
        parser.print_help()
        sys.exit(EXIT_FAILED)

    try:
        if args.command == "start":
            code = asyncio.run(run_start(config, console, args.requirement, not args.no_watch))
        else:
            code = asyncio.run(watch_job(config, console, args.job_id))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        code = 130

    sys.exit(code)


if __name__ == "__main__":
    main()
