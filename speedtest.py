#!/usr/bin/env python3
"""
netspeed CLI -- speedtest.net latency, download and upload from the terminal.

Usage::

    python speedtest.py                          # rich dashboard
    python speedtest.py --simple                 # plain text
    python speedtest.py --json                   # JSON to stdout
    python speedtest.py --list-servers           # ranked candidates and exit
    python speedtest.py --server 12345           # test a specific candidate
    python speedtest.py --download-retries 4     # more units per size tier
    python speedtest.py --no-upload -v           # skip upload, debug logging
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, Optional

from netspeed.client import SpeedTestClient
from netspeed.config import load_config
from netspeed.constants import (
    MAX_CONCURRENCY,
    MAX_RETRIES,
    MIN_CONCURRENCY,
    MIN_RETRIES,
)
from netspeed.errors import SpeedtestException
from netspeed.logging_setup import configure_logging
from ui.dashboard import (
    ProgressDisplay,
    console,
    print_client_info,
    print_final_results,
    print_header,
    print_server_selection,
    print_speed_result,
)
from ui.output import create_result_json, format_text_result

LOGGER = logging.getLogger("speedtest")


# ---------------------------------------------------------------------------
# Parameter validation
# ---------------------------------------------------------------------------

def _validate(
    latency_retries: int,
    download_retries: int,
    upload_retries: int,
    download_concurrency: Optional[int] = None,
    upload_concurrency: Optional[int] = None,
) -> None:
    """Raise ``ValueError`` if any parameter is out of range."""
    for name, value in (
        ("Latency retries", latency_retries),
        ("Download retries", download_retries),
        ("Upload retries", upload_retries),
    ):
        if not MIN_RETRIES <= value <= MAX_RETRIES:
            raise ValueError(f"{name} must be between {MIN_RETRIES} and {MAX_RETRIES}")
    for name, value in (
        ("Download concurrency", download_concurrency),
        ("Upload concurrency", upload_concurrency),
    ):
        if value is not None and not MIN_CONCURRENCY <= value <= MAX_CONCURRENCY:
            raise ValueError(f"{name} must be between {MIN_CONCURRENCY} and {MAX_CONCURRENCY}")


# ---------------------------------------------------------------------------
# Core test runner
# ---------------------------------------------------------------------------

async def run_speedtest(
    client: SpeedTestClient,
    *,
    json_output: bool = False,
    simple: bool = False,
    server_id: Optional[int] = None,
    latency_retries: int = 3,
    download_retries: int = 2,
    upload_retries: int = 2,
    download: bool = True,
    upload: bool = True,
) -> Optional[Dict[str, Any]]:
    """Run the tests against an initialised *client* and return a JSON-serialisable dict."""

    show_ui = not json_output and not simple

    server = client.best_server
    if server_id:
        matches = [s for s in client.servers if s.id == server_id]
        if not matches:
            console.print(f"[red]Error: Server {server_id} is not among the ranked candidates[/red]")
            return None
        server = matches[0]

    if show_ui:
        info = client.settings.client
        print_client_info(ip=info.ip, isp=info.isp, location=info.country)
        print_server_selection(client.servers, selected=server)
        console.print(f"\n[green]Selected server:[/green] {server.name} ({server.sponsor})")

    # -- Latency ------------------------------------------------------------
    if show_ui:
        console.print("\n[bold]Testing latency...[/bold]")
    latency_ms = await client.test_latency(server, retry_count=latency_retries)

    # -- Download -----------------------------------------------------------
    dl_result = None
    if download:
        progress = None
        if show_ui:
            console.print("\n[bold]Testing download speed...[/bold]")
            progress = ProgressDisplay()
            progress.start("Downloading")
        try:
            dl_result = await client.run_download(
                download_retries, server, on_progress=progress.update if progress else None
            )
        finally:
            if progress:
                progress.stop()
        if show_ui:
            print_speed_result(dl_result, "Download Results", "green")

    # -- Upload -------------------------------------------------------------
    ul_result = None
    if upload:
        progress = None
        if show_ui:
            console.print("\n[bold]Testing upload speed...[/bold]")
            progress = ProgressDisplay()
            progress.start("Uploading")
        try:
            ul_result = await client.run_upload(
                upload_retries, server, on_progress=progress.update if progress else None
            )
        finally:
            if progress:
                progress.stop()
        if show_ui:
            print_speed_result(ul_result, "Upload Results", "blue")

    # -- Summary ------------------------------------------------------------
    download_kbps = dl_result.speed_kbps if dl_result else None
    upload_kbps = ul_result.speed_kbps if ul_result else None

    if show_ui:
        print_final_results(
            latency_ms=latency_ms,
            download_kbps=download_kbps,
            upload_kbps=upload_kbps,
            server_name=server.name,
            server_sponsor=server.sponsor,
        )
    elif simple:
        print(format_text_result(latency_ms, download_kbps, upload_kbps))

    result_json = create_result_json(
        client_info=client.settings.client.to_dict(),
        server_info=server.to_dict(),
        latency_ms=latency_ms,
        download_results=dl_result.to_dict() if dl_result else None,
        upload_results=ul_result.to_dict() if ul_result else None,
        server_selection=[s.to_dict() for s in client.servers],
    )

    if json_output:
        print(json.dumps(result_json, indent=2))

    return result_json


async def _main_async(args: argparse.Namespace, config: Dict[str, Any]) -> None:
    show_ui = not args.json and not args.simple
    if show_ui:
        print_header()
        console.print("[dim]Getting speedtest.net settings and server list...[/dim]")

    async with SpeedTestClient(
        config_url=config["config_url"],
        servers_url=config["servers_url"],
        candidate_limit=config["candidate_limit"],
        latency_retries=args.latency_retries,
        download_concurrency=args.download_concurrency,
        upload_concurrency=args.upload_concurrency,
        tolerate_failures=args.skip_failed,
    ) as client:
        if args.list_servers:
            print_server_selection(client.servers, selected=client.best_server)
            return

        await run_speedtest(
            client,
            json_output=args.json,
            simple=args.simple,
            server_id=args.server,
            latency_retries=args.latency_retries,
            download_retries=args.download_retries,
            upload_retries=args.upload_retries,
            download=not args.no_download,
            upload=not args.no_upload,
        )


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def build_parser(config: Dict[str, Any]) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="netspeed -- speedtest.net latency and throughput testing",
    )
    # Output modes
    parser.add_argument("--json", "-j", action="store_true", help="Output results as JSON")
    parser.add_argument("--simple", "-s", action="store_true", help="Simple output mode (no dashboard)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging on stderr")

    # Server selection
    parser.add_argument("--server", type=int, default=config["server"], metavar="ID", help="Use a specific ranked server by ID")
    parser.add_argument("--list-servers", action="store_true", help="List ranked candidate servers and exit")

    # Test parameters
    parser.add_argument("--latency-retries", type=int, default=config["latency_retries"], metavar="N", help="Latency probes per server (default: 3)")
    parser.add_argument("--download-retries", type=int, default=config["download_retries"], metavar="N", help="Downloads per size tier (default: 2)")
    parser.add_argument("--upload-retries", type=int, default=config["upload_retries"], metavar="N", help="Uploads per size tier (default: 2)")
    parser.add_argument("--download-concurrency", type=int, default=config["download_concurrency"], metavar="N", help="Parallel downloads (default: from speedtest.net)")
    parser.add_argument("--upload-concurrency", type=int, default=config["upload_concurrency"], metavar="N", help="Parallel uploads (default: from speedtest.net)")
    parser.add_argument("--skip-failed", action="store_true", help="Count failed transfers as zero bytes instead of aborting")
    parser.add_argument("--no-download", action="store_true", help="Skip the download test")
    parser.add_argument("--no-upload", action="store_true", help="Skip the upload test")

    return parser


def main() -> None:
    config = load_config()
    args = build_parser(config).parse_args()

    configure_logging("DEBUG" if args.verbose else config["log_level"])

    try:
        _validate(
            latency_retries=args.latency_retries,
            download_retries=args.download_retries,
            upload_retries=args.upload_retries,
            download_concurrency=args.download_concurrency,
            upload_concurrency=args.upload_concurrency,
        )
    except ValueError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        sys.exit(1)

    try:
        asyncio.run(_main_async(args, config))
    except KeyboardInterrupt:
        console.print("\n[yellow]Test cancelled by user[/yellow]")
        sys.exit(1)
    except SpeedtestException as exc:
        LOGGER.debug("Speed test failed", exc_info=True)
        console.print(f"\n[red]Error: {exc}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
