#!/usr/bin/env python3
"""
Master Web Console - Entry Point
================================
Starts the master node's web console from the command line.

Usage:
    python app.py                          # Settings from config.yaml / .env
    python app.py --port 0                 # Let the OS pick a free port
    python app.py --state snapshot.json    # Serve a saved master snapshot

This script:
    1. Loads environment variables from .env
    2. Loads configuration from config.yaml (command-line args override it)
    3. Builds the master state the pages read from
    4. Starts the web server and blocks until Ctrl+C or SIGTERM
"""

import argparse
import dataclasses
import json
import logging
import os
import signal
import threading

from dotenv import load_dotenv

from webui.config import ConfigManager
from webui.main import UIWebServer
from webui.state import MasterSummary, StaticMasterState


def load_master_state(path: str | None, address: str) -> StaticMasterState:
    """
    Load a master snapshot from a JSON file, or create an empty one.

    Args:
        path:    JSON snapshot file, see StaticMasterState.from_dict().
        address: Master address shown when no snapshot is given.
    """
    if not path:
        return StaticMasterState(MasterSummary(master_address=address))
    with open(path, "r", encoding="utf-8") as f:
        return StaticMasterState.from_dict(json.load(f))


def main():
    """Parse arguments, load config, and run the web server until stopped."""

    # -- Parse command-line arguments ------------------------------------------
    parser = argparse.ArgumentParser(
        description="Master node web console",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--host", type=str, default=None,
        help="Host binding address (overrides config.yaml)",
    )
    parser.add_argument(
        "--port", type=int, default=None,
        help="Port number, 0 for an ephemeral port (overrides config.yaml)",
    )
    parser.add_argument(
        "--threads", type=int, default=None,
        help="Acceptor thread count (overrides config.yaml)",
    )
    parser.add_argument(
        "--state", type=str, default=None,
        help="JSON snapshot of the master state to serve",
    )
    args = parser.parse_args()

    # -- Load environment and configuration ------------------------------------
    project_dir = os.path.dirname(os.path.abspath(__file__))
    env_path = os.path.join(project_dir, ".env")
    if os.path.exists(env_path):
        load_dotenv(env_path)

    config_manager = ConfigManager(project_dir)
    settings = config_manager.load()

    logging.basicConfig(
        level=getattr(logging, str(settings["logging"]["level"]).upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    log = logging.getLogger("webui")
    if "_config_error" in settings:
        log.warning(f"Ignoring config.yaml: {settings['_config_error']}")

    server_config = config_manager.server_config(settings)
    if args.threads is not None:
        server_config = dataclasses.replace(server_config, thread_count=args.threads)
    host, port = config_manager.bind_address(settings)
    host = args.host or host
    port = port if args.port is None else args.port

    # -- Start the web server --------------------------------------------------
    master = load_master_state(args.state, f"{host}:{port}")
    server = UIWebServer(settings["web"]["name"], (host, port), master, server_config, logger=log)
    server.start()

    print()
    print(f"  Console : {server.address.url('/home')}")
    print(f"  Assets  : {server.document_root}")
    print()

    # -- Block until asked to stop ---------------------------------------------
    stop_requested = threading.Event()
    signal.signal(signal.SIGTERM, lambda signum, frame: stop_requested.set())
    try:
        stop_requested.wait()
    except KeyboardInterrupt:
        pass
    finally:
        server.stop()


if __name__ == "__main__":
    main()
