#!/usr/bin/env python3
"""
Hatsu CLI

Command-line interface for the feed bridge:
  hatsu provision - Create a local actor for a website
  hatsu sync - Poll feeds and record activities for new items
  hatsu actor - Print an actor's ActivityPub object
  hatsu feed - Print an actor's current feed in canonical form
  hatsu delete - Remove an actor
  hatsu list - List local actors

Usage:
  hatsu [--config hatsu.yaml] provision <handle> [--name <name>]
  hatsu sync [--loop] [--interval <seconds>]
  hatsu actor <id>
  hatsu feed <id>
  hatsu delete <id>
  hatsu list

Without --config, settings are read from HATSU_* environment variables.
"""

import argparse
import json
import logging
import signal
import sys
import threading
from functools import partial
from pathlib import Path

from .activitypub.activity import ActivityStore, OutboxPublisher
from .activitypub.bridge import ActorBridge
from .activitypub.provision import Provisioner
from .config import Config
from .errors import HatsuError, NotFoundError
from .feeds.acquire import acquire
from .feeds.discovery import discover_feed
from .feeds.fetch import HttpFetcher
from .store import ActorStore
from .sync import Scheduler

logger = logging.getLogger(__name__)


def load_config(args) -> Config:
    if args.config:
        return Config.from_file(Path(args.config))
    return Config.from_env()


def open_store(config: Config) -> ActorStore:
    return ActorStore(config.data_dir)


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def _require_actor(store: ActorStore, actor_id: str):
    actor = store.get(actor_id)
    if actor is None:
        raise NotFoundError("Actor", actor_id)
    return actor


def cmd_provision(args, config: Config):
    """Create a local actor."""
    store = open_store(config)
    fetch = HttpFetcher.from_config(config)
    provisioner = Provisioner(config, store, discover=partial(discover_feed, fetch=fetch))

    actor = provisioner.provision(args.handle, display_name=args.name)
    feed = store.get_feed(actor.id)
    print(f"Created {actor.handle}")
    print(f"  JSON Feed: {feed.json or '-'}")
    print(f"  Atom: {feed.atom or '-'}")
    print(f"  RSS: {feed.rss or '-'}")
    _print_json(ActorBridge(config, store).to_protocol_object(actor).to_activitypub())


def cmd_sync(args, config: Config):
    """Run one synchronization cycle, or loop until interrupted."""
    store = open_store(config)
    activities = ActivityStore(config.data_dir / "activities")
    scheduler = Scheduler(
        config,
        store,
        publisher=OutboxPublisher(activities),
        fetch=HttpFetcher.from_config(config),
    )

    if not args.loop:
        report = scheduler.run_cycle()
        for result in report.results:
            line = f"  [{result.status.upper()}] {result.actor_id}"
            if result.new_items or result.changed_items:
                line += f" ({result.new_items} new, {result.changed_items} changed)"
            if result.error:
                line += f": {result.error}"
            print(line)
        print(f"\nSynced: {len(report.succeeded)}  Failed: {len(report.failed)}  New items: {report.new_items}")
        return 1 if report.failed else 0

    if args.interval is not None:
        config.sync_interval = args.interval

    stop = threading.Event()

    def handle_signal(signum, frame):
        print("\nShutting down...")
        stop.set()
        scheduler.shutdown()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)
    scheduler.run_forever(stop)
    return 0


def cmd_actor(args, config: Config):
    """Print an actor's protocol object."""
    store = open_store(config)
    bridge = ActorBridge(config, store)
    actor = bridge.resolve_by_id(args.id)
    if actor is None:
        raise NotFoundError("Actor", args.id)
    _print_json(bridge.to_protocol_object(actor).to_activitypub())


def cmd_feed(args, config: Config):
    """Acquire and print an actor's current feed."""
    store = open_store(config)
    actor = _require_actor(store, args.id)
    descriptor = store.get_feed(actor.id)
    if descriptor is None:
        raise NotFoundError("Feed Url", actor.preferred_username)
    feed = acquire(descriptor, actor.preferred_username, HttpFetcher.from_config(config))
    _print_json(feed.to_dict())


def cmd_delete(args, config: Config):
    """Delete an actor record."""
    store = open_store(config)
    bridge = ActorBridge(config, store)
    actor = bridge.resolve_by_id(args.id)
    if actor is None or not bridge.delete(actor):
        print(f"No actor {args.id}")
        return 0
    print(f"Deleted {args.id}")


def cmd_list(args, config: Config):
    """List local actors."""
    store = open_store(config)
    for actor in store.list(local=True):
        print(actor.id)


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="hatsu",
        description="Hatsu - bridge web feeds into ActivityPub actors",
    )
    parser.add_argument("--config", help="YAML config file (default: HATSU_* environment)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    provision_parser = subparsers.add_parser("provision", help="Create a local actor for a website")
    provision_parser.add_argument("handle", help="Site domain, e.g. blog.example.com")
    provision_parser.add_argument("--name", help="Display name (default: the handle)")

    sync_parser = subparsers.add_parser("sync", help="Poll feeds and record new items")
    sync_parser.add_argument("--loop", action="store_true", help="Keep running cycles until interrupted")
    sync_parser.add_argument("--interval", type=float, help="Seconds between cycles (with --loop)")

    actor_parser = subparsers.add_parser("actor", help="Print an actor's ActivityPub object")
    actor_parser.add_argument("id", help="Actor id (URL)")

    feed_parser = subparsers.add_parser("feed", help="Print an actor's current feed")
    feed_parser.add_argument("id", help="Actor id (URL)")

    delete_parser = subparsers.add_parser("delete", help="Delete an actor")
    delete_parser.add_argument("id", help="Actor id (URL)")

    subparsers.add_parser("list", help="List local actors")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    commands = {
        "provision": cmd_provision,
        "sync": cmd_sync,
        "actor": cmd_actor,
        "feed": cmd_feed,
        "delete": cmd_delete,
        "list": cmd_list,
    }
    command = commands.get(args.command)
    if command is None:
        parser.print_help()
        return 1

    try:
        config = load_config(args)
        return command(args, config) or 0
    except (HatsuError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
