"""FeedGuard - admission/commit dedup for republished feed articles."""

import argparse
import logging
import sys
from collections import Counter
from pathlib import Path

from feedguard.config import ConfigError, load_config
from feedguard.core import load_json, save_json, today
from feedguard.dedup import admit_batch, commit, load_store, release, save_store

ADMITTED_DIR = Path("data/admitted")


# ─────────────────────────────────────────────────────────────
# Logging setup
# ─────────────────────────────────────────────────────────────

def setup_logging():
    """Configure logging to file."""
    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)

    log_file = log_dir / f"{today()}.log"

    # File handler (detailed)
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        datefmt="%H:%M:%S"
    ))

    # Configure root logger
    logging.basicConfig(
        level=logging.INFO,
        handlers=[file_handler]
    )

    return log_file


# ─────────────────────────────────────────────────────────────
# Output formatting
# ─────────────────────────────────────────────────────────────

def print_detail(key: str, value, indent: int = 1):
    """Print a detail line."""
    prefix = "|  " * indent
    print(f"{prefix}- {key}: {value}")


def print_table(headers: list[str], rows: list[list], indent: int = 1):
    """Print a simple table."""
    prefix = "|  " * indent
    # Calculate column widths
    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(str(cell)))

    header_line = "  ".join(h.ljust(widths[i]) for i, h in enumerate(headers))
    print(f"{prefix}{header_line}")
    print(f"{prefix}{'-' * len(header_line)}")

    for row in rows:
        row_line = "  ".join(str(cell).ljust(widths[i]) for i, cell in enumerate(row))
        print(f"{prefix}{row_line}")


def print_funnel(input_count: int, output_count: int):
    """Print admission summary."""
    dropped = input_count - output_count
    pct = (output_count / input_count * 100) if input_count > 0 else 0
    print("|")
    print(f"|  {input_count} -> {output_count} ({pct:.0f}% admitted, {dropped} skipped)")
    print("-" * 50)


def print_stats(stats):
    print_detail("Posted", stats.posted)
    print_detail("Pending", stats.pending)
    print_detail("Capacity", f"{stats.total}/{stats.max_keys}")


# ─────────────────────────────────────────────────────────────
# Commands
# ─────────────────────────────────────────────────────────────

def cmd_admit(args, config, store) -> int:
    articles = load_json(args.input, default=None)
    if not isinstance(articles, list):
        print(f"Error: {args.input} must contain a JSON list of articles")
        return 1

    print(f"[Admit] {len(articles)} articles from {args.input}")
    accepted, results = admit_batch(store, articles, tracking_params=config.tracking_params)

    reasons = Counter(r.reason.value for r in results if not r.accepted)
    if reasons:
        print_table(["Reason", "Count"], [[r, n] for r, n in sorted(reasons.items())])
    print_funnel(len(results), len(accepted))

    output = Path(args.output) if args.output else ADMITTED_DIR / today() / "all.json"
    if not save_json([a.to_dict() for a in accepted], output):
        print(f"Error: could not write {output}")
        return 1
    print(f"Saved {len(accepted)} admitted articles to {output}")
    return 0


def _keys_from_file(path: str) -> list[str] | None:
    """Read keys from a JSON list of keys or of admitted articles."""
    data = load_json(path, default=None)
    if not isinstance(data, list):
        return None
    keys = []
    for entry in data:
        if isinstance(entry, str):
            keys.append(entry)
        elif isinstance(entry, dict) and entry.get("dedupeKey"):
            keys.append(entry["dedupeKey"])
    return keys


def cmd_commit(args, config, store) -> int:
    keys = list(args.keys)
    if args.from_file:
        file_keys = _keys_from_file(args.from_file)
        if file_keys is None:
            print(f"Error: {args.from_file} must contain a JSON list")
            return 1
        keys.extend(file_keys)

    count = commit(store, keys)
    print(f"[Commit] {count} keys promoted to posted")
    print_stats(store.stats())
    return 0


def cmd_release(args, config, store) -> int:
    count = release(store, args.keys)
    print(f"[Release] {count} of {len(args.keys)} leases dropped")
    return 0


def cmd_gc(args, config, store) -> int:
    now = store.now()
    removed = store.collect_garbage(now)
    evicted = store.enforce_capacity(now)
    print(f"[GC] {removed} expired, {evicted} evicted")
    print_stats(store.stats(now))
    return 0


def cmd_stats(args, config, store) -> int:
    print(f"[Stats] {args.state or config.state_file}")
    print_stats(store.stats())
    return 0


COMMANDS = {
    "admit": (cmd_admit, True),
    "commit": (cmd_commit, True),
    "release": (cmd_release, True),
    "gc": (cmd_gc, True),
    "stats": (cmd_stats, False),
}


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="FeedGuard - at-most-once admission for feed articles",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py admit data/raw/today.json        # Admit a polled batch
  python main.py commit --from data/admitted/2024-01-01/all.json
  python main.py release u:https://example.com/a  # Allow an early retry
  python main.py stats
        """
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="YAML config file (default: config/dedup.yaml)"
    )

    parser.add_argument(
        "--state",
        type=str,
        default=None,
        help="State snapshot file (default: state_file from config)"
    )

    sub = parser.add_subparsers(dest="command", required=True)

    p_admit = sub.add_parser("admit", help="Admit a JSON list of articles")
    p_admit.add_argument("input", help="JSON file with a list of articles")
    p_admit.add_argument(
        "-o", "--output",
        default=None,
        help="Where to write admitted articles (default: data/admitted/{date}/all.json)"
    )

    p_commit = sub.add_parser("commit", help="Promote keys after delivery")
    p_commit.add_argument("keys", nargs="*", help="Dedupe keys")
    p_commit.add_argument(
        "--from",
        dest="from_file",
        default=None,
        help="JSON list of keys or admitted articles"
    )

    p_release = sub.add_parser("release", help="Drop leases so keys can be retried")
    p_release.add_argument("keys", nargs="+", help="Dedupe keys")

    sub.add_parser("gc", help="Expire old entries and enforce capacity")
    sub.add_parser("stats", help="Show live entry counts")

    return parser.parse_args(argv)


def run(argv=None) -> int:
    """Run one command against the persisted store."""
    args = parse_args(argv)

    log_file = setup_logging()
    logger = logging.getLogger(__name__)
    logger.info(f"FeedGuard {args.command} started")

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Config error: {e}")
        return 1

    state_file = Path(args.state) if args.state else config.state_file
    store = load_store(state_file, config)

    handler, mutates = COMMANDS[args.command]
    code = handler(args, config, store)

    if code == 0 and mutates and not save_store(store, state_file):
        print(f"Error: could not save state to {state_file}")
        code = 1

    logger.info(f"FeedGuard {args.command} finished with code {code}")
    print(f"(log: {log_file})")
    return code


if __name__ == "__main__":
    try:
        sys.exit(run())
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        sys.exit(1)
