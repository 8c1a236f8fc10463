"""Command-line interface for ged."""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

from . import __version__
from .errors import GedError
from .pattern import parse_pattern
from .resolver import find_in_packages
from .semantic.loader import GoLoader

logger = logging.getLogger(__name__)


def cmd_find(args: argparse.Namespace) -> int:
    """Find the uses of a symbol in the given packages."""
    try:
        pattern = parse_pattern(args.pattern)
        logger.debug("pattern %s", pattern)

        loader = GoLoader(Path(args.dir))
        packages = loader.load(args.packages)
        logger.debug("loaded %d package(s)", len(packages))

        matches = find_in_packages(pattern, packages, jobs=args.jobs)

        if args.json:
            print(json.dumps(matches.to_dict(), indent=2))
        else:
            sys.stdout.write(matches.render())
        return 0

    except GedError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="ged",
        description="Find every use of a Go symbol, a struct field or a method "
        "across packages, using resolved type information.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--pattern", "-p", required=True,
        help="<pkg path>:<ident>[:<field>|<method>()], each part a regular expression",
    )
    parser.add_argument(
        "packages", nargs="*",
        help="Package patterns: '.', './dir', './...', '<module>/dir' (default: .)",
    )
    parser.add_argument(
        "--dir", "-C", default=os.environ.get("GED_DIR", "."),
        help="Directory to run in (default: $GED_DIR or the current directory)",
    )
    parser.add_argument(
        "--jobs", "-j", type=int, default=os.environ.get("GED_JOBS", "1"),
        help="Packages to resolve in parallel (default: $GED_JOBS or 1)",
    )
    parser.add_argument(
        "--json", action="store_true", help="Output as JSON"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Log loading details to stderr"
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    return cmd_find(args)


if __name__ == "__main__":
    sys.exit(main())
