#!/usr/bin/env python3
"""
Command-line wrapper for the stablecx accuracy co-processor.

Usage examples:
  stablecx-check --task '{"type": "eval", "op": "sqrt", "args": [[-4, 0]]}' --pretty
  stablecx-check --file task.json --dps 60
  echo '{"type": "check", "op": "div", "args": [[1, 1], [1e-200, 1e-200]]}' | stablecx-check --pretty
"""

import json
import logging
import sys
from argparse import ArgumentParser, Namespace
from pathlib import Path
from typing import Any, Dict, List, Optional

import mpmath as mp

from stablecx_check import solve


def _load_task(args: Namespace) -> Dict[str, Any]:
    """Read the task from --task, --file or stdin; exit 1 on anything that is not a JSON object."""
    if args.task:
        source, read = "--task", lambda: args.task
    elif args.file:
        source, read = args.file, lambda: Path(args.file).read_text()
    else:
        source, read = "stdin", sys.stdin.read
    try:
        task = json.loads(read())
    except (OSError, ValueError) as e:
        print(f"Could not load task from {source}: {e}", file=sys.stderr)
        sys.exit(1)
    if not isinstance(task, dict):
        print(f"Task from {source} must be a JSON object", file=sys.stderr)
        sys.exit(1)
    return task


def main(argv: Optional[List[str]] = None) -> None:
    parser = ArgumentParser(description="stablecx accuracy co-processor CLI")
    parser.add_argument("--task", help="Task JSON string")
    parser.add_argument("--file", help="Path to a JSON file containing the task")
    parser.add_argument("--pretty", action="store_true", help="Pretty-print the output")
    parser.add_argument("--dps", type=int, help="Working precision (decimal digits) for the mpmath reference")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    task = _load_task(args)

    # solver failures become an error payload; the CLI itself never crashes
    try:
        if args.dps:
            with mp.workdps(args.dps):
                result = solve(task)
        else:
            result = solve(task)
    except Exception as e:
        logging.getLogger(__name__).debug("solver failed", exc_info=True)
        result = {"status": "error", "error": str(e)}

    if args.pretty:
        print(json.dumps(result, indent=2))
    else:
        print(json.dumps(result))


if __name__ == "__main__":
    main()
