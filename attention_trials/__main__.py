from __future__ import annotations

import argparse
import json
from pathlib import Path

from .app import run


def main(argv: list[str] | None = None) -> int:
    """Run a block of trials in a window (the built-in demo block by default)."""

    parser = argparse.ArgumentParser(prog="attention_trials")
    parser.add_argument("trials", nargs="?", type=Path, help="JSON file holding a list of trial parameter objects")
    args = parser.parse_args(argv)

    trials = None
    if args.trials is not None:
        trials = json.loads(args.trials.read_text(encoding="utf-8"))
        if not isinstance(trials, list):
            parser.error("trials file must hold a JSON list")
    return run(trials=trials)


if __name__ == "__main__":
    raise SystemExit(main())
