#!/usr/bin/env python3
"""
Blipworks - Main Entry Point

Command-line tools for inspecting and running blip machines headlessly.
"""

import argparse
import logging
import sys


def run_blocks():
    """List the block catalog."""
    from blipworks.machine.block import BLOCK_CATALOG

    print("Available blocks:")
    print()
    for key, block in BLOCK_CATALOG.items():
        print(f"  {key:20s} {block.name:20s} {block.description}")
    return 0


def run_machine(args):
    """Load a machine and run it for a number of ticks."""
    from blipworks.config import ExecConfig
    from blipworks.exec.exec import Exec
    from blipworks.machine.saved import decode_machine_code, load_machine

    try:
        if args.machine.startswith("BLIPWORKS-"):
            machine = decode_machine_code(args.machine)
        else:
            machine = load_machine(args.machine)
    except (OSError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    exec_ = Exec(machine, ExecConfig(debug=args.trace))

    print("=" * 60)
    print(f"  Running {machine}")
    print("=" * 60)

    for _ in range(args.ticks):
        exec_.update()
        blips = ", ".join(
            f"{blip.kind.value}@{blip.position}" for _, blip in exec_.iter_blips()
        )
        print(f"Tick {exec_.cur_tick:4d}: {blips or '-'}")

    if args.trace:
        print("\n".join(exec_.debug_log))

    if exec_.output_observations:
        print("\nOutputs:")
        for observation in exec_.output_observations:
            expected = observation.expected.value if observation.expected else "-"
            match = "✓" if observation.matched else "✗"
            print(
                f"  tick {observation.tick:4d} output {observation.output_index}: "
                f"{observation.kind.value} (expected {expected}) {match}"
            )

    if exec_.has_output_mismatch:
        return 1
    return 0


def run_level(args):
    """Print the code of an empty machine for a level."""
    from blipworks.machine.block import BlipKind
    from blipworks.machine.level import Level, LevelSpec
    from blipworks.machine.machine import Machine
    from blipworks.machine.saved import encode_machine_code

    try:
        inputs = [
            [None if code.strip() == "-" else BlipKind.from_code(code) for code in feed.split(",")]
            for feed in args.input
        ]
        outputs = [
            [BlipKind.from_code(code) for code in feed.split(",")]
            for feed in args.output
        ]
        level = Level(tuple(args.size), LevelSpec(inputs, outputs))
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    print(encode_machine_code(Machine.new_from_level(level)))
    return 0


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Blipworks - build and run blip machines"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable info logging")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # List blocks command
    subparsers.add_parser("blocks", help="List available blocks")

    # Run command
    run_parser = subparsers.add_parser("run", help="Run a saved machine")
    run_parser.add_argument("machine", help="Machine JSON file or BLIPWORKS-... code")
    run_parser.add_argument(
        "-n", "--ticks",
        type=int,
        default=10,
        help="Number of ticks to run (default: 10)"
    )
    run_parser.add_argument(
        "--trace",
        action="store_true",
        help="Print the per-tick trace"
    )

    # Level command
    level_parser = subparsers.add_parser("level", help="Create an empty machine for a level")
    level_parser.add_argument("size", type=int, nargs=3, help="Machine size: X Y Z")
    level_parser.add_argument(
        "-i", "--input",
        action="append",
        default=[],
        help="Input feed, comma separated kinds, '-' for a gap (e.g., a,-,b)"
    )
    level_parser.add_argument(
        "-o", "--output",
        action="append",
        default=[],
        help="Expected output kinds, comma separated (e.g., a,b)"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == "blocks":
        return run_blocks()
    elif args.command == "run":
        return run_machine(args)
    elif args.command == "level":
        return run_level(args)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
