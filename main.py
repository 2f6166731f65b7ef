#!/usr/bin/env python3
"""NIBBLE-CPU Command Line Interface.

Run raw memory images or inline instruction words on the NIBBLE-CPU.

Usage:
    python main.py --image program.bin --reg 0=3 --reg 1=4
    python main.py --inline "1012 0000" --reg 0=3 --reg 1=4 --trace
    python main.py --example call
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from nibble_cpu import Machine, MachineError
from nibble_cpu.programs import EXAMPLE_PROGRAMS


def parse_register(text: str) -> tuple:
    """Parse an INDEX=VALUE register assignment (values may be hex)."""
    try:
        index, value = text.split("=", 1)
        return int(index, 0), int(value, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected INDEX=VALUE, got {text!r}")


def parse_words(text: str) -> list:
    """Parse whitespace or ;-separated hex words, e.g. "1012 0000"."""
    return [int(tok, 16) for tok in text.replace(";", " ").split()]


def main():
    parser = argparse.ArgumentParser(
        description="NIBBLE-CPU: 16-register, 4 KiB virtual CPU",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run a raw memory image (loaded at address 0)
    python main.py --image program.bin

    # R2 = R0 + R1, then HALT, with full trace
    python main.py --inline "1012 0000" --reg 0=3 --reg 1=4 --trace

    # Run a built-in example
    python main.py --example call
        """
    )

    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument(
        "--image",
        type=str,
        help="Path to a raw memory image, poked in at address 0"
    )
    source.add_argument(
        "--inline", "-i",
        type=str,
        help="Inline hex instruction words (separate with spaces or ;)"
    )
    source.add_argument(
        "--example", "-e",
        choices=sorted(EXAMPLE_PROGRAMS),
        help="Run a built-in example program"
    )
    parser.add_argument(
        "--reg", "-r",
        type=parse_register,
        action="append",
        default=[],
        metavar="INDEX=VALUE",
        help="Initial register value (repeatable)"
    )
    parser.add_argument(
        "--max-cycles",
        type=int,
        default=None,
        help="Maximum execution cycles (safety limit). Default: unbounded"
    )
    parser.add_argument(
        "--trace", "-t",
        action="store_true",
        help="Print full execution trace"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Minimal output (non-zero registers only)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Debug logging of every cycle"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s"
    )

    machine = Machine(max_cycles=args.max_cycles, record_trace=args.trace)

    try:
        if args.image:
            image_path = Path(args.image)
            if not image_path.exists():
                print(f"Error: Image file not found: {args.image}")
                return 1
            machine.load_bytes(image_path.read_bytes())
            if not args.quiet:
                print(f"Loading image: {args.image}")
        elif args.inline:
            machine.load_words(parse_words(args.inline))
            if not args.quiet:
                print("Running inline words")
        else:
            EXAMPLE_PROGRAMS[args.example].load_into(machine)
            if not args.quiet:
                print(f"Running example: {EXAMPLE_PROGRAMS[args.example].description}")

        for index, value in args.reg:
            machine.write_register(index, value)
    except (MachineError, ValueError) as e:
        print(f"Load error: {e}")
        return 2

    if not args.quiet:
        print("-" * 60)
        print("Executing...")
        print("-" * 60)

    exit_code = None
    try:
        machine.run()
    except MachineError as e:
        print(f"Execution error: {e}")
        exit_code = 2

    # Output
    if args.trace:
        machine.print_trace()
    elif not args.quiet:
        print()
        summary = machine.get_summary()
        print(f"Cycles: {summary['cycles']}")
        print(f"Halted: {summary['halted']}")
        print(f"PC: 0x{summary['pc']:03X}")
        print(f"Registers: {summary['registers']}")
    else:
        for reg, value in machine.dump_registers().items():
            if value != 0:
                print(f"{reg}={value}")

    if exit_code is not None:
        return exit_code
    return 0 if machine.is_halted() else 1


if __name__ == "__main__":
    sys.exit(main())
