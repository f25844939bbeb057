#!/usr/bin/env python3
"""chip8-vm Command Line Interface.

Run ROM images with the chip8-vm interpreter and print the final display.

Usage:
    python main.py --rom roms/IBM.ch8 --cycles 2000
    python main.py --inline "00E0 6A05 F029 D005 1208" --trace
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

from chip8_vm import Chip8CPU, RomLoadError, VMError, key_for_symbol, parse_program
from chip8_vm.state import TIMER_HZ


# Instruction cycles per timer tick at roughly 700 instructions/second
CYCLES_PER_SECOND = 700
DEFAULT_CYCLES_PER_TICK = CYCLES_PER_SECOND // TIMER_HZ


def parse_keys(value: str) -> list:
    """Parse a --keys value like "q,w" or "4,5" into keypad indices."""
    keys = []
    for symbol in value.split(","):
        symbol = symbol.strip()
        if not symbol:
            continue
        index = key_for_symbol(symbol)
        if index is None:
            raise ValueError(f"Unknown key: {symbol}")
        keys.append(index)
    return keys


def main():
    parser = argparse.ArgumentParser(
        description="chip8-vm: 8-bit fantasy console interpreter",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run a ROM for 2000 cycles and print the screen
    python main.py --rom roms/IBM.ch8 --cycles 2000

    # Run a hex listing with full trace output
    python main.py --inline "6005 7001 1202" --cycles 5 --trace

    # Hold host keys q and w (keypad 4 and 5) for the whole run
    python main.py --rom roms/KEYPAD.ch8 --keys q,w

Key layout:
    1 2 3 4        1 2 3 C
    q w e r   ->   4 5 6 D
    a s d f        7 8 9 E
    z x c v        A 0 B F
        """
    )

    parser.add_argument(
        "--rom", "-r",
        type=str,
        help="Path to ROM image"
    )
    parser.add_argument(
        "--inline", "-i",
        type=str,
        help="Inline program as hex words (e.g. \"00E0 1202\")"
    )
    parser.add_argument(
        "--cycles", "-c",
        type=int,
        default=Chip8CPU.DEFAULT_MAX_CYCLES,
        help=f"Instruction cycles to execute. Default: {Chip8CPU.DEFAULT_MAX_CYCLES}"
    )
    parser.add_argument(
        "--cycles-per-tick",
        type=int,
        default=DEFAULT_CYCLES_PER_TICK,
        help=f"Cycles per 60 Hz timer tick. Default: {DEFAULT_CYCLES_PER_TICK}"
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Seed for the RND instruction"
    )
    parser.add_argument(
        "--keys", "-k",
        type=str,
        default="",
        help="Comma-separated host keys held down during the run"
    )
    parser.add_argument(
        "--trace", "-t",
        action="store_true",
        help="Print full execution trace"
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Minimal output (display only)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="count",
        default=0,
        help="Log interpreter activity (-v info, -vv per-instruction debug)"
    )

    args = parser.parse_args()

    # Validate arguments
    if not args.rom and not args.inline:
        parser.error("Either --rom or --inline is required")
    if args.cycles_per_tick <= 0:
        parser.error("--cycles-per-tick must be positive")

    try:
        held_keys = parse_keys(args.keys)
    except ValueError as e:
        parser.error(str(e))

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    cpu = Chip8CPU(max_cycles=args.cycles, trace=args.trace, seed=args.seed)

    # Load program
    try:
        if args.rom:
            size = cpu.load_rom(args.rom)
            if not args.quiet:
                print(f"Loaded ROM: {args.rom} ({size} bytes)")
        else:
            size = cpu.load(parse_program(args.inline))
            if not args.quiet:
                print(f"Running inline program ({size} bytes)")
    except (RomLoadError, ValueError) as e:
        print(f"Error: {e}")
        return 1

    for key in held_keys:
        cpu.key_down(key)

    # Run
    if not args.quiet:
        print("-" * 64)
        print("Executing...")
        print("-" * 64)

    exit_code = 0
    try:
        for cycle in range(args.cycles):
            cpu.execute_cycle()
            if (cycle + 1) % args.cycles_per_tick == 0:
                cpu.tick_timer()
    except VMError as e:
        print(f"Execution error: {e}")
        exit_code = 1

    # Output
    if args.trace:
        cpu.print_trace()
    if not args.quiet:
        summary = cpu.get_summary()
        print()
        print(f"Cycles: {summary['cycles']}")
        print(f"Status: {summary['status']}")
        print(f"PC: 0x{summary['pc']:03X}  I: 0x{summary['i']:03X}  SP: {summary['sp']}")
        print(f"Registers: {summary['registers']}")
        print()
    print(cpu.display.render())

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
