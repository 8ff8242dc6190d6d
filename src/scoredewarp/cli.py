#!/usr/bin/env python3
"""
ScoreDewarp CLI - dewarp scanned music pages from the terminal.

Usage:
    python -m scoredewarp <command> [options]

Commands:
    dewarp      Dewarp one or more pages and store the corrected images
    info        Show the deskew and idealized staff layout of a page

Examples:
    # Dewarp a page
    scoredewarp dewarp page1.json -o out/

    # Several pages in parallel, with grid overlays
    scoredewarp dewarp p1.json p2.json p3.json -o out/ --workers 3 --overlay

    # Show the target model
    scoredewarp info page1.json
"""

import argparse
import logging
import sys
import time
from pathlib import Path

from scoredewarp.config import LOG_DATE_FORMAT, LOG_FORMAT, load_config
from scoredewarp.utils.exceptions import ScoreDewarpError


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with subcommands."""
    p = argparse.ArgumentParser(
        prog="scoredewarp",
        description="ScoreDewarp: straighten staff lines of scanned music pages.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Verbose logging (DEBUG)")

    sub = p.add_subparsers(dest="command", help="Available commands")

    # --- dewarp ---
    dw_p = sub.add_parser("dewarp", help="Dewarp pages described by JSON files")
    dw_p.add_argument("inputs", type=Path, nargs="+", help="Page description JSON file(s)")
    dw_p.add_argument("-o", "--output", type=Path, required=True, help="Output directory")
    dw_p.add_argument("--config", type=Path, default=None, help="JSON file of config overrides")
    dw_p.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Parallel page worker processes. Default: from config (1).",
    )
    dw_p.add_argument(
        "--grid-step",
        type=int,
        default=None,
        help="Warp grid step in pixels (0 = page interline).",
    )
    dw_p.add_argument(
        "--no-invert",
        action="store_true",
        help="Warp without polarity inversion (exposed areas use max value directly).",
    )
    dw_p.add_argument(
        "--overlay",
        action="store_true",
        help=(
            "Also write <page>.grid.png (warp grid points) "
            "and <page>.systems.png (system frames)."
        ),
    )

    # --- info ---
    info_p = sub.add_parser("info", help="Show deskew and target layout of a page")
    info_p.add_argument("input", type=Path, help="Page description JSON file")

    return p


def _cmd_dewarp(args, logger) -> int:
    """Handle the 'dewarp' command."""
    from scoredewarp.services.page_worker import dewarp_pages

    config = load_config(args.config).with_overrides(
        output_dir=args.output,
        page_workers=args.workers,
        grid_step=args.grid_step,
        invert_polarity=False if args.no_invert else None,
    )

    def on_progress(done: int, total: int, outcome) -> None:
        status = "ok" if outcome.ok else f"FAILED: {outcome.error}"
        print(f"  [{done}/{total}] {outcome.source} {status}")

    t0 = time.perf_counter()
    outcomes = dewarp_pages(args.inputs, config, args.overlay, on_progress)
    elapsed = time.perf_counter() - t0

    print()
    for o in outcomes:
        if o.ok:
            print(
                f"{o.page_id}: {o.width}×{o.height}, deskew {o.angle_degrees:+.2f}°, "
                f"{o.num_lines} lines → {o.output_path}"
            )
    failed = [o for o in outcomes if not o.ok]
    logger.info(f"Done in {elapsed:.1f}s: {len(outcomes) - len(failed)} ok, {len(failed)} failed")
    return 1 if failed else 0


def _cmd_info(args, _logger) -> int:
    """Handle the 'info' command."""
    from scoredewarp.services.deskew import compute_deskew
    from scoredewarp.services.sheet_io import load_page
    from scoredewarp.services.target_model import build_target_page

    sheet, _image = load_page(args.input)
    deskew = compute_deskew(sheet.global_slope, sheet.width, sheet.height)
    page = build_target_page(sheet, deskew)

    print(f"Page:       {sheet.page_id}")
    print(f"Sheet:      {sheet.width}×{sheet.height}, interline {sheet.interline}px")
    print(f"Deskew:     {deskew.angle_degrees:+.3f}° (slope {sheet.global_slope:+.5f})")
    print(f"Target:     {page.width:.1f}×{page.height:.1f}")
    for system in page.systems:
        print(
            f"System {system.index + 1}: top {system.top:.1f}, "
            f"x {system.left:.1f} → {system.right:.1f}"
        )
        for staff in system.staves:
            ys = ", ".join(f"{line.y:.1f}" for line in staff.lines)
            print(f"  Staff {staff.index + 1} (interline {staff.interline:.2f}): {ys}")
    return 0


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    # Configure logging
    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    logger = logging.getLogger("scoredewarp.cli")

    if args.command == "info" and not args.input.exists():
        print(f"Error: {args.input} not found", file=sys.stderr)
        return 1

    handlers = {
        "dewarp": _cmd_dewarp,
        "info": _cmd_info,
    }

    try:
        return handlers[args.command](args, logger)
    except ScoreDewarpError as e:
        logger.error(f"{e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
