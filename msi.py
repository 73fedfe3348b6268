"""msi entry point and REPL wiring."""

from __future__ import annotations
import argparse
import sys
from typing import List, Optional

from compilation import Compilation, nesting_too_deep
from console import supports_color, write_diagnostics
from diagnostics import SourceText
from parser import SyntaxTree
from repl import MsiRepl
from session import SessionLogger
from submissions import SubmissionStore


def run_repl(
    *,
    verbose: bool = False,
    submissions_dir: Optional[str] = None,
    replay: bool = True,
    color: Optional[bool] = None,
) -> int:
    use_color = supports_color(sys.stdout) if color is None else color
    if use_color:
        print("\x1b[38;2;153;221;255mmsi\033[0m REPL. Enter submissions, :exit to quit.")  # "msi" in light blue
    else:
        print("msi REPL. Enter submissions, :exit to quit.")

    repl = MsiRepl(
        store=SubmissionStore(submissions_dir),
        color=use_color,
        echo=use_color and sys.stdin.isatty(),
        logger=SessionLogger(verbose),
    )
    if replay:
        repl.load_submissions()
    return repl.run()


def run_program(source_text: str, filename: str, *, color: Optional[bool] = None) -> int:
    use_color = supports_color(sys.stderr) if color is None else color
    try:
        syntax_tree = SyntaxTree.parse(source_text, filename)
        result = Compilation.create_script(None, syntax_tree).evaluate({})
    except RecursionError:
        result = nesting_too_deep(SourceText(source_text, filename))
    if result.diagnostics:
        write_diagnostics(sys.stderr, result.diagnostics, color=use_color)
        return 1
    return 0


def run_cli(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="msi interactive shell")
    parser.add_argument("program", nargs="?", help="Source file path or literal source with -source")
    parser.add_argument("-source", "--source", dest="source_mode", action="store_true", help="Treat program argument as literal source text")
    parser.add_argument("-verbose", "--verbose", dest="verbose", action="store_true", help="Echo session events to stderr")
    parser.add_argument("--submissions-dir", dest="submissions_dir", default=None, help="Directory holding saved submissions")
    parser.add_argument("--no-replay", dest="replay", action="store_false", help="Do not replay saved submissions on startup")
    parser.add_argument("--no-color", dest="color", action="store_const", const=False, default=None, help="Disable colored output")
    args = parser.parse_args(argv)

    if args.program is None:
        if args.source_mode:
            print("-source requires a program string", file=sys.stderr)
            return 1
        return run_repl(
            verbose=args.verbose,
            submissions_dir=args.submissions_dir,
            replay=args.replay,
            color=args.color,
        )

    if args.source_mode:
        source_text = args.program
        filename = "<string>"
    else:
        filename = args.program
        try:
            with open(filename, "r", encoding="utf-8") as handle:
                source_text = handle.read()
        except OSError as exc:
            print(f"Failed to read {filename}: {exc}", file=sys.stderr)
            return 1

    return run_program(source_text, filename, color=args.color)


if __name__ == "__main__":
    raise SystemExit(run_cli())
