from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from streamreport import __version__
from streamreport.config import get_config, load_config, set_config
from streamreport.errors import ErrorCode, StreamReportError, handle_exception, set_verbose
from streamreport.events import load_events
from streamreport.render.html import HtmlRenderer
from streamreport.session import ReportSession


def _configure_logging(level: str, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _load(args: argparse.Namespace, **cli_overrides) -> None:
    config = load_config(
        config_file=getattr(args, "config", None),
        env_file=getattr(args, "env_file", None),
        cli_overrides=cli_overrides,
    )
    set_config(config)
    _configure_logging(config.log_level, args.verbose)


def _cmd_render(args: argparse.Namespace) -> int:
    """Replay a recorded event stream into an HTML report."""
    _load(
        args,
        title=args.title,
        exclude_pattern=args.exclude_pattern,
        context_lines=args.context_lines,
        show_runtime=False if args.no_runtime else None,
        strict_nesting=False if args.lenient else None,
    )
    config = get_config()

    events = load_events(args.events)
    out_path = Path(args.out)
    try:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        stream = out_path.open("w", encoding="utf-8")
    except OSError as e:
        raise StreamReportError(f"{out_path}: {e}", ErrorCode.E300) from e

    with stream:
        session = ReportSession(HtmlRenderer(config), stream, config)
        summary = session.replay(events)

    if not summary.finished:
        print("⚠️  Event stream ended before session_finished; report is partial", file=sys.stderr)

    if args.json:
        json_path = Path(args.json)
        json_path.parent.mkdir(parents=True, exist_ok=True)
        json_path.write_text(json.dumps(summary.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")

    print(f"Examples: {summary.example_count} ({summary.failure_count} failed)")
    print(f"Report: {out_path}")
    return 0 if summary.failure_count == 0 else 1


def _cmd_validate(args: argparse.Namespace) -> int:
    """Validate recorded event streams against the event schema."""
    from streamreport.validation import validate_events

    _configure_logging("WARNING", args.verbose)
    results = [validate_events(path) for path in args.events]
    for result in results:
        print(result.summary())

    # Return 0 if all valid, 1 if any invalid
    return 0 if all(r.valid for r in results) else 1


def _cmd_show_config(args: argparse.Namespace) -> int:
    """Show effective configuration from all sources."""
    _load(args)
    print(json.dumps(get_config().to_dict(), indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="streamreport",
        description="Streaming HTML test reports from test lifecycle events",
    )

    # Global flags
    p.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show full tracebacks and debug logging",
    )
    p.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    p.add_argument("--config", help="YAML file with report options")
    p.add_argument(
        "--env-file",
        dest="env_file",
        help="Path to .env file (default: nearest .env upwards)",
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    # render
    p_render = sub.add_parser(
        "render",
        help="Render a recorded event stream (JSONL or YAML) to HTML",
    )
    p_render.add_argument("--events", required=True, help="Path to the event stream file")
    p_render.add_argument("--out", required=True, help="Output HTML file")
    p_render.add_argument("--title", help="Report title")
    p_render.add_argument(
        "--no-runtime",
        action="store_true",
        dest="no_runtime",
        help="Hide per-example durations",
    )
    p_render.add_argument(
        "--exclude-pattern",
        dest="exclude_pattern",
        help="Regex of backtrace frames to hide (framework internals)",
    )
    p_render.add_argument(
        "--context-lines",
        dest="context_lines",
        type=int,
        help="Source lines shown around a failure (default: 2)",
    )
    p_render.add_argument("--json", help="Also write a JSON summary to this path")
    p_render.add_argument(
        "--lenient",
        action="store_true",
        help="Accept group depths that skip levels instead of failing",
    )
    p_render.set_defaults(func=_cmd_render)

    # validate
    p_val = sub.add_parser(
        "validate",
        help="Validate event stream files against the event schema",
    )
    p_val.add_argument("--events", required=True, action="append", help="Event stream file (repeatable)")
    p_val.set_defaults(func=_cmd_validate)

    # show-config
    p_show = sub.add_parser(
        "show-config",
        help="Show effective configuration from all sources",
    )
    p_show.set_defaults(func=_cmd_show_config)

    return p


def main(argv: list[str] | None = None) -> None:
    p = build_parser()
    args = p.parse_args(argv)

    # Set verbose mode for error handling
    set_verbose(args.verbose)

    try:
        rc = args.func(args)
        raise SystemExit(rc)
    except SystemExit:
        raise
    except KeyboardInterrupt:
        print("\n⚠️  Interrupted by user", file=sys.stderr)
        raise SystemExit(130)
    except StreamReportError as e:
        handle_exception(e)
        raise SystemExit(1)
    except FileNotFoundError as e:
        handle_exception(e, ErrorCode.E302, str(e))
        raise SystemExit(1)
    except Exception as e:
        handle_exception(e, ErrorCode.E201, str(e))
        raise SystemExit(1)
