"""Command line interface for the sitelocale translator."""

from __future__ import annotations

import argparse
import logging
import pathlib
import sys
from typing import Iterable, Optional

from .configuration import SiteLocaleConfig, get_settings
from .errors import (
    AbortRequested,
    ConfigurationError,
    NonInteractiveAbort,
    SiteLocaleError,
)
from .runner import LocaleRunner, RunSummary
from .sources import DirectoryContentSource, DocumentWriter

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sitelocale",
        description=(
            "Localize rendered site pages by comparing default and target locale content trees."
        ),
    )
    parser.add_argument(
        "export_dir",
        help="Directory holding rendered pages and page-content JSON exports.",
    )
    parser.add_argument(
        "-l",
        "--locale",
        action="append",
        dest="locales",
        help="Target locale tag; repeat for several. Defaults to every exported locale.",
    )
    parser.add_argument(
        "-p",
        "--page",
        action="append",
        dest="pages",
        help="Page to localize; repeat for several. Defaults to every rendered page.",
    )
    parser.add_argument(
        "-o",
        "--output",
        help="Output directory. Defaults to a 'localized' folder inside the export directory.",
    )
    parser.add_argument(
        "-w",
        "--workers",
        type=int,
        help="Number of (page, locale) pairs processed in parallel.",
    )
    parser.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Allow overwriting output files that already exist.",
    )
    parser.add_argument(
        "--dump-map",
        action="store_true",
        help="Also write each translation map as JSON next to its document.",
    )
    parser.add_argument(
        "--non-interactive",
        action="store_true",
        help="Disable prompts and enforce automatic decisions (suitable for CI).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show detailed progress information.",
    )
    return parser


def configure_logging(level: str, verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level, logging.WARNING),
        format=LOG_FORMAT,
    )


def execute_localization(
    *,
    export_dir: str,
    output_dir: str | None,
    locales: list[str] | None,
    pages: list[str] | None,
    settings: SiteLocaleConfig,
    force_overwrite: bool,
    non_interactive: bool,
    verbose: bool,
    dump_maps: bool,
) -> tuple[int, RunSummary | None, str | None]:
    """Execute a localization run and return the exit code, summary, and message."""

    export_path = pathlib.Path(export_dir).expanduser().resolve()
    output_path = (
        pathlib.Path(output_dir).expanduser().resolve()
        if output_dir
        else export_path / "localized"
    )

    try:
        source = DirectoryContentSource(
            export_path, default_locale=settings.SITELOCALE_DEFAULT_LOCALE
        )
    except SiteLocaleError as exc:
        return 1, None, str(exc)

    runner = LocaleRunner(
        source=source,
        writer=DocumentWriter(output_path, force_overwrite=force_overwrite),
        settings=settings,
        locales=locales,
        pages=pages,
        interactive=not non_interactive,
        verbose=verbose,
        dump_maps=dump_maps,
    )

    try:
        summary = runner.run()
    except NonInteractiveAbort as exc:
        return 2, None, str(exc)
    except AbortRequested:
        return 2, None, "Localization aborted at your request."
    except SiteLocaleError as exc:
        return 1, None, str(exc)
    except KeyboardInterrupt:
        return 2, None, "Localization interrupted by user."

    if summary.total_pairs == 0:
        return 1, summary, "Nothing to localize: no pages or locales found."
    return (1 if summary.failed_pairs else 0), summary, None


def print_summary(summary: RunSummary) -> None:
    """Output a friendly report once processing completes."""

    print("\nLocalization complete.")
    print(f"  Output directory: {summary.output_dir}")
    print(f"  Locales:          {', '.join(summary.locales) or '-'}")
    print(
        "  Pages:            "
        f"{summary.translated_pairs} translated / {summary.total_pairs} total "
        f"({summary.skipped_pairs} skipped, {summary.failed_pairs} failed)"
    )
    print(
        f"  Fragments:        {summary.applied_fragments} applied, "
        f"{summary.unmatched_fragments} unmatched"
    )
    if summary.malformed_documents:
        print(f"  Malformed pages:  {summary.malformed_documents}")
    print(f"  Elapsed time:     {summary.elapsed_seconds:.2f} seconds")
    if summary.notices:
        print("  Notes:")
        for message in summary.notices:
            print(f"    - {message}")
    if summary.total_errors:
        print("  Errors:")
        for message in summary.error_messages:
            print(f"    - {message}")


def main(argv: Optional[Iterable[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    try:
        settings = get_settings()
    except ConfigurationError as exc:
        print(exc)
        return 1

    if args.workers is not None:
        if args.workers < 1:
            parser.error("--workers must be at least 1")
        settings = settings.model_copy(update={"SITELOCALE_MAX_WORKERS": args.workers})

    configure_logging(settings.SITELOCALE_LOG_LEVEL, args.verbose)

    exit_code, summary, message = execute_localization(
        export_dir=args.export_dir,
        output_dir=args.output,
        locales=args.locales,
        pages=args.pages,
        settings=settings,
        force_overwrite=args.force,
        non_interactive=args.non_interactive,
        verbose=args.verbose,
        dump_maps=args.dump_map,
    )

    if message:
        print(message)
    if summary:
        print_summary(summary)
    return exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
