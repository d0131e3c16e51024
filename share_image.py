import argparse
import logging
import sys

from tqdm.contrib.logging import logging_redirect_tqdm

from modules.convert import (
    ConversionConfig,
    ConversionPipeline,
    DEFAULT_CONVERSION_STAGING_DIR,
    DEFAULT_SOURCE_DIR,
    DEFAULT_DESTINATION_DIR,
)
from modules.errors import InvalidConfiguration, ShareUnavailable
from modules.inspector import PillowInspector, SUPPORTED_OUTPUT_FORMATS
from modules.rename import (
    RenameConfig,
    RenameTraversal,
    DEFAULT_RENAMING_STAGING_DIR,
    DEFAULT_RENAME_ROOT,
    DEFAULT_EXCLUSIONS,
    DESTINATION_MODES,
)
from modules.report import print_summary
from modules.share import SmbConfig, SmbShare

__version__ = "1.0.0"

logger = logging.getLogger()


def setup_logging(verbose: bool):
    log_formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(processName)s: %(message)s', datefmt='%Y-%m-%d %H:%M:%S')
    log_handler = logging.StreamHandler()
    log_handler.setFormatter(log_formatter)
    if logger.hasHandlers():
        logger.handlers.clear()
    logger.addHandler(log_handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    # smbprotocol is very chatty at DEBUG.
    logging.getLogger("smbprotocol").setLevel(logging.WARNING)


def prompt_choice(question: str, choices: list, default: str) -> str:
    print(question)
    for i, choice in enumerate(choices):
        print(f"  [{i}] {choice}")
    while True:
        answer = input(f"Choice [{default}]: ").strip().lower()
        if not answer:
            return default
        if answer.isdigit() and int(answer) < len(choices):
            return choices[int(answer)]
        if answer in choices:
            return answer
        print(f"   -> '{answer}' is not a valid choice.")


def confirm(question: str) -> bool:
    answer = input(f"{question} (yes/no) [no]: ").strip().lower()
    return answer in ("y", "yes")


def build_smb_config(args: argparse.Namespace) -> SmbConfig:
    return SmbConfig.from_env(
        host=args.host,
        share=args.share,
        username=args.username,
        password=args.password,
        domain=args.domain,
        port=args.port,
    )


def display_settings(title: str, settings: dict):
    print("\n" + "=" * 30 + f" {title} " + "=" * 30)
    for label, value in settings.items():
        print(f"{label}: {value}")
    print(f"Log Level: {logging.getLevelName(logger.getEffectiveLevel())}")
    print("=" * 72)


def execute_pipeline(pipeline, share: SmbShare, label: str):
    try:
        with share, logging_redirect_tqdm():
            report = pipeline.run()
    except ShareUnavailable as e:
        print(f"(!) Share Unavailable: {e}", file=sys.stderr)
        sys.exit(2)

    print_summary(report)
    print(f"\n{label} complete.")
    sys.exit(1 if report.failed > 0 else 0)


def handle_convert_command(args: argparse.Namespace):
    output_format = args.output_format or prompt_choice(
        "Set file format to output", list(SUPPORTED_OUTPUT_FORMATS), default="jpg"
    )
    quality = args.quality if args.quality is not None else input("Set quality (0 - 100): ")

    try:
        config = ConversionConfig(
            output_format=output_format,
            quality=quality,
            staging_dir=args.staging_dir,
            source_dir=args.source_dir,
            destination_dir=args.destination_dir,
            force_max_quality=args.force_max_quality,
        )
        share = SmbShare(build_smb_config(args))
        pipeline = ConversionPipeline(share, PillowInspector(), config, show_progress=not args.no_progress)
    except InvalidConfiguration as e:
        print(f"(!) Configuration Error: {e}", file=sys.stderr)
        sys.exit(2)

    display_settings("Conversion Settings", {
        "Share": share.unc_path(""),
        "Source directory": config.source_dir,
        "Destination directory": config.destination_dir,
        "Output format (-f, --output-format)": SUPPORTED_OUTPUT_FORMATS[config.output_format],
        "Quality (-q, --quality)": f"{config.quality} (encoding at {config.encode_quality})",
        "Staging directory": pipeline.staging.root,
    })

    print(f"All files in the {config.source_dir} directory will be converted to {config.output_format.upper()}.")
    if not args.yes and not confirm("Proceed with conversion?"):
        print("Conversion cancelled.")
        sys.exit(0)

    execute_pipeline(pipeline, share, "Conversion")


def handle_rename_command(args: argparse.Namespace):
    try:
        config = RenameConfig(
            staging_dir=args.staging_dir,
            root=args.root,
            exclusions=tuple(args.exclude),
            destination_mode=args.destination,
            dry_run=args.dry_run,
        )
        share = SmbShare(build_smb_config(args))
        traversal = RenameTraversal(share, PillowInspector(), config, show_progress=not args.no_progress)
    except InvalidConfiguration as e:
        print(f"(!) Configuration Error: {e}", file=sys.stderr)
        sys.exit(2)

    display_settings("Rename Settings", {
        "Share": share.unc_path(""),
        "Root directory": config.root,
        "Exclusions": ", ".join(config.exclusions) or "None",
        "Destination (--destination)": DESTINATION_MODES[config.destination_mode],
        "Dry run": config.dry_run,
        "Staging directory": traversal.staging.root,
    })

    if not args.yes and not confirm("Proceed with batch renaming?"):
        print("Renaming cancelled.")
        sys.exit(0)

    execute_pipeline(traversal, share, "Renaming")


def _add_share_arguments(parser: argparse.ArgumentParser):
    share_group = parser.add_argument_group('Share Connection (defaults from SMB_* environment variables)')
    share_group.add_argument("--host", default=None, help="SMB server host (env: SMB_HOST).")
    share_group.add_argument("--share", default=None, help="SMB share name (env: SMB_SHARE).")
    share_group.add_argument("--username", default=None, help="SMB user name (env: SMB_USERNAME).")
    share_group.add_argument("--password", default=None, help="SMB password (env: SMB_PASSWORD).")
    share_group.add_argument("--domain", default=None, help="SMB domain (env: SMB_DOMAIN).")
    share_group.add_argument("--port", type=int, default=None, help="SMB port (env: SMB_PORT, default: 445).")


def _create_convert_parser(subparsers: argparse._SubParsersAction):
    convert_parser = subparsers.add_parser(
        "convert",
        help="Batch convert images on the share to another format.",
        description="Batch conversion of images from the share's Conversion directory into the Converted directory.",
        formatter_class=argparse.RawTextHelpFormatter
    )
    convert_parser.set_defaults(func=handle_convert_command, parser_ref=convert_parser)

    convert_parser.add_argument("-f", "--output-format", default=None,
                                choices=SUPPORTED_OUTPUT_FORMATS.keys(),
                                help="Target output file format (prompted when omitted):\n" +
                                     "\n".join([f"  {k}: {v}" for k, v in SUPPORTED_OUTPUT_FORMATS.items()]))
    convert_parser.add_argument("-q", "--quality", default=None,
                                help="Output quality (0-100). Prompted when omitted.")
    convert_parser.add_argument("--force-max-quality", action="store_true", default=False,
                                help="Always encode at quality 100, ignoring --quality.")
    convert_parser.add_argument("--source-dir", default=DEFAULT_SOURCE_DIR,
                                help=f"Share directory to convert (Default: '{DEFAULT_SOURCE_DIR}').")
    convert_parser.add_argument("--destination-dir", default=DEFAULT_DESTINATION_DIR,
                                help=f"Share directory receiving converted files (Default: '{DEFAULT_DESTINATION_DIR}').")
    convert_parser.add_argument("--staging-dir", default=DEFAULT_CONVERSION_STAGING_DIR,
                                help=f"Existing local directory for temporary copies (Default: '{DEFAULT_CONVERSION_STAGING_DIR}').")
    convert_parser.add_argument("-y", "--yes", action="store_true", default=False,
                                help="Skip the confirmation prompt.")
    convert_parser.add_argument("--no-progress", action="store_true", default=False,
                                help="Hide the progress bar.")
    _add_share_arguments(convert_parser)
    return convert_parser


def _create_rename_parser(subparsers: argparse._SubParsersAction):
    rename_parser = subparsers.add_parser(
        "rename",
        help="Append pixel dimensions to image file names throughout a share directory tree.",
        description="Traverse the share from the root directory and rename each image to <name>_<width>x<height>.<ext>.",
        formatter_class=argparse.RawTextHelpFormatter
    )
    rename_parser.set_defaults(func=handle_rename_command, parser_ref=rename_parser)

    rename_parser.add_argument("--root", default=DEFAULT_RENAME_ROOT,
                               help=f"Share directory to start from (Default: '{DEFAULT_RENAME_ROOT}').")
    rename_parser.add_argument("--exclude", nargs='*', metavar='TEXT', default=list(DEFAULT_EXCLUSIONS),
                               help=f"Skip entries whose name contains any of these (case-insensitive). Default: {' '.join(DEFAULT_EXCLUSIONS)}")
    rename_parser.add_argument("--destination", choices=DESTINATION_MODES.keys(), default="parent",
                               help="Where renamed files end up (Default: parent):\n" +
                                    "\n".join([f"  {k}: {v}" for k, v in DESTINATION_MODES.items()]))
    rename_parser.add_argument("--staging-dir", default=DEFAULT_RENAMING_STAGING_DIR,
                               help=f"Existing local directory for temporary copies (Default: '{DEFAULT_RENAMING_STAGING_DIR}').")
    rename_parser.add_argument("--dry-run", action="store_true", default=False,
                               help="Inspect files and report new names without renaming (Default: False).")
    rename_parser.add_argument("-y", "--yes", action="store_true", default=False,
                               help="Skip the confirmation prompt.")
    rename_parser.add_argument("--no-progress", action="store_true", default=False,
                               help="Hide the progress bar.")
    _add_share_arguments(rename_parser)
    return rename_parser


def get_parser():
    parser = argparse.ArgumentParser(
        description="Share Image Toolkit CLI",
        formatter_class=argparse.RawTextHelpFormatter
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        dest="verbose_global",
        help="Enable verbose (DEBUG level) logging for detailed output across all commands."
    )

    subparsers = parser.add_subparsers(title="Commands", dest="command", required=True,
                                       help="Available commands")

    _create_convert_parser(subparsers)
    _create_rename_parser(subparsers)
    return parser


def main(argv=None):
    parser = get_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose_global)

    try:
        args.func(args)
    except KeyboardInterrupt:
        print("\nOperation interrupted by user", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        logger.critical(f"An unhandled critical exception occurred: {e}", exc_info=True)
        print(f"\n(!) Critical Error: {e}. Check logs for details.", file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
