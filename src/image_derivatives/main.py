"""Main module for the image derivatives CLI."""

import argparse
import json
import mimetypes
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .core import StorageConfig, get_logger
from .core.logging_config import set_log_level
from .core.exceptions import DerivativePipelineError, UploadValidationError
from .core.factories import QUEUE_BACKENDS, PipelineFactory
from .core.models import ExecutionMode, Role
from .core.repositories import JsonFileAssetRepository
from .core.services import ImagePipeline

MANIFEST_NAME = "assets.json"


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with one subcommand per pipeline operation."""
    parser = argparse.ArgumentParser(
        prog="image-derivatives",
        description="Image derivatives - validate, stage and optimize uploaded images",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Upload a project cover synchronously
  image-derivatives submit cover.jpg --owner 42 --role project --register-owner

  # Regenerate every retained original at a new width
  image-derivatives reprocess --max-width 800 --quality 80

  # Show version
  image-derivatives version
        """,
    )
    parser.add_argument("--upload-dir", type=Path, default=None, help="Upload directory")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    submit_parser = subparsers.add_parser("submit", help="Validate, stage and process an image")
    submit_parser.add_argument("file", type=Path, help="Image file to upload")
    submit_parser.add_argument("--owner", required=True, help="Owning entity identifier")
    submit_parser.add_argument(
        "--role",
        default=Role.PROJECT.value,
        choices=[role.value for role in Role],
        help="Image role (default: project)",
    )
    submit_parser.add_argument("--index", type=int, default=None, help="Carousel position")
    submit_parser.add_argument(
        "--mode",
        default=ExecutionMode.SYNC.value,
        choices=[mode.value for mode in ExecutionMode],
        help="Execution mode (default: sync)",
    )
    submit_parser.add_argument(
        "--content-type", default=None, help="Declared MIME type (guessed from the name if omitted)"
    )
    submit_parser.add_argument(
        "--queue",
        default="thread",
        choices=QUEUE_BACKENDS,
        help="Queue backend for async mode (default: thread)",
    )
    submit_parser.add_argument(
        "--register-owner", action="store_true", help="Register the owner if unknown"
    )
    submit_parser.add_argument(
        "--keep-original", action="store_true", help="Retain the original for reprocessing"
    )

    reprocess_parser = subparsers.add_parser(
        "reprocess", help="Regenerate derivatives from retained originals"
    )
    reprocess_parser.add_argument("--max-width", type=int, default=None)
    reprocess_parser.add_argument("--quality", type=int, default=None)
    reprocess_parser.add_argument("--thumbnail-size", type=int, default=None)
    reprocess_parser.add_argument("--thumbnail-quality", type=int, default=None)
    reprocess_parser.add_argument("--profile-max-size", type=int, default=None)

    show_parser = subparsers.add_parser("show", help="Show an image asset")
    show_parser.add_argument("asset_id")

    delete_parser = subparsers.add_parser("delete", help="Delete an image asset and its files")
    delete_parser.add_argument("asset_id")

    subparsers.add_parser("version", help="Show version information")
    return parser


def _reprocess_overrides(args: argparse.Namespace) -> dict:
    overrides = {
        "max_width": args.max_width,
        "optimize_quality": args.quality,
        "thumbnail_size": args.thumbnail_size,
        "thumbnail_quality": args.thumbnail_quality,
        "profile_max_size": args.profile_max_size,
    }
    return {key: value for key, value in overrides.items() if value is not None}


def _build_pipeline(
    config: StorageConfig,
    queue_backend: str = "inline",
    repository: Optional[JsonFileAssetRepository] = None,
) -> ImagePipeline:
    repository = repository or JsonFileAssetRepository(
        config.resolved_upload_dir / MANIFEST_NAME
    )
    return PipelineFactory.create_pipeline(
        repository, config=config, queue_backend=queue_backend
    )


def _submit(args: argparse.Namespace, config: StorageConfig) -> int:
    if args.keep_original:
        config = config.with_overrides(keep_originals=True)
    content_type = args.content_type or mimetypes.guess_type(args.file.name)[0] or ""
    data = args.file.read_bytes()

    repository = JsonFileAssetRepository(config.resolved_upload_dir / MANIFEST_NAME)
    if args.register_owner:
        repository.add_owner(args.owner)
    pipeline = _build_pipeline(config, queue_backend=args.queue, repository=repository)

    try:
        result = pipeline.submit(
            args.owner,
            args.role,
            data,
            args.file.name,
            content_type,
            mode=args.mode,
            index=args.index,
        )
    finally:
        pipeline.close()

    print(json.dumps(result.model_dump(mode="json"), indent=2))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Entry point for the image derivatives command-line interface.

    Returns the process exit code: 0 on success, 1 on a pipeline error,
    2 when an upload is rejected by validation.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "version":
        print("Image Derivatives CLI")
        print(f"Version {__version__}")
        return 0
    if args.command is None:
        parser.print_help()
        return 1

    if args.debug:
        set_log_level("DEBUG")
    logger = get_logger("cli")

    try:
        overrides = {"upload_dir": args.upload_dir} if args.upload_dir else {}
        config = StorageConfig.load(**overrides)

        if args.command == "submit":
            return _submit(args, config)

        pipeline = _build_pipeline(config)
        try:
            if args.command == "reprocess":
                summary = pipeline.reprocess_all(config.with_overrides(**_reprocess_overrides(args)))
                print(json.dumps(summary.model_dump(mode="json"), indent=2))
            elif args.command == "show":
                asset = pipeline.get_asset(args.asset_id)
                print(json.dumps(asset.model_dump(mode="json"), indent=2))
            elif args.command == "delete":
                removed = pipeline.delete_asset(args.asset_id)
                print(json.dumps({"asset_id": args.asset_id, "removed": removed}, indent=2))
        finally:
            pipeline.close()
        return 0

    except UploadValidationError as e:
        logger.error(f"Upload rejected: {e} (reason={e.reason.value})")
        return 2
    except DerivativePipelineError as e:
        logger.error(f"Command failed: {e}")
        return 1
    except OSError as e:
        logger.error(f"Command failed: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
