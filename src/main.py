# src/main.py - v3
"""CLI entry point: generate, refine, check-url commands.

Usage:
    imagecomposer generate "a red bicycle" [-n 2] [--ref human:Ana=photo.png]
    imagecomposer refine <image> "make the sky purple"
    imagecomposer check-url <url>

The provider key is read from GOOGLE_API_KEY (or .env).
"""

from __future__ import annotations

import argparse
import asyncio
import base64
import logging
import mimetypes
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from imagecomposer.version import __version__

if TYPE_CHECKING:
    from imagecomposer.core.models import GenerationResult, ReferenceImage

logger = logging.getLogger(__name__)

CLI_USER = "cli"


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    _setup_logging(args.verbose)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="imagecomposer",
        description=f"imagecomposer v{__version__} - reference-aware image generation",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- generate ---
    p_generate = subparsers.add_parser("generate", help="Generate images from a prompt")
    p_generate.add_argument("prompt", help="Text prompt")
    p_generate.add_argument(
        "-n", "--count", type=int, default=1,
        help="Number of images (default: 1)",
    )
    p_generate.add_argument(
        "--ref", action="append", default=[], metavar="ROLE[:NAME]=SOURCE",
        help="Reference image; ROLE is human, object, logo, product or reference. "
             "SOURCE is a URL, data URI, upload path or local file. Repeatable.",
    )
    _add_image_options(p_generate)
    p_generate.set_defaults(func=_cmd_generate)

    # --- refine ---
    p_refine = subparsers.add_parser("refine", help="Refine an existing image")
    p_refine.add_argument("source", help="Image URL, data URI, upload path or local file")
    p_refine.add_argument("instruction", help="What to change")
    _add_image_options(p_refine)
    p_refine.set_defaults(func=_cmd_refine)

    # --- check-url ---
    p_check = subparsers.add_parser("check-url", help="Run the URL safety validator only")
    p_check.add_argument("url", help="URL to validate")
    p_check.set_defaults(func=_cmd_check_url)

    return parser


def _add_image_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("--resolution", default="1K", choices=["1K", "2K", "4K"])
    p.add_argument(
        "--aspect-ratio", default="1:1",
        choices=["1:1", "16:9", "9:16", "4:3", "3:4", "21:9"],
    )
    p.add_argument(
        "-o", "--output", type=Path, default=Path("./output"),
        help="Output directory (default: ./output)",
    )


async def _cmd_generate(args: argparse.Namespace) -> int:
    """Generate images and write them to the output directory."""
    from imagecomposer.api.facade import generate_with_credential
    from imagecomposer.core.models import GenerationRequestOptions

    try:
        references = [_parse_ref(spec) for spec in args.ref]
    except ValueError as exc:
        logger.error("%s", exc)
        return 1

    options = GenerationRequestOptions(
        resolution=args.resolution,
        aspect_ratio=args.aspect_ratio,
        image_count=args.count,
        reference_images=references,
    )
    result = await generate_with_credential(CLI_USER, args.prompt, options)
    return _report(result, args.output)


async def _cmd_refine(args: argparse.Namespace) -> int:
    """Refine one image and write the result."""
    from imagecomposer.api.facade import refine
    from imagecomposer.core.models import RefineOptions

    options = RefineOptions(resolution=args.resolution, aspect_ratio=args.aspect_ratio)
    result = await refine(CLI_USER, _local_source(args.source), args.instruction, options)
    return _report(result, args.output)


async def _cmd_check_url(args: argparse.Namespace) -> int:
    """Print whether a URL would be fetched."""
    from imagecomposer.config.settings import Settings
    from imagecomposer.core.errors import ComposerError
    from imagecomposer.security.url_validator import UrlPolicy, UrlSafetyValidator

    validator = UrlSafetyValidator(UrlPolicy.from_settings(Settings()))
    try:
        safe = await validator.validate(args.url)
    except ComposerError as exc:
        print(f"REJECTED ({exc.kind.value}): {exc.message}")
        return 1
    print(f"ALLOWED: {safe.hostname}")
    return 0


def _parse_ref(spec: str) -> ReferenceImage:
    """Parse ROLE[:NAME]=SOURCE into a ReferenceImage."""
    from imagecomposer.core.models import ReferenceImage, ReferenceRole

    head, sep, source = spec.partition("=")
    if not sep or not source:
        raise ValueError(f"Invalid --ref {spec!r}; expected ROLE[:NAME]=SOURCE")
    role, _, name = head.partition(":")
    try:
        ref_role = ReferenceRole(role.strip().lower())
    except ValueError:
        raise ValueError(f"Unknown reference role {role!r}") from None
    return ReferenceImage(image_url=_local_source(source), role=ref_role, name=name or None)


def _local_source(source: str) -> str:
    """Inline an existing local file as a data URI; pass anything else through."""
    path = Path(source).expanduser()
    if not source.startswith(("http://", "https://", "data:")) and path.is_file():
        mime_type = mimetypes.guess_type(path.name)[0] or "image/png"
        payload = base64.b64encode(path.read_bytes()).decode("ascii")
        return f"data:{mime_type};base64,{payload}"
    return source


def _report(result: GenerationResult, output_dir: Path) -> int:
    """Write images from a GenerationResult and print a summary."""
    if not result.success:
        print(f"\nFailed ({result.error_kind.value if result.error_kind else 'error'}): {result.error}")
        return 1

    output_dir.mkdir(parents=True, exist_ok=True)
    print("\nGeneration complete:")
    for index, image in enumerate(result.images, start=1):
        ext = mimetypes.guess_extension(image.mime_type) or ".png"
        target = output_dir / f"image-{index}{ext}"
        target.write_bytes(image.data)
        print(f"  Image:        {target}")
    if result.usage:
        print(f"  Tokens:       {result.usage.total_token_count}")
    if result.text:
        preview = result.text[:200]
        if len(result.text) > 200:
            preview += "..."
        print(f"  Text:         {preview}")
    return 0


def _setup_logging(verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from imagecomposer.config.settings import Settings
    from imagecomposer.logging.logger import configure_from_settings

    configure_from_settings(Settings(), level="DEBUG" if verbose else None)
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


if __name__ == "__main__":
    sys.exit(main())
