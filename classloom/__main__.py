import argparse
import asyncio
import copy
import logging
import sys
from typing import List, Optional

from .core.config import get_config_value, get_diagram_config, load_unified_config
from .core.diagrams import DiagramService, class_name_from_path
from .core.errors import RenderInvocationError
from .core.providers import SourceTextProvider, build_provider


def setup_logging(log_level: str = "INFO") -> None:
    """Configure application logging."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )
    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="classloom",
        description="ClassLoom - PlantUML class diagrams for ObjectScript classes",
    )
    parser.add_argument(
        "class_name",
        nargs="?",
        help="Fully-qualified class name, e.g. App.Model.Order"
    )
    parser.add_argument(
        "--file",
        type=str,
        help="Diagram the class declared by this .cls file (name taken from its path under src/)"
    )
    parser.add_argument(
        "--directory",
        type=str,
        help="Render every class under this directory instead of one hierarchy"
    )
    parser.add_argument(
        "--backend",
        type=str,
        choices=["source", "rest"],
        help="Metadata backend (default from config)"
    )
    parser.add_argument(
        "--source-dir",
        action="append",
        dest="source_dirs",
        help="Source root for the source backend (repeatable)"
    )
    parser.add_argument(
        "--max-depth",
        type=int,
        help="Maximum superclass depth to expand (default: unlimited)"
    )
    parser.add_argument(
        "--max-concurrency",
        type=int,
        help="Maximum simultaneous provider fetches"
    )
    parser.add_argument(
        "--render",
        type=str,
        choices=["jar", "server", "none"],
        help="Also render an image with the PlantUML JAR or server"
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        help="Directory for .puml and image files"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level"
    )
    return parser


async def _run(args: argparse.Namespace) -> int:
    config = copy.deepcopy(load_unified_config())
    if args.backend:
        config["backend"] = args.backend
    if args.source_dirs:
        config.setdefault("source", {})["roots"] = args.source_dirs

    settings = get_diagram_config()
    if args.output_dir:
        settings["output_dir"] = args.output_dir
    render_mode = args.render or settings.get("render") or "none"
    max_concurrency = args.max_concurrency or get_config_value(
        "classloom", "resolver", "max_concurrency", default=1
    )
    max_depth = args.max_depth if args.max_depth is not None else get_config_value(
        "classloom", "resolver", "max_depth", default=None
    )

    if args.directory:
        provider = SourceTextProvider([args.directory])
    else:
        provider = build_provider(config)

    async with provider:
        service = DiagramService(provider, settings, max_concurrency=max_concurrency)
        if args.directory:
            result = await service.directory_diagram(provider, name="directory")
        else:
            result = await service.class_diagram(args.class_name, max_depth=max_depth)

        puml_path = service.write_puml(result)
        print(f"PlantUML written to {puml_path}")
        print(f"View online: {result.url}")

        if render_mode != "none":
            image = service.render(result, render_mode)
            print(f"Diagram rendered to {image}")

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for ClassLoom."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.file:
        if args.class_name:
            parser.error("give either a class name or --file, not both")
        args.class_name = class_name_from_path(args.file)
        if not args.class_name:
            parser.error(f"not a .cls file: {args.file}")

    if not args.class_name and not args.directory:
        parser.error("either a class name, --file or --directory is required")

    setup_logging(args.log_level)
    logger.info("Starting ClassLoom")

    try:
        return asyncio.run(_run(args))
    except RenderInvocationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
