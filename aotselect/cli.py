"""CLI entrypoints for aotselect commands."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from .config import AotSelectConfig, ConfigError, load_config
from .engine import ClassificationEngine, is_ready_to_run
from .hosts import HostNames
from .inspector import inspect_module
from .logging import configure_logging
from .models import ClassificationResult, ModuleMetadata


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_format_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--format",
        choices=("text", "json"),
        default="text",
        help="Output format (defaults to text).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aotselect",
        description="Select the managed assemblies of a build closure for native compilation.",
        fromfile_prefix_chars="@",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write log records to this file.",
    )
    parser.add_argument(
        "--trace-decisions",
        action="store_true",
        default=None,
        help="Log the decision for every candidate without full verbosity.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    classify_parser = subparsers.add_parser(
        "classify",
        help="Classify candidate modules into native-compile and publish-skip sets.",
    )
    _add_verbose_option(classify_parser, suppress_default=True)
    _add_format_option(classify_parser)
    classify_parser.add_argument(
        "candidates",
        nargs="+",
        help="Paths of the modules in the application closure (use @file to read a list).",
    )
    classify_parser.add_argument(
        "--sdk-assembly",
        dest="sdk_assemblies",
        action="append",
        default=[],
        metavar="PATH",
        help="SDK module that replaces a same-named closure member (repeatable).",
    )
    classify_parser.add_argument(
        "--framework-assembly",
        dest="framework_assemblies",
        action="append",
        default=[],
        metavar="PATH",
        help="Framework module that replaces a same-named closure member (repeatable).",
    )
    classify_parser.add_argument(
        "--compilation-mode",
        default=None,
        help="Compilation mode; 'readytorun' selects ready-to-run compilation.",
    )
    classify_parser.add_argument(
        "--target-os",
        default=None,
        help="Target operating system used to derive default host binary names.",
    )
    classify_parser.add_argument("--app-host", default=None, help="Native apphost executable name.")
    classify_parser.add_argument("--host-fxr", default=None, help="Host resolver library name.")
    classify_parser.add_argument("--host-policy", default=None, help="Host policy library name.")
    classify_parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to .aotselect.yml or the directory containing it (defaults to current directory).",
    )

    inspect_parser = subparsers.add_parser(
        "inspect",
        help="Show the CLI metadata summary of binary modules.",
    )
    _add_verbose_option(inspect_parser, suppress_default=True)
    _add_format_option(inspect_parser)
    inspect_parser.add_argument("files", nargs="+", help="Modules to inspect.")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for aotselect commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(
        verbose=bool(args.verbose), trace=args.trace_decisions, log_file=args.log_file
    )

    if args.command == "classify":
        try:
            config = _load_cli_config(args.config)
            engine = _build_engine(args, config)
        except (ConfigError, ValueError) as exc:
            parser.exit(1, f"aotselect classify failed: {exc}\n")
        result = engine.classify(
            args.candidates,
            [*config.replacements.sdk, *args.sdk_assemblies],
            [*config.replacements.framework, *args.framework_assemblies],
        )
        print(_render_result(result, args.format))
    elif args.command == "inspect":
        reports = [(path, inspect_module(path)) for path in args.files]
        print(_render_inspection(reports, args.format))
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _load_cli_config(config_path: Optional[Path]) -> AotSelectConfig:
    if config_path is None:
        return load_config(Path.cwd())
    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")
    return load_config(config_path)


def _build_engine(args: argparse.Namespace, config: AotSelectConfig) -> ClassificationEngine:
    if args.target_os:
        config.target_os = args.target_os
    defaults = config.host_names()
    hosts = HostNames(
        app_host=args.app_host or defaults.app_host,
        host_fxr=args.host_fxr or defaults.host_fxr,
        host_policy=args.host_policy or defaults.host_policy,
    )
    mode = args.compilation_mode if args.compilation_mode is not None else config.compilation_mode
    return ClassificationEngine(hosts, ready_to_run=is_ready_to_run(mode))


def _render_result(result: ClassificationResult, fmt: str) -> str:
    if fmt == "json":
        return json.dumps(result.to_dict(), indent=2)
    lines = ["ManagedAssemblies:"]
    lines.extend(f"  {path}" for path in result.managed_assemblies)
    lines.append("AssembliesToSkipPublish:")
    lines.extend(f"  {path}" for path in result.assemblies_to_skip_publish)
    return "\n".join(lines)


def _render_inspection(
    reports: Sequence[tuple[str, Optional[ModuleMetadata]]], fmt: str
) -> str:
    if fmt == "json":
        payload = [
            {"path": path, "metadata": metadata.to_dict() if metadata else None}
            for path, metadata in reports
        ]
        return json.dumps(payload, indent=2)
    lines: List[str] = []
    for path, metadata in reports:
        lines.append(f"{path}: {_describe(metadata)}")
    return "\n".join(lines)


def _describe(metadata: Optional[ModuleMetadata]) -> str:
    if metadata is None:
        return "not inspectable"
    if not metadata.has_metadata:
        return "native image (no CLI metadata)"
    if not metadata.is_assembly:
        return "module (no assembly manifest)"
    culture = metadata.culture or "neutral"
    return f"assembly {metadata.name} (culture: {culture})"


if __name__ == "__main__":
    main(sys.argv[1:])
