from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import sys
from pathlib import Path
from typing import Iterable, Optional

from .config import Config, ScoringPolicy
from .errors import ConfigError, IndexBuildError
from .logs import ROOT_LOGGER, setup_root_logger
from .report import EMITTERS, score_sites

EXIT_OK = 0
EXIT_INDEX = 1
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Fetch sites concurrently and score their content overlap.")
    parser.add_argument("urls", nargs="*", help="Site URLs to score (appended after the config's 'sites').")
    parser.add_argument("--config", "-c", type=Path, help="Path to YAML configuration file.")
    parser.add_argument("--urls-file", type=Path, help="File with one URL per line ('#' starts a comment).")
    parser.add_argument("--output", "-o", help="Output path (default: stdout).")
    parser.add_argument("--format", "-f", dest="output_format", choices=sorted(EMITTERS), help="Output format.")
    parser.add_argument("--policy", choices=[p.value for p in ScoringPolicy], help="Score reduction policy.")
    parser.add_argument("--concurrency", type=int, help="Maximum simultaneous requests.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging.")
    return parser.parse_args(argv)


def read_urls_file(path: Path) -> list[str]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read URL list {path}: {e}") from e
    urls = []
    for line in content.splitlines():
        line = line.split("#", 1)[0].strip()
        if line:
            urls.append(line)
    return urls


def load_config(args: argparse.Namespace) -> Config:
    cfg = Config.from_yaml(args.config) if args.config else Config()
    overrides = {
        key: getattr(args, key)
        for key in ("output", "output_format", "policy", "concurrency")
        if getattr(args, key) is not None
    }
    sites = list(cfg.sites)
    if args.urls_file:
        sites.extend(read_urls_file(args.urls_file))
    sites.extend(args.urls)
    overrides["sites"] = tuple(sites)
    cfg = cfg.replace(**overrides)
    if not cfg.sites:
        raise ConfigError("No sites provided (config 'sites:', --urls-file or positional URLs)")
    return cfg


def emit(cfg: Config, rows) -> None:
    emitter = EMITTERS[cfg.output_format]
    if cfg.output:
        path = Path(cfg.output)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8", newline="") as f:
            emitter(rows, f)
    else:
        emitter(rows, sys.stdout)


async def main_async(cfg: Config) -> int:
    root = logging.LoggerAdapter(logging.getLogger(ROOT_LOGGER), extra={"site": "ALL"})
    try:
        report = await score_sites(cfg)
    except IndexBuildError as e:
        root.error(f"Cannot index corpus: {e}")
        return EXIT_INDEX
    emit(cfg, report.rows())
    root.info("All done.")
    return EXIT_OK


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = parse_args(argv)
    setup_root_logger(level=logging.DEBUG if args.verbose else logging.INFO)
    try:
        cfg = load_config(args)
    except ConfigError as e:
        logging.getLogger(ROOT_LOGGER).error(f"Configuration error: {e}")
        return EXIT_CONFIG
    if cfg.log_file:
        setup_root_logger(Path(cfg.log_file), level=logging.DEBUG if args.verbose else logging.INFO)
    code = EXIT_INTERRUPTED
    with contextlib.suppress(KeyboardInterrupt):
        code = asyncio.run(main_async(cfg))
    return code


if __name__ == "__main__":
    sys.exit(main())
