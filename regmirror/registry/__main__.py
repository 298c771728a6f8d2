"""CLI interface for repository listing.

Usage: python -m regmirror.registry [config.yaml] [--ping]
"""

import sys
from typing import List, Optional

import yaml

from ..common.config import DEFAULT_CONFIG_PATH, build_repo_list, load_typed_config
from ..common.logger import get_logger, setup_logger
from .errors import RepoListError

logger = get_logger("cli")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the repository listing CLI."""
    args = sys.argv[1:] if argv is None else argv
    ping = "--ping" in args
    paths = [a for a in args if a != "--ping"]
    if len(paths) > 1 or any(a.startswith("-") for a in paths):
        print("Usage: python -m regmirror.registry [config.yaml] [--ping]", file=sys.stderr)
        return 2

    config_path = paths[0] if paths else DEFAULT_CONFIG_PATH
    try:
        config = load_typed_config(config_path)
    except (FileNotFoundError, TypeError, ValueError, yaml.YAMLError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    setup_logger(
        log_dir=config.logging.log_dir,
        level=config.logging.level,
        file_logging=config.logging.file_logging,
    )

    failed = 0
    for entry in config.registries:
        try:
            repo_list = build_repo_list(entry, config.listing)
            if ping:
                repo_list.source.ping()
                print(f"{entry.name}: credentials accepted")
                continue
            repos = repo_list.get()
        except (RepoListError, ValueError) as e:
            logger.warning(f"listing {entry.name} failed: {e}")
            print(f"{entry.name}: error: {e}", file=sys.stderr)
            failed += 1
            continue

        print(f"{entry.name}: {len(repos)} repositories")
        for repo in repos:
            print(f"  {repo}")

    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
