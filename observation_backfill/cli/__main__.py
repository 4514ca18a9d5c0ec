"""Entry point for `python -m observation_backfill.cli` and the `observation-backfill` console script."""

from __future__ import annotations

from observation_backfill.cli.app import app


def main() -> None:
    app()


if __name__ == "__main__":
    main()
