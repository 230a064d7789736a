"""Config-driven pipeline example.

Demonstrates loading the pipeline defined in
``examples/ecommerce-ci-cd/shipline.yml`` with ``PipelineRunner.from_file()``.

Usage:
    cd examples/ecommerce-ci-cd
    python ../pipeline/03_config_driven.py --dry-run
"""

from __future__ import annotations

import sys

from shipline.logging import init_logging
from shipline.pipeline import PipelineAbortedError, PipelineRunner


def main() -> None:
    """Run a config-driven pipeline."""
    init_logging("dev")
    dry_run = "--dry-run" in sys.argv[1:]

    # shipline.yml from the current directory
    runner = PipelineRunner.from_file()

    print(f"Pipeline: {runner.config.name}")
    print(f"Stages: {', '.join(stage.name for stage in runner.config.stages)}")
    print(f"Default timeout: {runner.config.default_timeout}s")
    print()

    try:
        result = runner.run(dry_run=dry_run)
        print(f"\nCompleted in {result.duration:.3f}s")
        for stage in result.stages:
            print(f"  [{stage.status.value:>9}] {stage.name}")
            for step in stage.steps:
                print(f"              {step.name}: {step.status.value}")
    except PipelineAbortedError as e:
        print(f"\nAborted at stage '{e.stage_name}': {e.reason}")


if __name__ == "__main__":
    main()
