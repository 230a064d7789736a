"""Basic shell pipeline example.

Demonstrates a two-stage pipeline with shell commands and an environment
binding shared by both stages.

Usage:
    python examples/pipeline/01_basic_shell.py
"""

from __future__ import annotations

from shipline.pipeline import (
    PipelineConfig,
    PipelineRunner,
    StageConfig,
    StepConfig,
    StepType,
)


def main() -> None:
    """Run a basic shell pipeline."""
    config = PipelineConfig(
        name="basic-shell",
        environment={"WHO": "shipline"},
        stages=(
            StageConfig(
                name="greet",
                steps=(
                    StepConfig(
                        name="hello",
                        type=StepType.SHELL,
                        command="echo Hello from ${WHO}!",
                        env=("WHO",),
                    ),
                    StepConfig(
                        name="date",
                        type=StepType.SHELL,
                        command='python -c "import datetime; print(datetime.datetime.now())"',
                    ),
                ),
            ),
            StageConfig(
                name="inspect",
                steps=(
                    StepConfig(
                        name="platform",
                        type=StepType.SHELL,
                        command='python -c "import platform; print(platform.platform())"',
                    ),
                ),
            ),
        ),
    )

    runner = PipelineRunner(config)
    result = runner.run()

    print(f"\nPipeline '{result.name}' completed in {result.duration:.3f}s")
    print(f"Success: {result.success}")
    print()
    for stage in result.stages:
        print(f"{stage.name} [{stage.status.value}]")
        for step in stage.steps:
            print(f"  [{step.status.value.upper():>7}] {step.name} ({step.duration:.3f}s)")
            if step.stdout.strip():
                for line in step.stdout.strip().splitlines():
                    print(f"           {line}")


if __name__ == "__main__":
    main()
