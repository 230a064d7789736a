"""Build, push and deploy preset in dry-run mode.

Builds the canonical checkout, build, push and deploy pipeline and runs
it with ``dry_run=True``, printing the command every step would execute.
The registry password comes from the ``DOCKERHUB_TOKEN`` environment
variable and is only resolved while the login step runs.

Usage:
    DOCKERHUB_TOKEN=dummy python examples/pipeline/02_redeploy.py
"""

from __future__ import annotations

from shipline.pipeline import CredentialVault, PipelineRunner, build_push_deploy, from_env


def main() -> None:
    """Print the plan of a build, push and deploy run."""
    config = build_push_deploy(
        "ecommerce",
        environment={
            "REPO_URL": "https://example.com/shop/ecommerce-ci-cd.git",
            "IMAGE_NAME": "shop/ecommerce:latest",
            "REGISTRY_USER": "shop",
            "CONTAINER_NAME": "ecommerce",
            "HOST_PORT": "8080",
            "CONTAINER_PORT": "80",
        },
    )
    vault = CredentialVault({"REGISTRY_PASSWORD": from_env("DOCKERHUB_TOKEN")})
    runner = PipelineRunner(config, vault=vault)

    result = runner.execute(dry_run=True)
    for stage in result.stages:
        print(f"{stage.name}:")
        for step in stage.steps:
            suffix = " (best effort)" if step.best_effort else ""
            print(f"  {step.name}{suffix}: {step.stdout.removeprefix('[dry-run] would execute: ')}")


if __name__ == "__main__":
    main()
