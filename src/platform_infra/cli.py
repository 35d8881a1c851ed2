#!/usr/bin/env python3
"""
Command line for the platform infrastructure
Plans, synthesizes and deploys stages in dependency order
"""
import argparse
import json
import logging
import os
import subprocess
import sys
from typing import List, Optional

import aws_cdk as cdk
from botocore.exceptions import ClientError

from platform_infra.config import resolve_environment_config
from platform_infra.errors import ProvisioningError
from platform_infra.orchestration.orchestrator import PlatformStage
from platform_infra.orchestration.output_registry import fetch_deployed_exports
from platform_infra.orchestration.platform import (
    compose_platform,
    parse_stage_names,
    resolve_workload_image,
)

logger = logging.getLogger(__name__)


class PlatformDeployer:
    """Composes stages in memory and drives the CDK toolkit stack by stack"""

    def __init__(
        self,
        stages: List[str],
        image_tag: Optional[str] = None,
        image_repository: Optional[str] = None,
        alert_email: Optional[str] = None,
        account: Optional[str] = None,
    ):
        self.stage_names = stages
        self.image_tag = image_tag
        self.image_repository = image_repository
        self.alert_email = alert_email
        self.account = account

    def compose(self, outdir: Optional[str] = None) -> tuple:
        """Build the full app; raises before anything is synthesized"""
        app = cdk.App(outdir=outdir) if outdir else cdk.App()
        image = resolve_workload_image({
            "image_tag": self.image_tag,
            "image_repository": self.image_repository,
        })
        stages = compose_platform(
            app,
            self.stage_names,
            image,
            alert_email=self.alert_email,
            account=self.account,
        )
        return app, stages

    def plan(self) -> List[PlatformStage]:
        _, stages = self.compose()
        for stage in stages:
            config = stage.config
            print(f"📋 Stage {stage.node.id} ({config.region}, account {config.account or 'from CLI profile'})")
            print(f"   VPC {config.vpc.cidr}, {config.vpc.max_azs} AZs, {config.vpc.nat_gateways} NAT gateways")
            print(
                f"   Database {config.database.instance_class}, {config.database.allocated_storage} GiB, "
                f"multi-AZ={config.database.multi_az}, deletion protection={config.database.deletion_protection}"
            )
            for position, name in enumerate(stage.build_order, start=1):
                dependencies = sorted(dep.node.id for dep in stage.stacks[name].dependencies)
                after = f" (after {', '.join(dependencies)})" if dependencies else ""
                print(f"   {position}. {name}{after}")
                for output in stage.registry.outputs_for(name):
                    print(f"      ↳ {output.export_name}")
        return stages

    def synth(self, outdir: str = "cdk.out") -> List[str]:
        app, stages = self.compose(outdir=outdir)
        assembly = app.synth()
        print(f"✅ Synthesized {len(stages)} stage(s) to {assembly.directory}")
        return [stage.node.id for stage in stages]

    def deploy_all(self, dry_run: bool = False) -> bool:
        """Deploy every stack of every stage in build order"""
        _, stages = self.compose()
        for stage in stages:
            print(f"🚀 Deploying stage {stage.node.id}...")
            for name in stage.build_order:
                if not self._deploy_stack(stage, name, dry_run):
                    print(f"❌ Stopping: {stage.node.id}/{name} failed, later stacks depend on it")
                    return False
        return True

    def _deploy_stack(self, stage: PlatformStage, name: str, dry_run: bool) -> bool:
        stack_path = f"{stage.node.id}/{name}"
        cmd = [
            "cdk", "deploy", stack_path,
            "--exclusively",
            "--require-approval", "never",
            "--context", f"stage={stage.config.stage}",
            "--context", f"image_tag={self.image_tag}",
        ]
        if self.image_repository:
            cmd.extend(["--context", f"image_repository={self.image_repository}"])
        if self.alert_email:
            cmd.extend(["--context", f"alert_email={self.alert_email}"])
        if self.account:
            cmd.extend(["--context", f"account={self.account}"])

        if dry_run:
            print(" ".join(cmd))
            return True

        print(f"📦 Deploying {stack_path}...")
        result = subprocess.run(cmd, capture_output=True, text=True)
        if result.returncode != 0:
            print(f"❌ Failed to deploy {stack_path}:")
            print(result.stderr)
            return False

        print(f"✅ {stack_path} deployed successfully!")
        return True


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="platform-infra",
        description="Plan, synthesize and deploy the platform infrastructure"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_stage_args(sub: argparse.ArgumentParser) -> None:
        sub.add_argument(
            "--stage",
            default="dev",
            help="Comma-separated stage names (default: dev; unknown names fall back to dev)"
        )
        sub.add_argument(
            "--image-tag",
            default=os.environ.get("IMAGE_TAG_OR_DIGEST"),
            help="Image tag or sha256 digest to deploy (default: $IMAGE_TAG_OR_DIGEST)"
        )
        sub.add_argument(
            "--image-repository",
            default=os.environ.get("ECR_REPOSITORY"),
            help="External ECR repository name (default: the stage's own repository)"
        )
        sub.add_argument(
            "--alert-email",
            default=os.environ.get("ALERT_EMAIL"),
            help="Alert destination (default: the stage's configured address)"
        )
        sub.add_argument(
            "--account",
            help="AWS account ID (default: $CDK_DEFAULT_ACCOUNT)"
        )

    add_stage_args(subparsers.add_parser("plan", help="Show build order and exports"))

    synth = subparsers.add_parser("synth", help="Synthesize the cloud assembly")
    add_stage_args(synth)
    synth.add_argument("--output", default="cdk.out", help="Output directory")

    deploy = subparsers.add_parser("deploy", help="Deploy stacks in dependency order")
    add_stage_args(deploy)
    deploy.add_argument("--dry-run", action="store_true", help="Print the cdk commands only")

    outputs = subparsers.add_parser("outputs", help="Print deployed exports of a stage")
    outputs.add_argument("--stage", default="dev", help="Stage name (unknown names fall back to dev)")
    outputs.add_argument("--region", default=None, help="AWS region")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        if args.command == "outputs":
            stage = resolve_environment_config(args.stage).stage
            exports = fetch_deployed_exports(stage, region=args.region)
            print(json.dumps(exports, indent=2, sort_keys=True))
            return 0

        deployer = PlatformDeployer(
            stages=parse_stage_names(args.stage),
            image_tag=args.image_tag,
            image_repository=args.image_repository,
            alert_email=args.alert_email,
            account=args.account,
        )
        if args.command == "plan":
            deployer.plan()
        elif args.command == "synth":
            deployer.synth(outdir=args.output)
        elif args.command == "deploy":
            if not deployer.deploy_all(dry_run=args.dry_run):
                return 1
        return 0

    except ProvisioningError as e:
        print(f"❌ {e}")
        return 1
    except ClientError as e:
        print(f"❌ AWS error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
