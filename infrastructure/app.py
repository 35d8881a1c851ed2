#!/usr/bin/env python3
"""
CDK App for the platform

Composes one isolated stage per requested environment:
- Network: VPC, subnet groups, security groups, Secrets Manager endpoint
- ImageRepo: ECR repository for the compute image
- Database: RDS PostgreSQL and generated credentials (depends on Network)
- Compute: container Lambda, live alias, API Gateway (depends on all of the above)

Context:
    stage            comma-separated stage names (default: dev)
    image_tag        image tag or sha256 digest to deploy (or IMAGE_TAG_OR_DIGEST)
    image_repository external ECR repository name (or ECR_REPOSITORY)
    alert_email      alert destination (or ALERT_EMAIL)
    account          AWS account id (or CDK_DEFAULT_ACCOUNT)
"""
import logging
import os

import aws_cdk as cdk

from platform_infra.orchestration.platform import (
    compose_platform,
    parse_stage_names,
    resolve_workload_image,
)

logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO"))

app = cdk.App()

stage_names = parse_stage_names(app.node.try_get_context("stage"))
image = resolve_workload_image({
    "image_tag": app.node.try_get_context("image_tag"),
    "image_repository": app.node.try_get_context("image_repository"),
})
alert_email = app.node.try_get_context("alert_email") or os.environ.get("ALERT_EMAIL")
account = app.node.try_get_context("account")

compose_platform(app, stage_names, image, alert_email=alert_email, account=account)

app.synth()
