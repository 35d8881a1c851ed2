"""
Output registry
Named CloudFormation exports published by each stack of a stage
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterator, List, Optional

import boto3
from aws_cdk import CfnOutput, Stack
from botocore.exceptions import ClientError

from platform_infra.errors import DuplicateOutputError

logger = logging.getLogger(__name__)

# Export keys are a contract with operators and other deployments: do not rename
VPC_ID = "VpcId"
PUBLIC_SUBNET_IDS = "PublicSubnetIds"
COMPUTE_SUBNET_IDS = "ComputeSubnetIds"
DATABASE_SUBNET_IDS = "DatabaseSubnetIds"
COMPUTE_SECURITY_GROUP_ID = "ComputeSecurityGroupId"
DATABASE_SECURITY_GROUP_ID = "DatabaseSecurityGroupId"
ECR_REPOSITORY_URI = "EcrRepositoryUri"
DATABASE_ENDPOINT = "DatabaseEndpoint"
DATABASE_SECRET_ARN = "DatabaseSecretArn"
API_URL = "ApiUrl"
FUNCTION_NAME = "FunctionName"


def export_name(stage: str, stack_name: str, key: str) -> str:
    return f"{stage}-{stack_name}-{key}"


@dataclass(frozen=True)
class ExportedOutput:
    stack_name: str
    key: str
    export_name: str
    description: str


class OutputRegistry:
    """Tracks every export of one stage so names can be checked for collisions"""

    def __init__(self, stage: str):
        self.stage = stage
        self._outputs: Dict[str, ExportedOutput] = {}

    def export(
        self,
        stack: Stack,
        stack_name: str,
        key: str,
        value: str,
        description: str,
    ) -> CfnOutput:
        """
        Publish a value as a named CloudFormation export

        Raises:
            DuplicateOutputError: if the export name is already taken in this stage
        """
        name = export_name(self.stage, stack_name, key)
        if name in self._outputs:
            raise DuplicateOutputError(f"Export '{name}' is already registered")

        output = CfnOutput(
            stack,
            key,
            value=value,
            description=description,
            export_name=name
        )
        self._outputs[name] = ExportedOutput(
            stack_name=stack_name,
            key=key,
            export_name=name,
            description=description,
        )
        return output

    def export_names(self) -> FrozenSet[str]:
        return frozenset(self._outputs)

    def outputs_for(self, stack_name: str) -> List[ExportedOutput]:
        return [output for output in self._outputs.values() if output.stack_name == stack_name]

    def __iter__(self) -> Iterator[ExportedOutput]:
        return iter(self._outputs.values())

    def __len__(self) -> int:
        return len(self._outputs)


def fetch_deployed_exports(
    stage: str,
    region: Optional[str] = None,
    client: Optional[Any] = None,
) -> Dict[str, str]:
    """
    Read the deployed exports of a stage back from CloudFormation

    Args:
        stage: Stage whose exports to return (matched on the export name prefix)
        region: AWS region, ignored when a client is supplied
        client: Pre-built CloudFormation client (optional)

    Returns:
        Mapping of export name to value
    """
    cloudformation = client or boto3.client("cloudformation", region_name=region)
    prefix = f"{stage}-"
    exports: Dict[str, str] = {}

    try:
        kwargs: Dict[str, str] = {}
        while True:
            response = cloudformation.list_exports(**kwargs)
            for export in response.get("Exports", []):
                if export["Name"].startswith(prefix):
                    exports[export["Name"]] = export["Value"]
            next_token = response.get("NextToken")
            if not next_token:
                break
            kwargs["NextToken"] = next_token
    except ClientError as e:
        logger.error(f"Failed to list CloudFormation exports for stage '{stage}': {e}")
        raise

    logger.info(f"Found {len(exports)} deployed exports for stage '{stage}'")
    return exports
