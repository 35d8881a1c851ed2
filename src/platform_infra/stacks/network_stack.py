"""
Network Stack
VPC, subnet groups, security groups and the Secrets Manager endpoint
"""
from dataclasses import dataclass

from aws_cdk import Stack, aws_ec2 as ec2
from constructs import Construct

from platform_infra.config import EnvironmentConfig
from platform_infra.orchestration import output_registry as outputs
from platform_infra.orchestration.output_registry import OutputRegistry
from platform_infra.resources.network import NetworkTopology


@dataclass(frozen=True)
class NetworkOutputs:
    topology: NetworkTopology

    @property
    def vpc(self) -> ec2.IVpc:
        return self.topology.vpc

    @property
    def compute_security_group(self) -> ec2.ISecurityGroup:
        return self.topology.compute_security_group

    @property
    def database_security_group(self) -> ec2.ISecurityGroup:
        return self.topology.database_security_group


class NetworkStack(Stack):
    """
    Foundation stack: everything else in the stage lives inside this VPC.
    Rarely changes once deployed.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        config: EnvironmentConfig,
        registry: OutputRegistry,
        **kwargs
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        topology = NetworkTopology(self, "Topology", config=config)
        self.outputs = NetworkOutputs(topology=topology)

        registry.export(
            self, construct_id, outputs.VPC_ID,
            topology.vpc.vpc_id,
            "VPC ID"
        )
        registry.export(
            self, construct_id, outputs.PUBLIC_SUBNET_IDS,
            ",".join(topology.public_subnets.subnet_ids),
            "Public subnet IDs"
        )
        registry.export(
            self, construct_id, outputs.COMPUTE_SUBNET_IDS,
            ",".join(topology.compute_subnets.subnet_ids),
            "Compute (private, NAT egress) subnet IDs"
        )
        registry.export(
            self, construct_id, outputs.DATABASE_SUBNET_IDS,
            ",".join(topology.database_subnets.subnet_ids),
            "Database (isolated) subnet IDs"
        )
        registry.export(
            self, construct_id, outputs.COMPUTE_SECURITY_GROUP_ID,
            topology.compute_security_group.security_group_id,
            "Compute security group ID"
        )
        registry.export(
            self, construct_id, outputs.DATABASE_SECURITY_GROUP_ID,
            topology.database_security_group.security_group_id,
            "Database security group ID"
        )
