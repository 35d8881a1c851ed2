"""
Network topology construct
VPC with public, compute and database subnet groups plus the two security groups
"""
import ipaddress
import logging

from aws_cdk import aws_ec2 as ec2
from constructs import Construct

from platform_infra.config import EnvironmentConfig
from platform_infra.errors import ConfigurationError, NetworkCapacityError

logger = logging.getLogger(__name__)

SUBNET_CIDR_MASK = 24
MIN_AZS = 2

PUBLIC_SUBNET_GROUP = "Public"
COMPUTE_SUBNET_GROUP = "Compute"
DATABASE_SUBNET_GROUP = "Database"

SUBNET_GROUPS = (PUBLIC_SUBNET_GROUP, COMPUTE_SUBNET_GROUP, DATABASE_SUBNET_GROUP)


def validate_network_capacity(cidr: str, max_azs: int) -> None:
    """
    Check that a CIDR block can hold every subnet group in every zone

    Raises:
        ConfigurationError: if the CIDR does not parse
        NetworkCapacityError: if fewer than two zones are requested, or the
            block cannot fit one /24 per subnet group per zone
    """
    try:
        network = ipaddress.ip_network(cidr)
    except ValueError as e:
        raise ConfigurationError(f"Invalid VPC CIDR '{cidr}': {e}") from e

    if max_azs < MIN_AZS:
        raise NetworkCapacityError(
            f"At least {MIN_AZS} availability zones are required, got {max_azs}"
        )

    required = len(SUBNET_GROUPS) * max_azs
    if network.prefixlen > SUBNET_CIDR_MASK:
        available = 0
    else:
        available = 2 ** (SUBNET_CIDR_MASK - network.prefixlen)

    if available < required:
        raise NetworkCapacityError(
            f"CIDR {cidr} holds {available} /{SUBNET_CIDR_MASK} subnets, "
            f"{required} needed for {len(SUBNET_GROUPS)} subnet groups across {max_azs} zones"
        )


class NetworkTopology(Construct):
    """
    VPC partitioned into three subnet groups.

    The database security group has no outbound rules and exactly one
    inbound rule: the compute security group on the configured database
    port. Compute workloads reach Secrets Manager through an interface
    endpoint, so credential lookups never leave the VPC.
    """

    def __init__(self, scope: Construct, construct_id: str, config: EnvironmentConfig) -> None:
        super().__init__(scope, construct_id)

        vpc_config = config.vpc
        validate_network_capacity(vpc_config.cidr, vpc_config.max_azs)
        if vpc_config.nat_gateways < 1:
            raise ConfigurationError(
                "Compute subnets route egress through NAT; at least one NAT gateway is required"
            )

        self.database_port = config.database.port

        self.vpc = ec2.Vpc(
            self,
            "VPC",
            ip_addresses=ec2.IpAddresses.cidr(vpc_config.cidr),
            max_azs=vpc_config.max_azs,
            nat_gateways=vpc_config.nat_gateways,
            subnet_configuration=[
                ec2.SubnetConfiguration(
                    name=PUBLIC_SUBNET_GROUP,
                    subnet_type=ec2.SubnetType.PUBLIC,
                    cidr_mask=SUBNET_CIDR_MASK
                ),
                ec2.SubnetConfiguration(
                    name=COMPUTE_SUBNET_GROUP,
                    subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS,
                    cidr_mask=SUBNET_CIDR_MASK
                ),
                ec2.SubnetConfiguration(
                    name=DATABASE_SUBNET_GROUP,
                    subnet_type=ec2.SubnetType.PRIVATE_ISOLATED,
                    cidr_mask=SUBNET_CIDR_MASK
                ),
            ]
        )

        self.public_subnets = self.vpc.select_subnets(subnet_group_name=PUBLIC_SUBNET_GROUP)
        self.compute_subnets = self.vpc.select_subnets(subnet_group_name=COMPUTE_SUBNET_GROUP)
        self.database_subnets = self.vpc.select_subnets(subnet_group_name=DATABASE_SUBNET_GROUP)

        self.compute_security_group = ec2.SecurityGroup(
            self,
            "ComputeSecurityGroup",
            vpc=self.vpc,
            description=f"{config.stage} compute functions",
            allow_all_outbound=True
        )

        self.database_security_group = ec2.SecurityGroup(
            self,
            "DatabaseSecurityGroup",
            vpc=self.vpc,
            description=f"{config.stage} PostgreSQL instances",
            allow_all_outbound=False
        )

        # Goes through Connections so a later allow_from with the same
        # pairing resolves to this rule instead of a duplicate
        self.database_security_group.connections.allow_from(
            self.compute_security_group,
            ec2.Port.tcp(self.database_port),
            "Compute access to PostgreSQL"
        )

        self.secrets_manager_endpoint = self.vpc.add_interface_endpoint(
            "SecretsManagerEndpoint",
            service=ec2.InterfaceVpcEndpointAwsService.SECRETS_MANAGER,
            subnets=ec2.SubnetSelection(subnet_group_name=COMPUTE_SUBNET_GROUP)
        )

        logger.debug(
            f"Network for {config.stage}: {vpc_config.cidr} across {vpc_config.max_azs} AZs, "
            f"database port {self.database_port}"
        )
