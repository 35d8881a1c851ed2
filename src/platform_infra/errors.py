"""
Error taxonomy for platform provisioning

Every error raised here is fatal to the build pass: it surfaces while the
CDK app is being composed, before anything is synthesized or deployed.
"""
from typing import Sequence


class ProvisioningError(Exception):
    """Base class for all provisioning errors"""


class ConfigurationError(ProvisioningError):
    """Invalid or inconsistent configuration"""


class InstanceClassFormatError(ConfigurationError):
    """Instance class string is not of the form '<family>.<size>'"""

    def __init__(self, value: str):
        self.value = value
        super().__init__(
            f"Invalid instance class '{value}': expected '<family>.<size>', e.g. 't4g.micro'"
        )


class NetworkCapacityError(ConfigurationError):
    """CIDR block too small for the required subnet layout"""


class ProtectionDowngradeError(ConfigurationError):
    """An override tried to weaken the tier's protective defaults"""


class MissingWorkloadImageError(ConfigurationError):
    """No container image reference was supplied for the compute workload"""


class DependencyGraphError(ProvisioningError):
    """Base class for stack dependency graph violations"""


class UnknownStackError(DependencyGraphError):
    """Reference to a stack that was never declared"""


class DuplicateStackError(DependencyGraphError):
    """A stack name was declared twice"""


class DependencyCycleError(DependencyGraphError):
    """Adding an edge would make the dependency graph cyclic"""

    def __init__(self, cycle: Sequence[str]):
        self.cycle = list(cycle)
        super().__init__(f"Dependency cycle detected: {' -> '.join(self.cycle)}")


class UndeclaredDependencyError(DependencyGraphError):
    """A stack consumed outputs of a stack it does not declare a dependency on"""

    def __init__(self, consumer: str, producer: str):
        self.consumer = consumer
        self.producer = producer
        super().__init__(
            f"Stack '{consumer}' consumes outputs of '{producer}' "
            f"without declaring a dependency on it"
        )


class OutputRegistryError(ProvisioningError):
    """Base class for output registry errors"""


class DuplicateOutputError(OutputRegistryError):
    """Two outputs were exported under the same name"""


class StageIsolationError(ProvisioningError):
    """Two deployment stages would share identifiers or address space"""
