"""
Data Models and Enums
Shared across all modules
"""

from dataclasses import dataclass, field, fields
from enum import Enum, IntEnum
from typing import Dict, List, Optional

# Sentinel rendered in place of a missing resource name
NULL_NAME = "NULL"

# =============================================================================
# ENUMS
# =============================================================================

class ExecutionMode(Enum):
    """Credential source"""
    LOCAL = "local"
    AWS = "aws"

class GatewayState(Enum):
    """Internet gateway attachment state"""
    ATTACHED = "attached"
    DETACHED = "detached"

class ConnectivityType(Enum):
    """NAT gateway connectivity type"""
    PUBLIC = "public"
    PRIVATE = "private"

class AvailabilityMode(Enum):
    """NAT gateway availability mode"""
    ZONAL = "zonal"
    REGIONAL = "regional"

class PipelineStep(IntEnum):
    """Acquisition pipeline cursor, one fetch per step"""
    NETWORK = 0
    SUBNETS = 1
    INTERNET_GATEWAYS = 2
    NAT_GATEWAYS = 3
    ROUTE_TABLES = 4
    ELASTIC_IPS = 5
    DNS_ATTRIBUTES = 6
    DONE = 7


def display_label(name: Optional[str], identifier: str) -> str:
    """Render `name · id`, or `NULL · id` when the name is missing or just the id."""
    if not name or name == identifier:
        return f"{NULL_NAME} · {identifier}"
    return f"{name} · {identifier}"

# =============================================================================
# CONFIGURATION MODELS
# =============================================================================

@dataclass
class ToolSettings:
    """User settings - every field optional in the settings file"""
    region: str = "us-east-1"
    profile: Optional[str] = None
    language: str = "en"
    output_dir: str = "."
    log_file: Optional[str] = None

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in fields(cls)]


@dataclass(frozen=True)
class QueryDescriptor:
    """
    One remote inventory query.

    Opaque to the pipeline: it is built per step and handed to the fetch
    collaborator untouched. The region travels with every query.
    """
    service: str
    operation: str
    params: Dict = field(default_factory=dict)
    query: Optional[str] = None  # JMESPath projection applied to the response
    region: Optional[str] = None

    def describe(self) -> str:
        parts = [self.service, self.operation]
        for key in sorted(self.params):
            parts.append(f"{key}={self.params[key]}")
        if self.query:
            parts.append(f"query={self.query}")
        return " ".join(parts)

# =============================================================================
# NETWORK ENTITY MODELS
# =============================================================================

@dataclass(frozen=True)
class NetworkEntity:
    """VPC root entity"""
    id: str
    name: str
    cidr: str
    state: str
    tags: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Subnet:
    """Subnet, back-referencing its network by id"""
    id: str
    name: str
    cidr: str
    availability_zone: str
    state: str
    network_id: str

    @property
    def display(self) -> str:
        return display_label(self.name, self.id)


@dataclass(frozen=True)
class InternetGateway:
    """Internet gateway"""
    id: str
    name: str
    state: GatewayState = GatewayState.DETACHED

    @property
    def display(self) -> str:
        return display_label(self.name, self.id)


@dataclass(frozen=True)
class NatGateway:
    """NAT gateway; zonal NATs live in exactly one subnet, regional NATs in none"""
    id: str
    name: str
    state: str
    connectivity_type: ConnectivityType = ConnectivityType.PUBLIC
    availability_mode: AvailabilityMode = AvailabilityMode.ZONAL
    subnet_id: Optional[str] = None
    public_ip: str = ""
    allocation_id: str = ""
    auto_scaling_ips: str = ""
    auto_provision_zones: str = ""
    tags: Dict[str, str] = field(default_factory=dict)

    @property
    def is_regional(self) -> bool:
        return self.availability_mode == AvailabilityMode.REGIONAL

    @property
    def display(self) -> str:
        return display_label(self.name, self.id)


@dataclass(frozen=True)
class Route:
    """Single route table entry"""
    destination: str
    target: str
    state: str = "active"

    @property
    def is_default(self) -> bool:
        return self.destination == "0.0.0.0/0"


@dataclass(frozen=True)
class Association:
    """Route table to subnet association"""
    subnet_id: str
    name: str = ""

    @property
    def display(self) -> str:
        return display_label(self.name, self.subnet_id)


@dataclass(frozen=True)
class RouteTable:
    """Route table with its ordered routes and associations"""
    id: str
    name: str
    routes: List[Route] = field(default_factory=list)
    associations: List[Association] = field(default_factory=list)

    @property
    def display(self) -> str:
        return display_label(self.name, self.id)

    def default_route(self) -> Optional[Route]:
        """First default route targeting a gateway or NAT, in scan order."""
        for route in self.routes:
            if route.is_default and route.target.startswith(("igw-", "nat-")):
                return route
        return None


@dataclass(frozen=True)
class ElasticIp:
    """Elastic IP address"""
    public_ip: str
    name: str = ""
    allocation_id: str = ""
    instance_id: str = ""
    private_ip: str = ""

    @property
    def identifier(self) -> str:
        return self.allocation_id or self.public_ip

    @property
    def association(self) -> str:
        if self.instance_id:
            return f"Instance: {self.instance_id}"
        if self.private_ip:
            return f"Private IP: {self.private_ip}"
        return "-"

# =============================================================================
# RESOURCE DETAIL MODELS
# =============================================================================

@dataclass(frozen=True)
class SecurityRule:
    """One security group rule, flattened to a single peer"""
    protocol: str
    port_range: str
    peer: str
    description: str = "-"


@dataclass(frozen=True)
class SecurityGroupDetail:
    """Security group with its inbound and outbound rules"""
    id: str
    name: str
    description: str = ""
    vpc_id: str = ""
    inbound: List[SecurityRule] = field(default_factory=list)
    outbound: List[SecurityRule] = field(default_factory=list)

    @property
    def display(self) -> str:
        return display_label(self.name, self.id)


@dataclass(frozen=True)
class InstanceDetail:
    """
    EC2 instance placement and configuration.

    vpc_name and subnet_name are filled by a follow-up lookup and stay empty
    when it fails.
    """
    id: str
    name: str
    state: str = "unknown"
    instance_type: str = ""
    image_id: str = ""
    platform: str = "Linux"
    architecture: str = "x86_64"
    key_pair: str = "-"
    vpc_id: str = ""
    vpc_name: str = ""
    subnet_id: str = ""
    subnet_name: str = ""
    availability_zone: str = ""
    private_ip: str = ""
    public_ip: str = ""
    security_groups: List[str] = field(default_factory=list)
    ebs_optimized: bool = False
    monitoring: bool = False
    iam_role: Optional[str] = None
    launch_time: str = ""
    tags: Dict[str, str] = field(default_factory=dict)

    @property
    def display(self) -> str:
        return display_label(self.name, self.id)

    @property
    def vpc_display(self) -> str:
        return display_label(self.vpc_name, self.vpc_id) if self.vpc_id else "-"

    @property
    def subnet_display(self) -> str:
        return display_label(self.subnet_name, self.subnet_id) if self.subnet_id else "-"

# =============================================================================
# GRAPH MODELS
# =============================================================================

@dataclass
class NetworkGraph:
    """
    Everything assembled for one network inspection.

    Owned by a single pipeline while it is being built; each step only fills
    the fields it is responsible for. Rebuilt from scratch on every fetch.
    """
    network_id: str
    network: Optional[NetworkEntity] = None
    subnets: List[Subnet] = field(default_factory=list)
    internet_gateways: List[InternetGateway] = field(default_factory=list)
    nat_gateways: List[NatGateway] = field(default_factory=list)
    route_tables: List[RouteTable] = field(default_factory=list)
    elastic_ips: List[ElasticIp] = field(default_factory=list)
    dns_support: bool = False
    dns_hostnames: bool = False
    name_lookup: Dict[str, str] = field(default_factory=dict)

    @property
    def name(self) -> str:
        if self.network and self.network.name:
            return self.network.name
        return self.network_id

    @property
    def display(self) -> str:
        return display_label(self.network.name if self.network else "", self.network_id)

    def subnet(self, subnet_id: str) -> Optional[Subnet]:
        for subnet in self.subnets:
            if subnet.id == subnet_id:
                return subnet
        return None


@dataclass
class LoadingProgress:
    """Per-step completion flags polled by the caller after every step"""
    network: bool = False
    subnets: bool = False
    internet_gateways: bool = False
    nat_gateways: bool = False
    route_tables: bool = False
    elastic_ips: bool = False
    dns_attributes: bool = False

    def mark(self, step: PipelineStep, done: bool = True):
        if step == PipelineStep.DONE:
            return
        setattr(self, step.name.lower(), done)

    def is_done(self, step: PipelineStep) -> bool:
        if step == PipelineStep.DONE:
            return all(self.checklist())
        return getattr(self, step.name.lower())

    def checklist(self) -> List[bool]:
        """Flags in step order 0-6."""
        return [getattr(self, f.name) for f in fields(self)]

    def reset(self):
        for f in fields(self):
            setattr(self, f.name, False)
