"""
Shared test fixtures for VPC Report.
"""

import json
import pytest
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from models import (
    AvailabilityMode,
    Association,
    ConnectivityType,
    ElasticIp,
    GatewayState,
    InternetGateway,
    NatGateway,
    NetworkEntity,
    NetworkGraph,
    Route,
    RouteTable,
    Subnet,
)


def aws_json(data):
    """Render a response the way the inventory client does."""
    return json.dumps(data, indent=4, default=str)


@pytest.fixture
def vpc_blob():
    """Projected describe-vpcs response for vpc-1."""
    return aws_json({
        "VpcId": "vpc-1",
        "CidrBlock": "10.0.0.0/16",
        "State": "available",
        "Tags": [
            {"Key": "Name", "Value": "prod-vpc"},
            {"Key": "Env", "Value": "prod"},
        ],
    })


@pytest.fixture
def subnets_blob():
    """Region-wide describe-subnets response (one subnet belongs elsewhere)."""
    return aws_json({
        "Subnets": [
            {
                "SubnetId": "subnet-a",
                "VpcId": "vpc-1",
                "CidrBlock": "10.0.1.0/24",
                "AvailabilityZone": "us-east-1a",
                "State": "available",
                "Tags": [{"Key": "Name", "Value": "public-a"}],
            },
            {
                "SubnetId": "subnet-b",
                "VpcId": "vpc-1",
                "CidrBlock": "10.0.2.0/24",
                "AvailabilityZone": "us-east-1b",
                "State": "available",
                "Tags": [{"Key": "Name", "Value": "private-b"}],
            },
            {
                "SubnetId": "subnet-other",
                "VpcId": "vpc-2",
                "CidrBlock": "172.16.0.0/24",
                "AvailabilityZone": "us-east-1a",
                "State": "available",
            },
        ]
    })


@pytest.fixture
def igw_blob():
    """Projected describe-internet-gateways rows."""
    return aws_json([
        [
            "igw-1",
            [{"Key": "Name", "Value": "main-igw"}],
            [{"State": "available", "VpcId": "vpc-1"}],
        ],
    ])


@pytest.fixture
def nat_blob():
    """describe-nat-gateways response with one live and one deleted NAT."""
    return aws_json({
        "NatGateways": [
            {
                "NatGatewayId": "nat-1",
                "SubnetId": "subnet-a",
                "VpcId": "vpc-1",
                "State": "available",
                "ConnectivityType": "public",
                "NatGatewayAddresses": [
                    {"PublicIp": "3.3.3.3", "AllocationId": "eipalloc-9"},
                ],
                "Tags": [
                    {"Key": "Name", "Value": "nat-a"},
                    {"Key": "Team", "Value": "net"},
                ],
            },
            {
                "NatGatewayId": "nat-gone",
                "SubnetId": "subnet-a",
                "VpcId": "vpc-1",
                "State": "deleted",
            },
        ]
    })


@pytest.fixture
def route_table_blob():
    """Projected describe-route-tables rows: one public, one private table."""
    return aws_json([
        [
            "rtb-pub",
            [{"Key": "Name", "Value": "public-rt"}],
            [
                {"DestinationCidrBlock": "10.0.0.0/16", "GatewayId": "local",
                 "Origin": "CreateRouteTable", "State": "active"},
                {"DestinationCidrBlock": "0.0.0.0/0", "GatewayId": "igw-1",
                 "Origin": "CreateRoute", "State": "active"},
            ],
            [
                {"Main": False, "RouteTableAssociationId": "rtbassoc-1",
                 "RouteTableId": "rtb-pub", "SubnetId": "subnet-a",
                 "AssociationState": {"State": "associated"}},
            ],
        ],
        [
            "rtb-priv",
            None,
            [
                {"DestinationCidrBlock": "10.0.0.0/16", "GatewayId": "local",
                 "Origin": "CreateRouteTable", "State": "active"},
                {"DestinationCidrBlock": "0.0.0.0/0", "NatGatewayId": "nat-1",
                 "Origin": "CreateRoute", "State": "active"},
            ],
            [
                {"Main": False, "RouteTableAssociationId": "rtbassoc-2",
                 "RouteTableId": "rtb-priv", "SubnetId": "subnet-b",
                 "AssociationState": {"State": "associated"}},
                {"Main": True, "RouteTableAssociationId": "rtbassoc-main",
                 "RouteTableId": "rtb-priv",
                 "AssociationState": {"State": "associated"}},
            ],
        ],
    ])


@pytest.fixture
def eip_blob():
    """describe-addresses response."""
    return aws_json({
        "Addresses": [
            {
                "PublicIp": "54.1.2.3",
                "AllocationId": "eipalloc-1",
                "Domain": "vpc",
                "InstanceId": "i-0abc",
                "PrivateIpAddress": "10.0.1.5",
                "Tags": [{"Key": "Name", "Value": "web-eip"}],
            },
            {
                "PublicIp": "54.4.5.6",
                "AllocationId": "eipalloc-2",
                "Domain": "vpc",
            },
        ]
    })


@pytest.fixture
def dns_support_blob():
    return aws_json({"VpcId": "vpc-1", "EnableDnsSupport": {"Value": True}})


@pytest.fixture
def dns_hostnames_blob():
    return aws_json({"VpcId": "vpc-1", "EnableDnsHostnames": {"Value": False}})


@pytest.fixture
def security_group_blob():
    """describe-security-groups response for one group."""
    return aws_json({
        "SecurityGroups": [
            {
                "Description": "web tier",
                "GroupName": "web-sg",
                "IpPermissions": [
                    {
                        "FromPort": 443,
                        "IpProtocol": "tcp",
                        "IpRanges": [{"CidrIp": "0.0.0.0/0", "Description": "https"}],
                        "Ipv6Ranges": [{"CidrIpv6": "::/0"}],
                        "PrefixListIds": [],
                        "ToPort": 443,
                        "UserIdGroupPairs": [],
                    },
                    {
                        "FromPort": 8000,
                        "IpProtocol": "tcp",
                        "IpRanges": [],
                        "Ipv6Ranges": [],
                        "PrefixListIds": [],
                        "ToPort": 8080,
                        "UserIdGroupPairs": [{"GroupId": "sg-lb", "UserId": "123456789012"}],
                    },
                ],
                "OwnerId": "123456789012",
                "GroupId": "sg-1",
                "IpPermissionsEgress": [
                    {
                        "IpProtocol": "-1",
                        "IpRanges": [{"CidrIp": "0.0.0.0/0"}],
                        "Ipv6Ranges": [],
                        "PrefixListIds": [],
                        "UserIdGroupPairs": [],
                    },
                ],
                "Tags": [{"Key": "Name", "Value": "web"}],
                "VpcId": "vpc-1",
            },
        ]
    })


@pytest.fixture
def instance_blob():
    """describe-instances response projected to its first instance."""
    return aws_json({
        "AmiLaunchIndex": 0,
        "ImageId": "ami-0123",
        "InstanceId": "i-0abc",
        "InstanceType": "t3.micro",
        "KeyName": "ops-key",
        "LaunchTime": "2024-05-01T12:00:00+00:00",
        "Monitoring": {"State": "disabled"},
        "Placement": {"AvailabilityZone": "us-east-1a", "GroupName": "", "Tenancy": "default"},
        "PrivateIpAddress": "10.0.1.5",
        "PublicIpAddress": "54.1.2.3",
        "State": {"Code": 16, "Name": "running"},
        "SubnetId": "subnet-a",
        "VpcId": "vpc-1",
        "Architecture": "arm64",
        "EbsOptimized": True,
        "IamInstanceProfile": {
            "Arn": "arn:aws:iam::123456789012:instance-profile/web-role",
            "Id": "AIPA0",
        },
        "NetworkInterfaces": [
            {
                "PrivateIpAddress": "10.0.1.5",
                "SubnetId": "subnet-a",
                "VpcId": "vpc-1",
                "Groups": [{"GroupName": "web-sg", "GroupId": "sg-1"}],
            },
        ],
        "SecurityGroups": [
            {"GroupName": "web-sg", "GroupId": "sg-1"},
            {"GroupName": "ssh-sg", "GroupId": "sg-2"},
        ],
        "Tags": [
            {"Key": "Name", "Value": "web-1"},
            {"Key": "Team", "Value": "platform"},
        ],
    })


@pytest.fixture
def responses(vpc_blob, subnets_blob, igw_blob, nat_blob, route_table_blob,
              eip_blob, dns_support_blob, dns_hostnames_blob,
              security_group_blob, instance_blob):
    """Raw responses keyed by operation (DNS attributes keyed by attribute)."""
    return {
        "describe_vpcs": vpc_blob,
        "describe_subnets": subnets_blob,
        "describe_internet_gateways": igw_blob,
        "describe_nat_gateways": nat_blob,
        "describe_route_tables": route_table_blob,
        "describe_addresses": eip_blob,
        "enableDnsSupport": dns_support_blob,
        "enableDnsHostnames": dns_hostnames_blob,
        "describe_security_groups": security_group_blob,
        "describe_instances": instance_blob,
    }


class FakeFetch:
    """Fetch collaborator serving canned responses; failing keys return None."""

    def __init__(self, responses, failing=()):
        self.responses = dict(responses)
        self.failing = set(failing)
        self.calls = []

    def _key(self, query):
        if query.operation == "describe_vpc_attribute":
            return query.params.get("Attribute")
        return query.operation

    def __call__(self, query):
        self.calls.append(query)
        key = self._key(query)
        if key in self.failing:
            return None
        return self.responses.get(key)


@pytest.fixture
def fake_fetch(responses):
    return FakeFetch(responses)


@pytest.fixture
def make_fetch(responses):
    """Factory for a FakeFetch with some operations failing."""
    def _make(*failing):
        return FakeFetch(responses, failing)
    return _make


@pytest.fixture
def sample_graph():
    """Fully populated graph for vpc-1."""
    return NetworkGraph(
        network_id="vpc-1",
        network=NetworkEntity(
            id="vpc-1",
            name="prod-vpc",
            cidr="10.0.0.0/16",
            state="available",
            tags={"Name": "prod-vpc", "Env": "prod"},
        ),
        subnets=[
            Subnet("subnet-a", "public-a", "10.0.1.0/24", "us-east-1a", "available", "vpc-1"),
            Subnet("subnet-b", "private-b", "10.0.2.0/24", "us-east-1b", "available", "vpc-1"),
        ],
        internet_gateways=[
            InternetGateway("igw-1", "main-igw", GatewayState.ATTACHED),
        ],
        nat_gateways=[
            NatGateway(
                id="nat-1",
                name="nat-a",
                state="available",
                connectivity_type=ConnectivityType.PUBLIC,
                availability_mode=AvailabilityMode.ZONAL,
                subnet_id="subnet-a",
                public_ip="3.3.3.3",
                allocation_id="eipalloc-9",
            ),
        ],
        route_tables=[
            RouteTable(
                id="rtb-pub",
                name="public-rt",
                routes=[
                    Route("10.0.0.0/16", "local"),
                    Route("0.0.0.0/0", "igw-1"),
                ],
                associations=[Association("subnet-a", "public-a")],
            ),
            RouteTable(
                id="rtb-priv",
                name="",
                routes=[
                    Route("10.0.0.0/16", "local"),
                    Route("0.0.0.0/0", "nat-1"),
                ],
                associations=[Association("subnet-b", "private-b")],
            ),
        ],
        elastic_ips=[
            ElasticIp("54.1.2.3", "web-eip", "eipalloc-1", "i-0abc", "10.0.1.5"),
        ],
        dns_support=True,
        dns_hostnames=False,
    )
