"""
Tests for the tag/route/association decoder.
"""

from decoder import (
    LOCAL_TARGET,
    decode_associations,
    decode_name_tag,
    decode_routes,
    decode_tags,
    resolve_target,
)
from models import Association, Route


class TestDecodeTags:
    """Test tag decoding."""

    def test_first_key_wins(self):
        block = ('[{"Key": "Env", "Value": "prod"}, '
                 '{"Key": "Name", "Value": "web"}, '
                 '{"Key": "Env", "Value": "staging"}]')
        tags = decode_tags(block)
        assert tags == {"Env": "prod", "Name": "web"}
        assert list(tags) == ["Env", "Name"]

    def test_value_before_key(self):
        block = '[{"Value": "web", "Key": "Name"}]'
        assert decode_tags(block) == {"Name": "web"}

    def test_incomplete_entry_skipped(self):
        block = '[{"Key": "Orphan"}, {"Key": "Name", "Value": "web"}]'
        assert decode_tags(block) == {"Name": "web"}

    def test_linear_fallback_without_objects(self):
        block = '"Key": "Name", "Value": "web", "Key": "Env", "Value": "dev"'
        assert decode_tags(block) == {"Name": "web", "Env": "dev"}

    def test_empty(self):
        assert decode_tags("") == {}
        assert decode_tags(None) == {}
        assert decode_tags("[]") == {}


class TestDecodeNameTag:
    """Test Name tag extraction."""

    def test_name_present(self):
        assert decode_name_tag('[{"Key": "Name", "Value": "prod-vpc"}]') == "prod-vpc"

    def test_name_absent(self):
        assert decode_name_tag('[{"Key": "Env", "Value": "prod"}]') == ""

    def test_truncated_block(self):
        assert decode_name_tag('[{"Key": "Name", "Val') == ""


class TestResolveTarget:
    """Test route target precedence."""

    def test_gateway_over_nat(self):
        entry = '{"DestinationCidrBlock": "0.0.0.0/0", "NatGatewayId": "nat-1", "GatewayId": "igw-1"}'
        assert resolve_target(entry) == "igw-1"

    def test_nat(self):
        entry = '{"DestinationCidrBlock": "0.0.0.0/0", "NatGatewayId": "nat-1"}'
        assert resolve_target(entry) == "nat-1"

    def test_local_fallback(self):
        entry = '{"DestinationCidrBlock": "10.0.0.0/16", "TransitGatewayId": "tgw-1"}'
        assert resolve_target(entry) == LOCAL_TARGET

    def test_empty_gateway_falls_through(self):
        entry = '{"GatewayId": "", "NatGatewayId": "nat-2"}'
        assert resolve_target(entry) == "nat-2"


class TestDecodeRoutes:
    """Test route decoding."""

    def test_state_defaults_active(self):
        routes = decode_routes('[{"DestinationCidrBlock":"0.0.0.0/0","NatGatewayId":"nat-1"}]')
        assert routes == [Route(destination="0.0.0.0/0", target="nat-1", state="active")]

    def test_order_and_state(self):
        block = ('[{"DestinationCidrBlock": "10.0.0.0/16", "GatewayId": "local", "State": "active"}, '
                 '{"DestinationCidrBlock": "0.0.0.0/0", "GatewayId": "igw-1", "State": "blackhole"}]')
        routes = decode_routes(block)
        assert [r.destination for r in routes] == ["10.0.0.0/16", "0.0.0.0/0"]
        assert routes[0].target == "local"
        assert routes[1].state == "blackhole"

    def test_route_without_destination_skipped(self):
        block = ('[{"DestinationIpv6CidrBlock": "::/0", "GatewayId": "igw-1"}, '
                 '{"DestinationCidrBlock": "0.0.0.0/0", "GatewayId": "igw-1"}]')
        routes = decode_routes(block)
        assert len(routes) == 1
        assert routes[0].destination == "0.0.0.0/0"

    def test_empty(self):
        assert decode_routes("") == []
        assert decode_routes("[]") == []


class TestDecodeAssociations:
    """Test association decoding."""

    def test_resolved_names(self):
        block = '[{"SubnetId": "subnet-a"}, {"SubnetId": "subnet-b"}]'
        names = {"subnet-a": "public-a"}
        associations = decode_associations(block, names.get)
        assert associations == [
            Association("subnet-a", "public-a"),
            Association("subnet-b", ""),
        ]
        assert associations[1].display == "NULL · subnet-b"

    def test_main_association_skipped(self):
        block = '[{"Main": true, "RouteTableId": "rtb-1"}, {"SubnetId": "subnet-a"}]'
        associations = decode_associations(block)
        assert [a.subnet_id for a in associations] == ["subnet-a"]

    def test_empty_subnet_id_skipped(self):
        assert decode_associations('[{"SubnetId": ""}]') == []

    def test_no_resolver(self):
        associations = decode_associations('[{"SubnetId": "subnet-a"}]')
        assert associations[0].name == ""
