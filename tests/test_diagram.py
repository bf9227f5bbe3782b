"""
Tests for the topology diagram synthesizer.
"""

from dataclasses import replace

from diagram import (
    INTERNET_NODE,
    NETWORK_GROUP,
    DiagramDescription,
    DiagramEdge,
    EdgeKind,
    NodeKind,
    group_by_zone,
    node_id,
    synthesize,
)
from models import (
    AvailabilityMode,
    Association,
    InternetGateway,
    NatGateway,
    NetworkGraph,
    Route,
    RouteTable,
    Subnet,
)


class TestNodeId:
    """Test Mermaid-safe ids."""

    def test_replaces_punctuation(self):
        assert node_id("subnet-0abc") == "subnet_0abc"
        assert node_id("us-east-1a") == "us_east_1a"

    def test_keeps_safe_characters(self):
        assert node_id("igw_1A") == "igw_1A"


class TestGroupByZone:
    """Test zone grouping."""

    def test_first_seen_order(self):
        subnets = [
            Subnet("s-1", "", "", "us-east-1b", "available", "vpc-1"),
            Subnet("s-2", "", "", "us-east-1a", "available", "vpc-1"),
            Subnet("s-3", "", "", "us-east-1b", "available", "vpc-1"),
        ]
        zones = group_by_zone(subnets)
        assert list(zones) == ["us-east-1b", "us-east-1a"]
        assert [s.id for s in zones["us-east-1b"]] == ["s-1", "s-3"]

    def test_missing_zone(self):
        zones = group_by_zone([Subnet("s-1", "", "", "", "available", "vpc-1")])
        assert list(zones) == ["unknown"]


class TestSynthesize:
    """Test diagram synthesis from a graph."""

    def test_nodes(self, sample_graph):
        diagram = synthesize(sample_graph)
        assert diagram.node(INTERNET_NODE).kind == NodeKind.INTERNET
        assert diagram.node("igw_1").label == "🌐 main-igw"
        assert diagram.node("igw_1").group == NETWORK_GROUP
        assert diagram.node("subnet_a").label == "public-a<br/>10.0.1.0/24"
        assert diagram.node("subnet_a").group == "az_us_east_1a"
        # NAT sits in its subnet's zone
        assert diagram.node("nat_1").group == "az_us_east_1a"

    def test_groups(self, sample_graph):
        diagram = synthesize(sample_graph)
        labels = {g.id: g.label for g in diagram.groups}
        assert labels[NETWORK_GROUP] == "prod-vpc (10.0.0.0/16)"
        assert labels["az_us_east_1a"] == "📍 us-east-1a"
        assert labels["az_us_east_1b"] == "📍 us-east-1b"

    def test_edges(self, sample_graph):
        diagram = synthesize(sample_graph)
        assert diagram.edges == [
            DiagramEdge(INTERNET_NODE, "igw_1", EdgeKind.INTERNET),
            DiagramEdge("igw_1", "subnet_a", EdgeKind.PUBLIC, "Public"),
            DiagramEdge("subnet_b", "nat_1", EdgeKind.PRIVATE, "Private"),
            DiagramEdge("nat_1", "igw_1", EdgeKind.EGRESS),
        ]

    def test_deterministic(self, sample_graph):
        assert synthesize(sample_graph).render() == synthesize(sample_graph).render()

    def test_uses_graph_name_lookup(self, sample_graph):
        lookup = {"igw-1": "edge-gw", "subnet-a": "dmz-a"}
        diagram = synthesize(replace(sample_graph, name_lookup=lookup))
        assert diagram.node("igw_1").label == "🌐 edge-gw"
        assert diagram.node("subnet_a").label == "dmz-a<br/>10.0.1.0/24"
        # entities missing from the lookup keep their own names
        assert diagram.node("subnet_b").label.startswith("private-b")

    def test_unnamed_entities_use_ids(self):
        graph = NetworkGraph(
            network_id="vpc-1",
            subnets=[Subnet("subnet-x", "", "10.0.9.0/24", "us-east-1a", "available", "vpc-1")],
            internet_gateways=[InternetGateway("igw-x", "")],
        )
        diagram = synthesize(graph)
        assert diagram.node("igw_x").label == "🌐 igw-x"
        assert diagram.node("subnet_x").label == "subnet-x<br/>10.0.9.0/24"
        labels = {g.id: g.label for g in diagram.groups}
        assert labels[NETWORK_GROUP] == "vpc-1"

    def test_nat_without_matching_subnet(self, sample_graph):
        graph = replace(sample_graph, nat_gateways=[
            NatGateway(id="nat-9", name="orphan", state="available", subnet_id="subnet-gone"),
        ])
        diagram = synthesize(graph)
        assert diagram.node("nat_9").group == NETWORK_GROUP
        assert not any(e.target == "nat_9" and e.kind == EdgeKind.PRIVATE for e in diagram.edges)
        assert DiagramEdge("nat_9", "igw_1", EdgeKind.EGRESS) in diagram.edges

    def test_regional_nat_at_network_level(self, sample_graph):
        graph = replace(sample_graph, nat_gateways=[
            NatGateway(id="nat-r", name="", state="available",
                       availability_mode=AvailabilityMode.REGIONAL),
        ])
        assert synthesize(graph).node("nat_r").group == NETWORK_GROUP

    def test_first_default_route_decides(self, sample_graph):
        graph = replace(sample_graph, route_tables=[
            RouteTable("rtb-1", "", routes=[
                Route("0.0.0.0/0", "nat-1"),
                Route("0.0.0.0/0", "igw-1"),
            ], associations=[Association("subnet-a")]),
        ])
        edges = synthesize(graph).edges
        assert DiagramEdge("subnet_a", "nat_1", EdgeKind.PRIVATE, "Private") in edges
        assert not any(e.kind == EdgeKind.PUBLIC for e in edges)

    def test_nat_egress_uses_first_gateway(self, sample_graph):
        graph = replace(sample_graph, internet_gateways=[
            InternetGateway("igw-1", "first"),
            InternetGateway("igw-2", "second"),
        ])
        egress = [e for e in synthesize(graph).edges if e.kind == EdgeKind.EGRESS]
        assert [e.target for e in egress] == ["igw_1"]

    def test_association_to_unknown_subnet_skipped(self, sample_graph):
        graph = replace(sample_graph, route_tables=[
            RouteTable("rtb-1", "", routes=[Route("0.0.0.0/0", "igw-1")],
                       associations=[Association("subnet-elsewhere")]),
        ])
        assert not any(e.kind == EdgeKind.PUBLIC for e in synthesize(graph).edges)

    def test_no_gateways(self):
        graph = NetworkGraph(
            network_id="vpc-1",
            subnets=[Subnet("s-1", "only", "10.0.0.0/24", "us-east-1a", "available", "vpc-1")],
        )
        diagram = synthesize(graph)
        assert diagram.edges == []
        assert diagram.node(INTERNET_NODE) is not None

    def test_empty_graph(self):
        text = synthesize(NetworkGraph(network_id="vpc-1")).render()
        assert text.startswith("```mermaid\ngraph TD\n")
        assert text.endswith("```\n")


class TestRender:
    """Test Mermaid rendering."""

    def test_structure(self, sample_graph):
        text = synthesize(sample_graph).render()
        lines = text.splitlines()
        assert lines[0] == "```mermaid"
        assert lines[1] == "graph TD"
        assert lines[2] == '    internet(("☁️ Internet"))'
        assert '    subgraph network["prod-vpc (10.0.0.0/16)"]' in lines
        assert '        subgraph az_us_east_1a["📍 us-east-1a"]' in lines
        assert '            subnet_a["public-a<br/>10.0.1.0/24"]' in lines
        assert lines[-1] == "```"

    def test_edge_lines(self, sample_graph):
        text = synthesize(sample_graph).render()
        assert "    internet <--> igw_1" in text
        assert "    igw_1 <-->|Public| subnet_a" in text
        assert "    subnet_b -.->|Private| nat_1" in text
        assert "    nat_1 ==> igw_1" in text

    def test_styles(self, sample_graph):
        text = synthesize(sample_graph).render()
        assert "style igw_1 fill:#fff3e0,stroke:#e65100" in text
        assert "style az_us_east_1a fill:#f3e5f5" in text

    def test_quotes_escaped(self):
        graph = NetworkGraph(
            network_id="vpc-1",
            subnets=[Subnet("s-1", 'say "hi"', "", "us-east-1a", "available", "vpc-1")],
        )
        assert '["say #quot;hi#quot;"]' in synthesize(graph).render()

    def test_duplicate_edges_dropped(self):
        diagram = DiagramDescription()
        edge = DiagramEdge("a", "b", EdgeKind.EGRESS)
        diagram.add_edge(edge)
        diagram.add_edge(edge)
        assert diagram.edges == [edge]
