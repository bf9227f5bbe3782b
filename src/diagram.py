"""
Topology Diagram Synthesizer
Turns a finished NetworkGraph into a styled node/edge description and renders
it as a Mermaid flowchart.

Synthesis is a pure function of the graph: identical graphs produce identical
text. Orderings follow the graph's own first-seen orderings only.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from models import NetworkGraph, Subnet

UNKNOWN_ZONE = "unknown"
INTERNET_NODE = "internet"
NETWORK_GROUP = "network"


class NodeKind(Enum):
    """Styling class of a node or group"""
    INTERNET = "internet"
    NETWORK = "network"
    ZONE = "zone"
    SUBNET = "subnet"
    INTERNET_GATEWAY = "igw"
    NAT_GATEWAY = "nat"


class EdgeKind(Enum):
    """Reachability meaning of an edge"""
    INTERNET = "internet"  # Internet <-> first gateway
    PUBLIC = "public"      # gateway <-> subnet
    PRIVATE = "private"    # subnet -> NAT
    EGRESS = "egress"      # NAT -> gateway


STYLES = {
    NodeKind.INTERNET: "fill:#fff9c4,stroke:#f57f17",
    NodeKind.NETWORK: "fill:#e1f5fe,stroke:#01579b",
    NodeKind.ZONE: "fill:#f3e5f5,stroke:#4a148c,stroke-dasharray: 5 5",
    NodeKind.SUBNET: "fill:#e8f5e9,stroke:#1b5e20",
    NodeKind.INTERNET_GATEWAY: "fill:#fff3e0,stroke:#e65100",
    NodeKind.NAT_GATEWAY: "fill:#ffecb3,stroke:#ff6f00",
}

EDGE_FORMATS = {
    EdgeKind.INTERNET: "{source} <--> {target}",
    EdgeKind.PUBLIC: "{source} <-->|{label}| {target}",
    EdgeKind.PRIVATE: "{source} -.->|{label}| {target}",
    EdgeKind.EGRESS: "{source} ==> {target}",
}

# =============================================================================
# DESCRIPTION MODELS
# =============================================================================

@dataclass(frozen=True)
class DiagramNode:
    id: str
    label: str
    kind: NodeKind
    group: Optional[str] = None


@dataclass(frozen=True)
class DiagramGroup:
    id: str
    label: str
    kind: NodeKind
    parent: Optional[str] = None


@dataclass(frozen=True)
class DiagramEdge:
    source: str
    target: str
    kind: EdgeKind
    label: str = ""


@dataclass
class DiagramDescription:
    """Nodes, nested groups and edges of one topology diagram"""
    nodes: List[DiagramNode] = field(default_factory=list)
    groups: List[DiagramGroup] = field(default_factory=list)
    edges: List[DiagramEdge] = field(default_factory=list)

    def add_edge(self, edge: DiagramEdge):
        if edge not in self.edges:
            self.edges.append(edge)

    def node(self, node_id: str) -> Optional[DiagramNode]:
        return next((n for n in self.nodes if n.id == node_id), None)

    def render(self) -> str:
        """Mermaid `graph TD` text inside a fenced code block."""
        lines = ["```mermaid", "graph TD"]
        for node in self._nodes_in(None):
            lines.extend(_node_lines(node, 1))
        for group in self._groups_in(None):
            self._render_group(group, 1, lines)

        if self.edges:
            lines.append("")
        for edge in self.edges:
            text = EDGE_FORMATS[edge.kind].format(
                source=edge.source, target=edge.target, label=edge.label)
            lines.append(f"    {text}")

        lines.append("```")
        return "\n".join(lines) + "\n"

    def _nodes_in(self, group: Optional[str]) -> List[DiagramNode]:
        return [n for n in self.nodes if n.group == group]

    def _groups_in(self, parent: Optional[str]) -> List[DiagramGroup]:
        return [g for g in self.groups if g.parent == parent]

    def _render_group(self, group: DiagramGroup, depth: int, lines: List[str]):
        indent = "    " * depth
        lines.append(f'{indent}subgraph {group.id}["{_escape(group.label)}"]')
        lines.append(f"{indent}style {group.id} {STYLES[group.kind]}")
        for node in self._nodes_in(group.id):
            lines.extend(_node_lines(node, depth + 1))
        for child in self._groups_in(group.id):
            self._render_group(child, depth + 1, lines)
        lines.append(f"{indent}end")


def _escape(label: str) -> str:
    return label.replace('"', "#quot;")


def _node_lines(node: DiagramNode, depth: int) -> List[str]:
    indent = "    " * depth
    if node.kind == NodeKind.INTERNET:
        shape = f'(("{_escape(node.label)}"))'
    else:
        shape = f'["{_escape(node.label)}"]'
    return [
        f"{indent}{node.id}{shape}",
        f"{indent}style {node.id} {STYLES[node.kind]}",
    ]


def node_id(identifier: str) -> str:
    """Mermaid-safe node id derived from a resource id."""
    return re.sub(r"[^0-9A-Za-z_]", "_", identifier)

# =============================================================================
# SYNTHESIS
# =============================================================================

def group_by_zone(subnets: List[Subnet]) -> Dict[str, List[Subnet]]:
    """Subnets per availability zone, zones in first-seen order."""
    zones: Dict[str, List[Subnet]] = {}
    for subnet in subnets:
        zones.setdefault(subnet.availability_zone or UNKNOWN_ZONE, []).append(subnet)
    return zones


def _display_names(graph: NetworkGraph) -> Dict[str, str]:
    """The graph's own name lookup, with name-or-id for anything it lacks."""
    names = dict(graph.name_lookup)
    for entity in graph.internet_gateways + graph.nat_gateways + graph.subnets:
        if not names.get(entity.id):
            names[entity.id] = entity.name or entity.id
    return names


def synthesize(graph: NetworkGraph) -> DiagramDescription:
    """
    Build the topology diagram for a finished graph.

    Subnets are grouped per zone with their NATs nested beside them; NATs
    without a matching subnet sit at network level. Each route table's first
    default route decides whether its subnets are drawn as public (gateway) or
    private (NAT). Every NAT egresses through the first internet gateway.
    """
    names = _display_names(graph)
    diagram = DiagramDescription()

    diagram.nodes.append(DiagramNode(INTERNET_NODE, "☁️ Internet", NodeKind.INTERNET))

    title = graph.name
    if graph.network and graph.network.cidr:
        title = f"{title} ({graph.network.cidr})"
    diagram.groups.append(DiagramGroup(NETWORK_GROUP, title, NodeKind.NETWORK))

    for igw in graph.internet_gateways:
        diagram.nodes.append(DiagramNode(
            node_id(igw.id), f"🌐 {names[igw.id]}", NodeKind.INTERNET_GATEWAY, NETWORK_GROUP))

    placed = set()
    for zone, subnets in group_by_zone(graph.subnets).items():
        zone_group = f"az_{node_id(zone)}"
        diagram.groups.append(DiagramGroup(zone_group, f"📍 {zone}", NodeKind.ZONE, NETWORK_GROUP))
        for subnet in subnets:
            label = names[subnet.id]
            if subnet.cidr:
                label = f"{label}<br/>{subnet.cidr}"
            diagram.nodes.append(DiagramNode(node_id(subnet.id), label, NodeKind.SUBNET, zone_group))
            for nat in graph.nat_gateways:
                if nat.subnet_id == subnet.id and nat.id not in placed:
                    diagram.nodes.append(DiagramNode(
                        node_id(nat.id), f"🔀 {names[nat.id]}", NodeKind.NAT_GATEWAY, zone_group))
                    placed.add(nat.id)

    for nat in graph.nat_gateways:
        if nat.id not in placed:
            diagram.nodes.append(DiagramNode(
                node_id(nat.id), f"🔀 {names[nat.id]}", NodeKind.NAT_GATEWAY, NETWORK_GROUP))
            placed.add(nat.id)

    _connect(graph, diagram)
    return diagram


def _connect(graph: NetworkGraph, diagram: DiagramDescription):
    igw_ids = {igw.id for igw in graph.internet_gateways}
    nat_ids = {nat.id for nat in graph.nat_gateways}
    subnet_ids = {subnet.id for subnet in graph.subnets}
    first_igw = graph.internet_gateways[0] if graph.internet_gateways else None

    if first_igw:
        diagram.add_edge(DiagramEdge(INTERNET_NODE, node_id(first_igw.id), EdgeKind.INTERNET))

    for table in graph.route_tables:
        route = table.default_route()
        if route is None:
            continue
        for association in table.associations:
            if association.subnet_id not in subnet_ids:
                continue
            subnet_node = node_id(association.subnet_id)
            if route.target in igw_ids:
                diagram.add_edge(DiagramEdge(
                    node_id(route.target), subnet_node, EdgeKind.PUBLIC, "Public"))
            elif route.target in nat_ids:
                diagram.add_edge(DiagramEdge(
                    subnet_node, node_id(route.target), EdgeKind.PRIVATE, "Private"))

    if first_igw:
        for nat in graph.nat_gateways:
            diagram.add_edge(DiagramEdge(node_id(nat.id), node_id(first_igw.id), EdgeKind.EGRESS))
