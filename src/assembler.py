"""
Resource Graph Assembler
One pure function per entity kind: raw response in, entities out.

Responses whose shape is stable (subnets, NAT gateways, security groups) are
parsed as JSON. Responses that nest unpredictably (projected rows of VPCs,
internet gateways and route tables, addresses, instances) are scanned. Either
way a response that cannot be decoded degrades to an empty result instead of
raising.
"""

import json
import logging
from typing import Dict, Iterator, List, Optional, Tuple

from models import (
    AvailabilityMode,
    ConnectivityType,
    ElasticIp,
    GatewayState,
    InstanceDetail,
    InternetGateway,
    NatGateway,
    NetworkEntity,
    NetworkGraph,
    RouteTable,
    SecurityGroupDetail,
    SecurityRule,
    Subnet,
)
from decoder import (
    NAME_TAG,
    NameResolver,
    decode_associations,
    decode_name_tag,
    decode_routes,
    decode_tags,
)
from scanner import (
    balanced_span,
    block_after,
    block_start,
    find_bool,
    find_ids,
    find_state,
    find_value,
    find_values,
    iter_blocks,
    iter_fragments,
)

logger = logging.getLogger(__name__)

DNS_ATTRIBUTE_KEYS = {
    'enableDnsSupport': 'EnableDnsSupport',
    'enableDnsHostnames': 'EnableDnsHostnames',
}

ACTIVE_ATTACHMENT_STATES = ('available', 'attached')

# =============================================================================
# ROW SCANNING HELPERS
# =============================================================================

def _iter_rows(blob: str, prefix: str) -> Iterator[Tuple[str, str]]:
    """
    Walk projected rows such as `[["rtb-1", [tags], [routes], [assocs]], ...]`.

    Only identifiers that open a row are taken, so ids quoted inside nested
    blocks (a route's GatewayId, an association's RouteTableId) are skipped.
    A truncated last row yields whatever text is left.

    Yields:
        (identifier, row text following the identifier)
    """
    pos = 0
    while True:
        row = None
        for ident, start, end in find_ids(blob[pos:], prefix):
            before = blob[:pos + start].rstrip()
            if before.endswith('['):
                row = (ident, len(before) - 1, pos + end)
                break
        if row is None:
            return

        ident, row_start, id_end = row
        row_end = balanced_span(blob, row_start, '[') or len(blob)
        yield ident, blob[id_end:row_end]
        pos = row_end


def _assign_blocks(row: str, slots: List[Tuple[str, str]]) -> Dict[str, str]:
    """
    Match sibling blocks in a row to named slots.

    A block goes to the first open slot whose marker it contains; a block with
    no marker at all (e.g. `[]`) takes the next open slot by position. This
    keeps a `null` tag list from shifting routes into the tags slot.
    """
    assigned: Dict[str, str] = {}
    markers = [marker for _, marker in slots]
    for begin, end in iter_blocks(row, 0, '['):
        block = row[begin:end]
        open_slots = [(name, marker) for name, marker in slots if name not in assigned]
        if not open_slots:
            break
        target = next((name for name, marker in open_slots if f'"{marker}"' in block), None)
        if target is None and not any(f'"{m}"' in block for m in markers):
            target = open_slots[0][0]
        if target is not None:
            assigned[target] = block
    return assigned


def _tag_map(tags) -> Dict[str, str]:
    """Structured tag list to ordered map, first key wins."""
    result: Dict[str, str] = {}
    for tag in tags or []:
        if not isinstance(tag, dict):
            continue
        key = tag.get('Key')
        if key is None or key in result:
            continue
        result[key] = tag.get('Value') or ''
    return result


def _load_json(blob: str, context: str):
    try:
        return json.loads(blob)
    except (TypeError, ValueError) as e:
        logger.debug("%s: response is not valid JSON (%s)", context, e)
        return None

# =============================================================================
# NETWORK
# =============================================================================

def parse_network(blob: str, network_id: str) -> Optional[NetworkEntity]:
    """
    Network root from a describe-vpcs response.

    Returns None only when the response carries nothing recognisable; a VPC
    without a Name tag is named after its id.
    """
    if not blob or not blob.strip():
        return None

    cidr = find_value(blob, 'CidrBlock')
    vpc_id = find_value(blob, 'VpcId')
    if cidr is None and vpc_id is None:
        logger.debug("parse_network: no CidrBlock or VpcId in response for %s", network_id)
        return None

    tags_block = block_after(blob, 'Tags')
    tags = decode_tags(tags_block) if tags_block else {}

    return NetworkEntity(
        id=network_id,
        name=tags.get(NAME_TAG) or network_id,
        cidr=cidr or '',
        state=find_state(blob),
        tags=tags,
    )


def parse_vpc_list(blob: str) -> List[Tuple[str, str]]:
    """(vpc id, name) rows from `Vpcs[*].[VpcId,Tags]`."""
    if not blob:
        return []
    vpcs = []
    for vpc_id, row in _iter_rows(blob, 'vpc-'):
        tags = _assign_blocks(row, [('tags', 'Key')]).get('tags', '')
        vpcs.append((vpc_id, decode_name_tag(tags)))
    return vpcs


def parse_dns_attribute(blob: str, attribute: str) -> bool:
    """True only when the attribute response explicitly says so."""
    key = DNS_ATTRIBUTE_KEYS.get(attribute, attribute)
    return find_bool(blob, key) is True

# =============================================================================
# SUBNETS
# =============================================================================

def parse_subnets(blob: str, network_id: str) -> List[Subnet]:
    """
    Subnets belonging to `network_id`.

    The listing covers every subnet in the region; subnets of other networks
    are dropped here rather than filtered server-side.
    """
    data = _load_json(blob, 'parse_subnets')
    if not isinstance(data, dict):
        return []

    subnets = []
    for raw in data.get('Subnets') or []:
        if not isinstance(raw, dict) or not raw.get('SubnetId'):
            continue
        if raw.get('VpcId') != network_id:
            continue
        subnets.append(Subnet(
            id=raw['SubnetId'],
            name=_tag_map(raw.get('Tags')).get(NAME_TAG, ''),
            cidr=raw.get('CidrBlock') or '',
            availability_zone=raw.get('AvailabilityZone') or '',
            state=raw.get('State') or 'unknown',
            network_id=network_id,
        ))
    return subnets

# =============================================================================
# GATEWAYS
# =============================================================================

def _attachment_state(block: str) -> GatewayState:
    states = set(find_values(block, 'State'))
    if states.intersection(ACTIVE_ATTACHMENT_STATES) or 'vpc-' in block:
        return GatewayState.ATTACHED
    return GatewayState.DETACHED


def parse_internet_gateways(blob: str) -> List[InternetGateway]:
    """Gateways from `InternetGateways[*].[InternetGatewayId,Tags,Attachments]`."""
    if not blob:
        return []

    gateways = []
    for igw_id, row in _iter_rows(blob, 'igw-'):
        blocks = _assign_blocks(row, [('tags', 'Key'), ('attachments', 'State')])
        gateways.append(InternetGateway(
            id=igw_id,
            name=decode_name_tag(blocks.get('tags', '')),
            state=_attachment_state(blocks.get('attachments', '')),
        ))
    return gateways


def _parse_nat(raw: Dict) -> NatGateway:
    tags = _tag_map(raw.get('Tags'))
    name = tags.pop(NAME_TAG, '')

    connectivity = (ConnectivityType.PRIVATE
                    if raw.get('ConnectivityType') == 'private'
                    else ConnectivityType.PUBLIC)
    mode = (AvailabilityMode.REGIONAL
            if raw.get('AvailabilityMode') == 'regional'
            else AvailabilityMode.ZONAL)

    public_ip = allocation_id = ''
    addresses = raw.get('NatGatewayAddresses') or []
    if (mode == AvailabilityMode.ZONAL and connectivity == ConnectivityType.PUBLIC
            and isinstance(addresses, list) and addresses and isinstance(addresses[0], dict)):
        public_ip = addresses[0].get('PublicIp') or ''
        allocation_id = addresses[0].get('AllocationId') or ''

    return NatGateway(
        id=raw['NatGatewayId'],
        name=name,
        state=raw.get('State') or 'unknown',
        connectivity_type=connectivity,
        availability_mode=mode,
        subnet_id=None if mode == AvailabilityMode.REGIONAL else (raw.get('SubnetId') or None),
        public_ip=public_ip,
        allocation_id=allocation_id,
        auto_scaling_ips=raw.get('AutoScalingIps') or '',
        auto_provision_zones=raw.get('AutoProvisionZones') or '',
        tags=tags,
    )


def parse_nat_gateways(blob: str) -> List[NatGateway]:
    """NAT gateways, excluding deleted ones."""
    data = _load_json(blob, 'parse_nat_gateways')
    if not isinstance(data, dict):
        return []

    nats = []
    for raw in data.get('NatGateways') or []:
        if not isinstance(raw, dict) or not raw.get('NatGatewayId'):
            continue
        if raw.get('State') == 'deleted':
            continue
        nats.append(_parse_nat(raw))
    return nats

# =============================================================================
# ROUTE TABLES
# =============================================================================

def parse_route_tables(blob: str, resolve_name: NameResolver = None) -> List[RouteTable]:
    """
    Route tables from `RouteTables[*].[RouteTableId,Tags,Routes,Associations]`.

    Each row is read in one left-to-right pass: tags, then routes, then
    associations, each carved out as a balanced block.
    """
    if not blob:
        return []

    tables = []
    for rtb_id, row in _iter_rows(blob, 'rtb-'):
        blocks = _assign_blocks(row, [
            ('tags', 'Key'),
            ('routes', 'DestinationCidrBlock'),
            ('associations', 'SubnetId'),
        ])
        tables.append(RouteTable(
            id=rtb_id,
            name=decode_name_tag(blocks.get('tags', '')),
            routes=decode_routes(blocks.get('routes', '')),
            associations=decode_associations(blocks.get('associations', ''), resolve_name),
        ))
    return tables

# =============================================================================
# ELASTIC IPS
# =============================================================================

def parse_elastic_ips(blob: str) -> List[ElasticIp]:
    """
    Elastic IPs, one `{}` object per address.

    The `Addresses` array is walked object by object without requiring it to
    close, so a truncated response keeps its complete entries. A cut-off last
    entry is kept only when its AllocationId made it through whole.
    """
    if not blob:
        return []

    start = block_start(blob, 'Addresses')
    if start is None:
        start = 0
    else:
        end = balanced_span(blob, start - 1, '[')
        if end is not None:
            blob = blob[:end]

    addresses = []
    for obj, complete in iter_fragments(blob, start):
        public_ip = find_value(obj, 'PublicIp') or ''
        allocation_id = find_value(obj, 'AllocationId') or ''
        if not complete and not allocation_id:
            logger.debug("parse_elastic_ips: dropping truncated entry")
            continue
        if not public_ip and not allocation_id:
            continue
        name = decode_name_tag(block_after(obj, 'Tags') or '')
        addresses.append(ElasticIp(
            public_ip=public_ip,
            name=name or public_ip,
            allocation_id=allocation_id,
            instance_id=find_value(obj, 'InstanceId') or '',
            private_ip=find_value(obj, 'PrivateIpAddress') or '',
        ))
    return addresses

# =============================================================================
# SECURITY GROUPS
# =============================================================================

PROTOCOL_NAMES = {'-1': 'All', 'tcp': 'TCP', 'udp': 'UDP', 'icmp': 'ICMP'}

# (list key, peer key, peer prefix) in rendering order
PEER_KEYS = (
    ('IpRanges', 'CidrIp', ''),
    ('Ipv6Ranges', 'CidrIpv6', ''),
    ('UserIdGroupPairs', 'GroupId', 'sg: '),
)


def format_protocol(protocol) -> str:
    protocol = str(protocol or '-1')
    return PROTOCOL_NAMES.get(protocol, protocol.upper())


def format_port_range(protocol, from_port, to_port) -> str:
    """`All`, a single port, or `from-to`."""
    if str(protocol) == '-1' or from_port is None or to_port is None or from_port == -1:
        return 'All'
    if from_port == to_port:
        return str(from_port)
    return f"{from_port}-{to_port}"


def parse_security_rules(permissions) -> List[SecurityRule]:
    """One rule per peer: IPv4 ranges, then IPv6 ranges, then group pairs."""
    rules = []
    for perm in permissions or []:
        if not isinstance(perm, dict):
            continue
        protocol = format_protocol(perm.get('IpProtocol'))
        ports = format_port_range(perm.get('IpProtocol'), perm.get('FromPort'), perm.get('ToPort'))
        for list_key, peer_key, prefix in PEER_KEYS:
            for entry in perm.get(list_key) or []:
                if not isinstance(entry, dict) or not entry.get(peer_key):
                    continue
                rules.append(SecurityRule(protocol, ports, prefix + entry[peer_key],
                                          entry.get('Description') or '-'))
    return rules


def parse_security_group(blob: str) -> Optional[SecurityGroupDetail]:
    """First group of a describe-security-groups response, named by tag or GroupName."""
    data = _load_json(blob, 'parse_security_group')
    if not isinstance(data, dict):
        return None
    groups = [g for g in data.get('SecurityGroups') or []
              if isinstance(g, dict) and g.get('GroupId')]
    if not groups:
        return None

    raw = groups[0]
    return SecurityGroupDetail(
        id=raw['GroupId'],
        name=_tag_map(raw.get('Tags')).get(NAME_TAG) or raw.get('GroupName') or '',
        description=raw.get('Description') or '',
        vpc_id=raw.get('VpcId') or '',
        inbound=parse_security_rules(raw.get('IpPermissions')),
        outbound=parse_security_rules(raw.get('IpPermissionsEgress')),
    )

# =============================================================================
# INSTANCES
# =============================================================================

INSTANCE_STATES = ('running', 'stopped', 'pending', 'terminated', 'stopping', 'shutting-down')


def _instance_state(blob: str) -> str:
    # State is an object ({"Code": 16, "Name": "running"}); its Name is the
    # only Name string whose value is a lifecycle state
    for value in find_values(blob, 'Name'):
        if value in INSTANCE_STATES:
            return value
    return 'unknown'


def parse_instance(blob: str) -> Optional[InstanceDetail]:
    """
    One instance object, scanned field by field.

    Scalar fields are taken at their first occurrence, which for an instance
    object is the instance's own value ahead of any network interface copy.
    A truncated response keeps every field that made it through.
    """
    if not blob:
        return None
    instance_id = find_value(blob, 'InstanceId')
    if not instance_id:
        return None

    tags_block = block_after(blob, 'Tags')
    tags = decode_tags(tags_block) if tags_block else {}
    monitoring = block_after(blob, 'Monitoring', '{') or ''
    profile = block_after(blob, 'IamInstanceProfile', '{') or ''
    arn = find_value(profile, 'Arn')

    groups: List[str] = []
    for group in find_values(block_after(blob, 'SecurityGroups') or '', 'GroupName'):
        if group not in groups:
            groups.append(group)

    return InstanceDetail(
        id=instance_id,
        name=tags.get(NAME_TAG, ''),
        state=_instance_state(blob),
        instance_type=find_value(blob, 'InstanceType') or '',
        image_id=find_value(blob, 'ImageId') or '',
        platform=find_value(blob, 'Platform') or 'Linux',
        architecture=find_value(blob, 'Architecture') or 'x86_64',
        key_pair=find_value(blob, 'KeyName') or '-',
        vpc_id=find_value(blob, 'VpcId') or '',
        subnet_id=find_value(blob, 'SubnetId') or '',
        availability_zone=find_value(blob, 'AvailabilityZone') or '',
        private_ip=find_value(blob, 'PrivateIpAddress') or '',
        public_ip=find_value(blob, 'PublicIpAddress') or '',
        security_groups=groups,
        ebs_optimized=find_bool(blob, 'EbsOptimized') is True,
        monitoring=find_value(monitoring, 'State') == 'enabled',
        iam_role=arn.rsplit('/', 1)[-1] if arn else None,
        launch_time=find_value(blob, 'LaunchTime') or '',
        tags=tags,
    )

# =============================================================================
# LOOKUPS
# =============================================================================

def subnet_resolver(subnets: List[Subnet]) -> NameResolver:
    """Name resolver over already-fetched subnets; unknown ids resolve to None."""
    names = {subnet.id: subnet.name for subnet in subnets}
    return names.get


def build_name_lookup(graph: NetworkGraph) -> Dict[str, str]:
    """Identifier -> display name for every entity in the graph."""
    lookup: Dict[str, str] = {}
    if graph.network:
        lookup[graph.network.id] = graph.network.name
    for entity in graph.subnets + graph.internet_gateways + graph.nat_gateways + graph.route_tables:
        lookup[entity.id] = entity.name or entity.id
    for eip in graph.elastic_ips:
        lookup[eip.identifier] = eip.name or eip.public_ip
    return lookup
