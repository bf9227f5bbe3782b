"""
Markdown Report
Renders a finished NetworkGraph (plus its diagram) as a Markdown document,
and the single-resource security group and EC2 instance reports. Sections
without data are left out.
"""

import re
from typing import Dict, List

from diagram import DiagramDescription
from models import (
    InstanceDetail,
    NatGateway,
    NetworkGraph,
    SecurityGroupDetail,
    SecurityRule,
    display_label,
)

LABELS: Dict[str, Dict[str, str]] = {
    'en': {
        'network': 'Network',
        'item': 'Item',
        'value': 'Value',
        'name': 'Name',
        'state': 'State',
        'tag': 'Tag',
        'dns_support': 'DNS Resolution',
        'dns_hostnames': 'DNS Hostnames',
        'subnets': 'Subnets',
        'subnet': 'Subnet',
        'internet_gateways': 'Internet Gateways',
        'attached_network': 'Attached VPC',
        'attachment': 'Attachment',
        'nat_gateways': 'NAT Gateways',
        'availability_mode': 'Availability Mode',
        'zonal': 'Zonal',
        'regional': 'Regional',
        'ip_auto_scaling': 'IP Auto Scaling',
        'zone_auto_provisioning': 'Zone Auto Provisioning',
        'enabled': 'Enabled',
        'disabled': 'Disabled',
        'connectivity_type': 'Connectivity Type',
        'public': 'Public',
        'private': 'Private',
        'public_ip': 'Public IP',
        'allocation_id': 'Elastic IP Allocation ID',
        'route_tables': 'Route Tables',
        'destination': 'Destination',
        'target': 'Target',
        'associated_subnets': 'Associated Subnets',
        'elastic_ips': 'Elastic IPs',
        'association': 'Association',
        'diagram': 'Network Diagram',
        'security_group': 'Security Group',
        'description': 'Description',
        'inbound_rules': 'Inbound Rules',
        'outbound_rules': 'Outbound Rules',
        'protocol': 'Protocol',
        'port_range': 'Port Range',
        'source': 'Source',
        'instance': 'EC2 Instance',
        'instance_type': 'Instance Type',
        'platform': 'Platform',
        'architecture': 'Architecture',
        'key_pair': 'Key Pair',
        'availability_zone': 'Availability Zone',
        'private_ip': 'Private IP',
        'security_groups': 'Security Groups',
        'ebs_optimized': 'EBS Optimized',
        'monitoring': 'Monitoring',
        'iam_role': 'IAM Role',
        'launch_time': 'Launch Time',
    },
    'ko': {
        'network': '네트워크',
        'item': '항목',
        'value': '값',
        'name': '이름',
        'state': '상태',
        'tag': '태그',
        'dns_support': 'DNS 확인',
        'dns_hostnames': 'DNS 호스트 이름',
        'subnets': '서브넷',
        'subnet': '서브넷',
        'internet_gateways': '인터넷 게이트웨이',
        'attached_network': '연결된 VPC',
        'attachment': '연결 상태',
        'nat_gateways': 'NAT 게이트웨이',
        'availability_mode': '가용성 모드',
        'zonal': '영역',
        'regional': '리전',
        'ip_auto_scaling': 'IP 자동 확장',
        'zone_auto_provisioning': '영역 자동 프로비저닝',
        'enabled': '활성화',
        'disabled': '비활성화',
        'connectivity_type': '연결 유형',
        'public': '퍼블릭',
        'private': '프라이빗',
        'public_ip': '퍼블릭 IP',
        'allocation_id': '탄력적 IP 할당 ID',
        'route_tables': '라우팅 테이블',
        'destination': '대상',
        'target': '타겟',
        'associated_subnets': '연결된 서브넷',
        'elastic_ips': '탄력적 IP',
        'association': '연결',
        'diagram': '네트워크 다이어그램',
        'security_group': '보안 그룹',
        'description': '설명',
        'inbound_rules': '인바운드 규칙',
        'outbound_rules': '아웃바운드 규칙',
        'protocol': '프로토콜',
        'port_range': '포트 범위',
        'source': '소스',
        'instance': 'EC2 인스턴스',
        'instance_type': '인스턴스 유형',
        'platform': '플랫폼',
        'architecture': '아키텍처',
        'key_pair': '키 페어',
        'availability_zone': '가용 영역',
        'private_ip': '프라이빗 IP',
        'security_groups': '보안 그룹',
        'ebs_optimized': 'EBS 최적화',
        'monitoring': '모니터링',
        'iam_role': 'IAM 역할',
        'launch_time': '시작 시간',
    },
}

SUPPORTED_LANGUAGES = tuple(LABELS)


def _cell(value) -> str:
    """Table cell text: pipes escaped, line breaks folded into spaces."""
    return " ".join(str(value).replace("|", "\\|").splitlines())


def _row(*cells) -> str:
    return "| " + " | ".join(_cell(c) for c in cells) + " |"


def _align(columns: int) -> str:
    return "|" + ":---|" * columns


def _network_section(graph: NetworkGraph, t: Dict[str, str]) -> List[str]:
    lines = [
        f"## {t['network']} ({graph.display})\n",
        _row(t['item'], t['value']),
        _align(2),
        _row(t['name'], graph.display),
    ]
    if graph.network:
        lines.append(_row("CIDR", graph.network.cidr))
        lines.append(_row(t['state'], graph.network.state))
    lines.append(_row(t['dns_support'], str(graph.dns_support).lower()))
    lines.append(_row(t['dns_hostnames'], str(graph.dns_hostnames).lower()))
    if graph.network:
        for key, value in graph.network.tags.items():
            if key != 'Name':
                lines.append(_row(f"{t['tag']}-{key}", value))
    return lines


def _nat_rows(graph: NetworkGraph, nat: NatGateway, t: Dict[str, str]) -> List[str]:
    lines = [
        f"\n#### {nat.display}",
        _row(t['item'], t['value']),
        _align(2),
        _row(t['name'], nat.display),
        _row(t['state'], nat.state),
        _row(t['availability_mode'], t['regional'] if nat.is_regional else t['zonal']),
    ]
    if nat.is_regional:
        scaling = t['enabled'] if nat.auto_scaling_ips == 'enabled' else t['disabled']
        provisioning = t['enabled'] if nat.auto_provision_zones == 'enabled' else t['disabled']
        lines.append(_row(t['ip_auto_scaling'], scaling))
        lines.append(_row(t['zone_auto_provisioning'], provisioning))
    else:
        subnet = graph.subnet(nat.subnet_id) if nat.subnet_id else None
        if subnet:
            subnet_display = subnet.display
        elif nat.subnet_id:
            subnet_display = display_label('', nat.subnet_id)
        else:
            subnet_display = '-'
        lines.append(_row(t['subnet'], subnet_display))

    lines.append(_row(t['connectivity_type'], t[nat.connectivity_type.value]))
    if nat.public_ip:
        lines.append(_row(t['public_ip'], nat.public_ip))
    if nat.allocation_id:
        lines.append(_row(t['allocation_id'], f"`{nat.allocation_id}`"))
    for key, value in nat.tags.items():
        lines.append(_row(f"{t['tag']}-{key}", value))
    return lines


def render_markdown(graph: NetworkGraph, diagram: DiagramDescription, language: str = 'en') -> str:
    """
    Render the network report.

    Args:
        graph: Finished graph (network may be None when its fetch failed)
        diagram: Synthesized topology diagram
        language: Label language, 'en' or 'ko' (unknown values fall back to 'en')

    Returns:
        Markdown text ending with a newline
    """
    t = LABELS.get(language, LABELS['en'])
    lines = _network_section(graph, t)

    if graph.subnets:
        lines.append(f"\n### {t['subnets']}")
        lines.append(_row(t['name'], "CIDR", "AZ", t['state']))
        lines.append(_align(4))
        for subnet in graph.subnets:
            lines.append(_row(subnet.display, subnet.cidr, subnet.availability_zone, subnet.state))

    if graph.internet_gateways:
        lines.append(f"\n### {t['internet_gateways']}")
        lines.append(_row(t['name'], t['attachment'], t['attached_network']))
        lines.append(_align(3))
        for igw in graph.internet_gateways:
            lines.append(_row(igw.display, igw.state.value, graph.display))

    if graph.nat_gateways:
        lines.append(f"\n### {t['nat_gateways']}")
        for nat in graph.nat_gateways:
            lines.extend(_nat_rows(graph, nat, t))

    if graph.route_tables:
        lines.append(f"\n### {t['route_tables']}")
        for table in graph.route_tables:
            lines.append(f"\n#### {table.display}")
            if table.routes:
                lines.append(_row(t['destination'], t['target'], t['state']))
                lines.append(_align(3))
                for route in table.routes:
                    lines.append(_row(route.destination, route.target, route.state))
            if table.associations:
                lines.append(f"\n**{t['associated_subnets']}**")
                lines.append(_row(t['subnet']))
                lines.append(_align(1))
                for association in table.associations:
                    lines.append(_row(association.display))

    if graph.elastic_ips:
        lines.append(f"\n### {t['elastic_ips']}")
        lines.append(_row(t['name'], t['public_ip'], t['association']))
        lines.append(_align(3))
        for eip in graph.elastic_ips:
            lines.append(_row(eip.name, eip.public_ip, eip.association))

    lines.append(f"\n### {t['diagram']}\n")
    lines.append(diagram.render())

    return "\n".join(lines).rstrip("\n") + "\n"


def _rule_rows(rules: List[SecurityRule], peer_label: str, t: Dict[str, str]) -> List[str]:
    lines = [_row(t['protocol'], t['port_range'], peer_label, t['description']), _align(4)]
    for rule in rules:
        lines.append(_row(rule.protocol, rule.port_range, rule.peer, rule.description))
    return lines


def render_security_group(group: SecurityGroupDetail, language: str = 'en') -> str:
    """Security group summary plus inbound/outbound rule tables (empty ones omitted)."""
    t = LABELS.get(language, LABELS['en'])
    lines = [
        f"## {t['security_group']} ({group.display})\n",
        _row(t['item'], t['value']),
        _align(2),
        _row(t['name'], group.display),
        _row(t['description'], group.description or '-'),
        _row("VPC ID", group.vpc_id or '-'),
    ]
    if group.inbound:
        lines.append(f"\n### {t['inbound_rules']}")
        lines.extend(_rule_rows(group.inbound, t['source'], t))
    if group.outbound:
        lines.append(f"\n### {t['outbound_rules']}")
        lines.extend(_rule_rows(group.outbound, t['destination'], t))
    return "\n".join(lines) + "\n"


def render_instance(instance: InstanceDetail, language: str = 'en') -> str:
    """EC2 instance summary table."""
    t = LABELS.get(language, LABELS['en'])
    lines = [
        f"## {t['instance']} ({instance.display})\n",
        _row(t['item'], t['value']),
        _align(2),
        _row(t['name'], instance.display),
        _row(t['state'], instance.state),
    ]
    for key, value in instance.tags.items():
        if key != 'Name':
            lines.append(_row(f"{t['tag']}-{key}", value))

    lines.extend([
        _row("AMI", instance.image_id or '-'),
        _row(t['instance_type'], instance.instance_type or '-'),
        _row(t['platform'], instance.platform),
        _row(t['architecture'], instance.architecture),
        _row(t['key_pair'], instance.key_pair),
        _row("VPC", instance.vpc_display),
        _row(t['subnet'], instance.subnet_display),
        _row(t['availability_zone'], instance.availability_zone or '-'),
        _row(t['private_ip'], instance.private_ip or '-'),
    ])
    if instance.public_ip:
        lines.append(_row(t['public_ip'], instance.public_ip))
    lines.append(_row(t['security_groups'], ", ".join(instance.security_groups) or '-'))
    lines.append(_row(t['ebs_optimized'], t['enabled'] if instance.ebs_optimized else t['disabled']))
    lines.append(_row(t['monitoring'], t['enabled'] if instance.monitoring else t['disabled']))
    if instance.iam_role:
        lines.append(_row(t['iam_role'], instance.iam_role))
    if instance.launch_time:
        lines.append(_row(t['launch_time'], instance.launch_time))
    return "\n".join(lines) + "\n"


def safe_filename(name: str, fallback: str) -> str:
    """`<name>.md` with path and shell-unfriendly characters replaced."""
    stem = re.sub(r'[\\/:*?"<>|\s]+', '_', name or '').strip('_') or fallback
    return f"{stem}.md"


def report_filename(graph: NetworkGraph) -> str:
    """`<network name>.md`, safe to use as a file name."""
    return safe_filename(graph.name, graph.network_id)
