"""
Resource Detail
Single-resource reports next to the network one: a security group, or an EC2
instance with its VPC and subnet resolved to names.

Unlike the network pipeline there is no step cursor here. The primary query
either yields the resource or the report is skipped; the follow-up name
lookups only ever degrade to the bare identifiers.
"""

import logging
from dataclasses import replace
from typing import Optional

from models import InstanceDetail, QueryDescriptor, SecurityGroupDetail
from assembler import parse_instance, parse_network, parse_security_group, parse_subnets
from pipeline import Fetch

logger = logging.getLogger(__name__)


def security_group_query(group_id: str, region: Optional[str] = None) -> QueryDescriptor:
    return QueryDescriptor(
        service='ec2',
        operation='describe_security_groups',
        params={'GroupIds': [group_id]},
        region=region,
    )


def instance_query(instance_id: str, region: Optional[str] = None) -> QueryDescriptor:
    return QueryDescriptor(
        service='ec2',
        operation='describe_instances',
        params={'InstanceIds': [instance_id]},
        query='Reservations[0].Instances[0]',
        region=region,
    )


def fetch_security_group(fetch: Fetch, group_id: str,
                         region: Optional[str] = None) -> Optional[SecurityGroupDetail]:
    """
    Fetch and decode one security group.

    Returns:
        SecurityGroupDetail, or None when the call failed or the response
        held no group
    """
    blob = fetch(security_group_query(group_id, region))
    if blob is None:
        logger.warning("Security group %s: fetch failed", group_id)
        return None
    detail = parse_security_group(blob)
    if detail is None:
        logger.warning("Security group %s: no group in response", group_id)
    return detail


def _vpc_name(fetch: Fetch, vpc_id: str, region: Optional[str]) -> str:
    blob = fetch(QueryDescriptor(
        service='ec2',
        operation='describe_vpcs',
        params={'VpcIds': [vpc_id]},
        region=region,
    ))
    network = parse_network(blob or '', vpc_id)
    return network.name if network else ''


def _subnet_name(fetch: Fetch, subnet_id: str, vpc_id: str, region: Optional[str]) -> str:
    blob = fetch(QueryDescriptor(
        service='ec2',
        operation='describe_subnets',
        params={'SubnetIds': [subnet_id]},
        region=region,
    ))
    for subnet in parse_subnets(blob or '', vpc_id):
        if subnet.id == subnet_id:
            return subnet.name
    return ''


def fetch_instance(fetch: Fetch, instance_id: str,
                   region: Optional[str] = None) -> Optional[InstanceDetail]:
    """
    Fetch one instance, then resolve its VPC and subnet names.

    Returns:
        InstanceDetail, or None when the instance query failed
    """
    blob = fetch(instance_query(instance_id, region))
    if blob is None:
        logger.warning("Instance %s: fetch failed", instance_id)
        return None
    detail = parse_instance(blob)
    if detail is None:
        logger.warning("Instance %s: no instance in response", instance_id)
        return None

    if detail.vpc_id:
        detail = replace(detail, vpc_name=_vpc_name(fetch, detail.vpc_id, region))
        if detail.subnet_id:
            detail = replace(detail, subnet_name=_subnet_name(
                fetch, detail.subnet_id, detail.vpc_id, region))
    logger.debug("Instance %s: vpc=%s subnet=%s", instance_id,
                 detail.vpc_display, detail.subnet_display)
    return detail
