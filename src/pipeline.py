"""
Incremental Acquisition Pipeline
Builds a NetworkGraph one remote query at a time.

Each call to `step()` performs exactly one step of the fixed sequence below,
merges its result into the graph and advances the cursor. A failed step leaves
its fields at their defaults and the pipeline still advances, so the caller
always ends up with a (possibly gappy) report. Nothing is retried.

    0 network   1 subnets   2 internet gateways   3 NAT gateways
    4 route tables   5 elastic IPs   6 DNS attributes   7 done
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from models import (
    LoadingProgress,
    NetworkGraph,
    PipelineStep,
    QueryDescriptor,
)
from assembler import (
    build_name_lookup,
    parse_dns_attribute,
    parse_elastic_ips,
    parse_internet_gateways,
    parse_nat_gateways,
    parse_network,
    parse_route_tables,
    parse_subnets,
    subnet_resolver,
)
from diagram import DiagramDescription, synthesize
from report import render_markdown

logger = logging.getLogger(__name__)

# Fetch collaborator: raw response text, or None when the call failed
Fetch = Callable[[QueryDescriptor], Optional[str]]

STEP_LABELS = {
    PipelineStep.NETWORK: "VPC info",
    PipelineStep.SUBNETS: "Subnets",
    PipelineStep.INTERNET_GATEWAYS: "Internet gateways",
    PipelineStep.NAT_GATEWAYS: "NAT gateways",
    PipelineStep.ROUTE_TABLES: "Route tables",
    PipelineStep.ELASTIC_IPS: "Elastic IPs",
    PipelineStep.DNS_ATTRIBUTES: "DNS attributes",
}

DNS_ATTRIBUTES = ('enableDnsSupport', 'enableDnsHostnames')


@dataclass
class PipelineResult:
    """Terminal output handed to the rendering side"""
    graph: NetworkGraph
    diagram: DiagramDescription
    markdown: str
    failed_steps: List[PipelineStep] = field(default_factory=list)


class NetworkPipeline:
    """
    Resumable, step-at-a-time acquisition of one network's topology.

    The graph under construction belongs to this pipeline alone; callers
    only poll `cursor` and `progress` between steps.
    """

    def __init__(self,
                 network_id: str,
                 fetch: Fetch,
                 region: Optional[str] = None,
                 language: str = 'en'):
        """
        Args:
            network_id: VPC to inspect
            fetch: Remote inventory collaborator
            region: Region attached to every query (None lets the collaborator decide)
            language: Report label language
        """
        self.network_id = network_id
        self.fetch = fetch
        self.region = region
        self.language = language
        self.reset()

    def reset(self):
        """Discard everything and start over at step 0."""
        self.graph = NetworkGraph(network_id=self.network_id)
        self.cursor = PipelineStep.NETWORK
        self.progress = LoadingProgress()
        self.failed_steps: List[PipelineStep] = []
        self.result: Optional[PipelineResult] = None

    @property
    def done(self) -> bool:
        return self.result is not None

    # =========================================================================
    # QUERIES
    # =========================================================================

    def _query(self, operation: str, params: Dict = None, query: str = None) -> QueryDescriptor:
        return QueryDescriptor(
            service='ec2',
            operation=operation,
            params=params or {},
            query=query,
            region=self.region,
        )

    def _vpc_filter(self, name: str) -> List[Dict]:
        return [{'Name': name, 'Values': [self.network_id]}]

    def queries_for(self, step: PipelineStep) -> List[QueryDescriptor]:
        """Remote queries issued by a step (empty for DONE)."""
        if step == PipelineStep.NETWORK:
            return [self._query(
                'describe_vpcs', {'VpcIds': [self.network_id]},
                'Vpcs[0].{VpcId: VpcId, CidrBlock: CidrBlock, State: State, Tags: Tags}')]
        if step == PipelineStep.SUBNETS:
            # No server-side filter: every subnet in the region, filtered locally
            return [self._query('describe_subnets')]
        if step == PipelineStep.INTERNET_GATEWAYS:
            return [self._query(
                'describe_internet_gateways',
                {'Filters': self._vpc_filter('attachment.vpc-id')},
                'InternetGateways[*].[InternetGatewayId,Tags,Attachments]')]
        if step == PipelineStep.NAT_GATEWAYS:
            return [self._query('describe_nat_gateways', {'Filter': self._vpc_filter('vpc-id')})]
        if step == PipelineStep.ROUTE_TABLES:
            return [self._query(
                'describe_route_tables',
                {'Filters': self._vpc_filter('vpc-id')},
                'RouteTables[*].[RouteTableId,Tags,Routes,Associations]')]
        if step == PipelineStep.ELASTIC_IPS:
            return [self._query('describe_addresses')]
        if step == PipelineStep.DNS_ATTRIBUTES:
            return [
                self._query('describe_vpc_attribute', {'VpcId': self.network_id, 'Attribute': attribute})
                for attribute in DNS_ATTRIBUTES
            ]
        return []

    def _fetch(self, query: QueryDescriptor) -> Optional[str]:
        try:
            return self.fetch(query)
        except Exception:
            logger.warning("Fetch collaborator raised for %s", query.describe(), exc_info=True)
            return None

    # =========================================================================
    # STEPS
    # =========================================================================

    def _load_network(self, blob: str):
        self.graph.network = parse_network(blob, self.network_id)
        if self.graph.network is None:
            logger.warning("Network detail step 0 returned no recognisable VPC for %s", self.network_id)
        else:
            logger.info("Network detail step 0 loaded VPC info for %s (cidr=%s, state=%s, tags=%d)",
                        self.network_id, self.graph.network.cidr, self.graph.network.state,
                        len(self.graph.network.tags))

    def _load_list(self, step: PipelineStep, attribute: str, entities: List):
        setattr(self.graph, attribute, entities)
        label = STEP_LABELS[step].lower()
        if entities:
            logger.info("Network detail step %d loaded %d %s", int(step), len(entities), label)
        else:
            logger.warning("Network detail step %d returned empty %s list", int(step), label)

    def execute(self, step: PipelineStep) -> bool:
        """
        Run one step's fetch and merge without moving the cursor.

        Re-running a step replaces its fields, so repeating it on the same
        response yields the same entities.

        Returns:
            False when the remote call failed (fields left at their defaults)
        """
        step = PipelineStep(step)
        if step == PipelineStep.DONE:
            return True

        blobs = [self._fetch(query) for query in self.queries_for(step)]
        ok = all(blob is not None for blob in blobs)

        if step == PipelineStep.DNS_ATTRIBUTES:
            support, hostnames = blobs
            self.graph.dns_support = parse_dns_attribute(support, DNS_ATTRIBUTES[0]) if support else False
            self.graph.dns_hostnames = parse_dns_attribute(hostnames, DNS_ATTRIBUTES[1]) if hostnames else False
            logger.info("Network detail step 6 loaded DNS attributes (support=%s, hostnames=%s)",
                        self.graph.dns_support, self.graph.dns_hostnames)
        elif not ok:
            self._apply_default(step)
            logger.warning("Network detail step %d (%s) failed; leaving defaults",
                           int(step), STEP_LABELS[step])
        else:
            self._apply(step, blobs[0])

        self.progress.mark(step, ok)
        if ok and step in self.failed_steps:
            self.failed_steps.remove(step)
        elif not ok and step not in self.failed_steps:
            self.failed_steps.append(step)
        return ok

    def _apply_default(self, step: PipelineStep):
        if step == PipelineStep.NETWORK:
            self.graph.network = None
        else:
            setattr(self.graph, _STEP_FIELDS[step], [])

    def _apply(self, step: PipelineStep, blob: str):
        if step == PipelineStep.NETWORK:
            self._load_network(blob)
        elif step == PipelineStep.SUBNETS:
            self._load_list(step, 'subnets', parse_subnets(blob, self.network_id))
        elif step == PipelineStep.INTERNET_GATEWAYS:
            self._load_list(step, 'internet_gateways', parse_internet_gateways(blob))
        elif step == PipelineStep.NAT_GATEWAYS:
            self._load_list(step, 'nat_gateways', parse_nat_gateways(blob))
        elif step == PipelineStep.ROUTE_TABLES:
            resolver = subnet_resolver(self.graph.subnets)
            self._load_list(step, 'route_tables', parse_route_tables(blob, resolver))
        elif step == PipelineStep.ELASTIC_IPS:
            self._load_list(step, 'elastic_ips', parse_elastic_ips(blob))

    def step(self) -> PipelineStep:
        """
        Perform the step under the cursor, then advance.

        At DONE this finalizes the graph (once) and stays put.

        Returns:
            The cursor after this call
        """
        if self.cursor == PipelineStep.DONE:
            if self.result is None:
                self.finalize()
            return self.cursor

        self.execute(self.cursor)
        self.cursor = PipelineStep(self.cursor + 1)
        return self.cursor

    def finalize(self) -> PipelineResult:
        """Build the name lookup, diagram and report for the current graph."""
        self.graph.name_lookup = build_name_lookup(self.graph)
        diagram = synthesize(self.graph)
        markdown = render_markdown(self.graph, diagram, self.language)
        self.result = PipelineResult(
            graph=self.graph,
            diagram=diagram,
            markdown=markdown,
            failed_steps=list(self.failed_steps),
        )
        logger.info("Network detail complete for %s (%d failed steps)",
                    self.network_id, len(self.failed_steps))
        return self.result

    def run(self) -> PipelineResult:
        """Drive every remaining step to completion."""
        while self.result is None:
            self.step()
        return self.result


_STEP_FIELDS = {
    PipelineStep.SUBNETS: 'subnets',
    PipelineStep.INTERNET_GATEWAYS: 'internet_gateways',
    PipelineStep.NAT_GATEWAYS: 'nat_gateways',
    PipelineStep.ROUTE_TABLES: 'route_tables',
    PipelineStep.ELASTIC_IPS: 'elastic_ips',
}
