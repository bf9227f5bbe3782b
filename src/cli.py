#!/usr/bin/env python3
"""
VPC Report - CLI Entry Point

Usage:
    python cli.py --list-vpcs --profile my-profile --region ap-northeast-2
    python cli.py --vpc-id vpc-0abc123 --profile my-profile --output-dir reports
    python cli.py --instance-id i-0abc123 --security-group-id sg-0abc123
"""

import argparse
import logging
import os
import sys
from concurrent.futures import ThreadPoolExecutor, wait
from typing import List, Optional, Tuple

from models import ExecutionMode, LoadingProgress, PipelineStep, QueryDescriptor, ToolSettings
from auth import AuthConfig, LoginError
from assembler import parse_vpc_list
from inventory import InventoryClient
from pipeline import STEP_LABELS, NetworkPipeline, PipelineResult
from detail import fetch_instance, fetch_security_group
from report import render_instance, render_security_group, report_filename, safe_filename
from settings import LANGUAGES, load_settings, save_settings

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s - %(message)s'

_handlers: List[logging.Handler] = []


def parse_args(argv: Optional[List[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='VPC Report - network topology reports in Markdown',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # List VPCs in a region
  vpc-report --list-vpcs --profile my-profile --region us-east-1

  # Write a report for one VPC
  vpc-report --vpc-id vpc-0abc123 --profile my-profile --output-dir reports

  # Security group and EC2 instance reports
  vpc-report --security-group-id sg-0abc123 --instance-id i-0abc123

  # Korean labels, with a diagnostic trace of every AWS call
  vpc-report --vpc-id vpc-0abc123 --language ko --log-file vpc-report.log

  # Remember profile/region/language for next time
  vpc-report --profile my-profile --region eu-west-1 --save-settings
        """
    )

    parser.add_argument(
        '--vpc-id',
        help='VPC to inspect'
    )

    parser.add_argument(
        '--list-vpcs',
        action='store_true',
        help='List VPCs in the region and exit'
    )

    parser.add_argument(
        '--security-group-id',
        help='Security group to report on'
    )

    parser.add_argument(
        '--instance-id',
        help='EC2 instance to report on (VPC and subnet resolved to names)'
    )

    parser.add_argument(
        '--mode',
        choices=['local', 'aws'],
        default='local',
        help='Credential source: named profile (local) or ambient role (aws) (default: local)'
    )

    parser.add_argument(
        '--profile',
        help='AWS CLI profile name (overrides settings file)'
    )

    parser.add_argument(
        '--region',
        help='AWS region (overrides settings file)'
    )

    parser.add_argument(
        '--language',
        choices=list(LANGUAGES),
        help='Report language (overrides settings file)'
    )

    parser.add_argument(
        '--output-dir',
        help='Directory for the Markdown report (overrides settings file)'
    )

    parser.add_argument(
        '--settings',
        help='Settings YAML file (default: $VPC_REPORT_SETTINGS or ~/.vpc-report/settings.yaml)'
    )

    parser.add_argument(
        '--save-settings',
        action='store_true',
        help='Write the effective profile/region/language/output settings back to the settings file'
    )

    parser.add_argument(
        '--log-file',
        help='Append a diagnostic trace of AWS calls to this file'
    )

    parser.add_argument(
        '--skip-login-check',
        action='store_true',
        help='Do not verify credentials with STS before fetching'
    )

    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Validate configuration without calling AWS'
    )

    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose output'
    )

    return parser.parse_args(argv)


def configure_logging(verbose: bool = False, log_file: Optional[str] = None):
    """
    Console logging at WARNING (DEBUG when verbose), plus an append-only
    trace file at DEBUG when log_file is set.
    """
    root = logging.getLogger()
    for handler in _handlers:
        root.removeHandler(handler)
        handler.close()
    _handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console.setFormatter(formatter)
    _handlers.append(console)

    if log_file:
        trace = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        trace.setLevel(logging.DEBUG)
        trace.setFormatter(formatter)
        _handlers.append(trace)

    for handler in _handlers:
        root.addHandler(handler)
    root.setLevel(logging.DEBUG)
    # botocore is chatty at DEBUG
    logging.getLogger('botocore').setLevel(logging.WARNING)
    logging.getLogger('urllib3').setLevel(logging.WARNING)


def resolve_settings(args) -> ToolSettings:
    """Settings file values, overridden by any flags given."""
    settings = load_settings(args.settings)
    if args.profile:
        settings.profile = args.profile
    if args.region:
        settings.region = args.region
    if args.language:
        settings.language = args.language
    if args.output_dir:
        settings.output_dir = args.output_dir
    if args.log_file:
        settings.log_file = args.log_file
    return settings


def get_execution_mode(mode_str: str) -> ExecutionMode:
    """Convert mode string to ExecutionMode enum."""
    mode_map = {
        'local': ExecutionMode.LOCAL,
        'aws': ExecutionMode.AWS,
    }
    return mode_map.get(mode_str, ExecutionMode.LOCAL)


def format_checklist(progress: LoadingProgress, cursor: PipelineStep) -> List[str]:
    """One line per step: ✓ done, → in flight, ✗ attempted and failed, blank pending."""
    lines = []
    for step, done in zip(STEP_LABELS, progress.checklist()):
        if done:
            marker = '✓'
        elif step == cursor:
            marker = '→'
        elif step < cursor:
            marker = '✗'
        else:
            marker = ' '
        lines.append(f"  [{marker}] {STEP_LABELS[step]}")
    return lines


def print_step(pipeline: NetworkPipeline, step: PipelineStep):
    """Print the outcome of a finished step."""
    if step == PipelineStep.DONE:
        return
    marker = '✓' if pipeline.progress.is_done(step) else '✗'
    print(f"  {marker} {STEP_LABELS[step]}")


def print_in_flight(pipeline: NetworkPipeline, step: PipelineStep, polls: int):
    """Show the in-flight checklist line once a step has outlasted one poll."""
    if step == PipelineStep.DONE or polls != 1:
        return
    print(format_checklist(pipeline.progress, step)[int(step)])


def run_pipeline(pipeline: NetworkPipeline, on_step=print_step, on_poll=print_in_flight,
                 poll_interval: float = 0.1) -> PipelineResult:
    """
    Drive the pipeline to completion.

    Each step runs on a single background worker so the foreground loop only
    waits on one remote call at a time and never runs two steps concurrently.
    While a step is in flight the foreground calls on_poll(pipeline, step,
    polls) after every poll interval.
    """
    with ThreadPoolExecutor(max_workers=1) as executor:
        while not pipeline.done:
            current = pipeline.cursor
            future = executor.submit(pipeline.step)
            polls = 0
            while not wait([future], timeout=poll_interval).done:
                polls += 1
                on_poll(pipeline, current, polls)
            future.result()
            on_step(pipeline, current)
    return pipeline.result


def write_markdown(markdown: str, filename: str, output_dir: str) -> Tuple[str, bool]:
    """
    Write a Markdown report.

    Returns:
        (path, changed) - changed is False when the file already held the
        same content
    """
    os.makedirs(output_dir, exist_ok=True)
    path = os.path.join(output_dir, filename)

    if os.path.exists(path):
        with open(path, 'r', encoding='utf-8') as f:
            if f.read() == markdown:
                return path, False

    with open(path, 'w', encoding='utf-8') as f:
        f.write(markdown)
    return path, True


def write_report(result: PipelineResult, output_dir: str) -> Tuple[str, bool]:
    """Write the network report under its network name."""
    return write_markdown(result.markdown, report_filename(result.graph), output_dir)


def print_written(path: str, changed: bool):
    if changed:
        print(f"\n✓ Report written to {path}")
    else:
        print(f"\nℹ No changes since last report: {path}")


def write_detail_reports(client: InventoryClient, args, settings: ToolSettings) -> bool:
    """
    Security group and instance reports requested on the command line.

    Returns:
        True when every requested resource was found and written
    """
    reports = []
    found_all = True
    if args.security_group_id:
        print(f"\nInspecting {args.security_group_id} in {settings.region}...")
        group = fetch_security_group(client.fetch, args.security_group_id, settings.region)
        if group is None:
            print(f"✗ Security group {args.security_group_id} not found")
            found_all = False
        else:
            reports.append((render_security_group(group, settings.language),
                            safe_filename(group.name, group.id)))

    if args.instance_id:
        print(f"\nInspecting {args.instance_id} in {settings.region}...")
        instance = fetch_instance(client.fetch, args.instance_id, settings.region)
        if instance is None:
            print(f"✗ Instance {args.instance_id} not found")
            found_all = False
        else:
            reports.append((render_instance(instance, settings.language),
                            safe_filename(instance.name, instance.id)))

    for markdown, filename in reports:
        print_written(*write_markdown(markdown, filename, settings.output_dir))
    return found_all


def list_vpcs(client: InventoryClient, region: str) -> Optional[List[Tuple[str, str]]]:
    """(id, name) for every VPC in the region, or None when the call failed."""
    blob = client.fetch(QueryDescriptor(
        service='ec2',
        operation='describe_vpcs',
        query='Vpcs[*].[VpcId,Tags]',
        region=region,
    ))
    if blob is None:
        return None
    return parse_vpc_list(blob)


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    args = parse_args(argv)
    settings = resolve_settings(args)
    configure_logging(args.verbose, settings.log_file)

    has_target = any([args.vpc_id, args.list_vpcs, args.security_group_id, args.instance_id])

    if args.save_settings:
        path = save_settings(settings, args.settings)
        print(f"✓ Settings saved to {path}")
        if not has_target:
            sys.exit(0)

    if not has_target:
        print("Error: one of --vpc-id, --list-vpcs, --security-group-id or --instance-id is required")
        sys.exit(1)

    # Dry run - validate configuration only
    if args.dry_run:
        print("Dry run mode - validating configuration...")
        print(f"  Mode: {args.mode}")
        print(f"  Profile: {settings.profile or 'default'}")
        print(f"  Region: {settings.region}")
        print(f"  Language: {settings.language}")
        print(f"  VPC: {args.vpc_id or ('list only' if args.list_vpcs else '-')}")
        print(f"  Security Group: {args.security_group_id or '-'}")
        print(f"  Instance: {args.instance_id or '-'}")
        print(f"  Output Dir: {settings.output_dir}")
        print(f"  Log File: {settings.log_file or 'not specified'}")
        print("\nConfiguration valid. Ready to execute.")
        sys.exit(0)

    auth = AuthConfig(
        mode=get_execution_mode(args.mode),
        profile_name=settings.profile,
        region=settings.region
    )

    if not args.skip_login_check:
        try:
            identity = auth.check_login()
        except LoginError as e:
            print(f"Error: AWS login check failed ({e.code.value}): {e.detail}")
            sys.exit(1)
        print(f"✓ Logged in as {identity}")

    client = InventoryClient(auth, region=settings.region)

    if args.list_vpcs:
        vpcs = list_vpcs(client, settings.region)
        if vpcs is None:
            print(f"Error: could not list VPCs in {settings.region}")
            sys.exit(1)
        print(f"\nVPCs in {settings.region}:")
        for vpc_id, name in vpcs:
            print(f"  {vpc_id}  {name or '-'}")
        print(f"\n✓ Found {len(vpcs)} VPCs")
        sys.exit(0)

    found_all = True
    try:
        if args.vpc_id:
            print(f"\nInspecting {args.vpc_id} in {settings.region}...")
            pipeline = NetworkPipeline(
                args.vpc_id,
                client.fetch,
                region=settings.region,
                language=settings.language
            )
            result = run_pipeline(pipeline)

            if result.graph.network is None:
                print(f"✗ VPC info unavailable for {args.vpc_id}; report will be incomplete")

            print_written(*write_report(result, settings.output_dir))

            if args.verbose:
                print("\nLoading progress:")
                for line in format_checklist(pipeline.progress, pipeline.cursor):
                    print(line)

        if args.security_group_id or args.instance_id:
            found_all = write_detail_reports(client, args, settings)
    except OSError as e:
        print(f"Error: could not write report: {str(e)}")
        sys.exit(1)

    sys.exit(0 if found_all else 1)


if __name__ == "__main__":
    main()
