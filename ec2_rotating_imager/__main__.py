"""Run one imaging and rotation pass from the command line."""
import argparse
import logging
import sys

import boto3

from .config import LOG_LEVELS, ConfigError, load_config
from .lambda_function import run
from .logger import setup_logging

logger = logging.getLogger(__name__)


def build_parser():
    parser = argparse.ArgumentParser(
        prog='ec2-rotating-imager',
        description='Create AMIs of tagged EC2 instances and rotate old ones',
    )
    parser.add_argument('--copies', type=int,
                        help='amount of image copies of an instance to keep before rotating (default: 3)')
    parser.add_argument('--region', help='AWS region (default: us-west-2)')
    parser.add_argument('--dry-run', action='store_true', default=None,
                        help='log what would be created and removed without calling EC2')
    parser.add_argument('--log-level', choices=LOG_LEVELS, type=str.upper,
                        help='logging level (default: INFO)')
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    try:
        config = load_config(overrides={
            'copies': args.copies,
            'region': args.region,
            'dry_run': args.dry_run,
            'log_level': args.log_level,
        })
    except ConfigError as e:
        setup_logging()
        logger.error('Configuration error: %s', e)
        return 1

    setup_logging(config.log_level)
    ec2_client = boto3.client('ec2', region_name=config.region)
    run(ec2_client, config)
    return 0


if __name__ == '__main__':
    sys.exit(main())
