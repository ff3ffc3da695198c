"""Lambda entry point: image tagged EC2 instances, then rotate their AMIs.

The module uses package-relative imports, so the deployment zip keeps the
``ec2_rotating_imager`` directory and the handler is configured as
``ec2_rotating_imager/lambda_function.lambda_handler``.
"""
import logging
import time

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import load_config
from .logger import INFO, LogEntry, log_entry, setup_logging
from .rotation import Image, plan_rotation

LOGGER = logging.getLogger(__name__)
NAME_TAG = 'Name'
RESERVED_TAG_PREFIX = 'aws:'
# scheduled events carry their own 'region' and the like, so only these are read
EVENT_OVERRIDES = ('copies', 'dry_run')


def lambda_handler(event, context):
    overrides = {}
    if isinstance(event, dict):
        overrides = {k: event[k] for k in EVENT_OVERRIDES if k in event}
    config = load_config(overrides=overrides)
    setup_logging(config.log_level)
    ec2_client = boto3.client('ec2', region_name=config.region)
    return run(ec2_client, config)


def run(ec2_client, config, logger=LOGGER, clock=time.time):
    """Image every tagged instance, then rotate the tagged images.

    Failing to list instances or images aborts the run; failures to create
    or deregister a single image are logged and counted.
    """
    summary = {
        'copies': config.copies,
        'dry_run': config.dry_run,
        'instances': 0,
        'created': 0,
        'create_failed': 0,
        'images': 0,
        'rotating': [],
        'skipped': [],
        'removed': 0,
        'remove_failed': 0,
    }

    try:
        instances = get_target_instances(ec2_client, config)
    except (ClientError, BotoCoreError):
        logger.error('Could not list instances to backup', exc_info=True)
        raise
    summary['instances'] = len(instances)

    if not instances:
        logger.info('Could not find instances to backup (tag:%s=%s)',
                    config.tag_key, config.tag_value)
        return summary

    created, failed = create_images(ec2_client, instances, config, logger, clock)
    summary['created'] = len(created)
    summary['create_failed'] = failed

    logger.info('Rotating AMI images...')
    try:
        images = list_backup_images(ec2_client, config)
    except (ClientError, BotoCoreError):
        logger.error('Could not list images to rotate', exc_info=True)
        raise
    summary['images'] = len(images)

    plan = plan_rotation(images, config.copies)
    log_plan(plan, logger)
    summary['rotating'] = plan.deletions
    summary['skipped'] = [d.instance_key for d in plan.skipped]

    removed, failed = deregister_images(ec2_client, plan.deletions, config, logger)
    summary['removed'] = len(removed)
    summary['remove_failed'] = failed

    log_entry(logger, LogEntry('Rotation finished', INFO, {'summary': summary}))
    return summary


def get_target_instances(ec2_client, config):
    paginator = ec2_client.get_paginator('describe_instances')
    res = []
    for page in paginator.paginate(Filters=config.tag_filters):
        for reservation in page.get('Reservations', []):
            res.extend(reservation.get('Instances', []))
    return res


def get_tags(resource):
    res = {}
    for raw_tag in resource.get('Tags', []):
        res[raw_tag['Key']] = raw_tag['Value']
    return res


def instance_name(instance):
    return get_tags(instance).get(NAME_TAG) or instance['InstanceId']


def image_name(name, now):
    return '%s-%d' % (name, int(now))


def create_images(ec2_client, instances, config, logger=LOGGER, clock=time.time):
    created = []
    failed = 0
    for instance in instances:
        instance_id = instance['InstanceId']
        name = instance_name(instance)
        logger.info('Scheduling image creation for %s (%s)', name, instance_id)

        request = {
            'InstanceId': instance_id,
            'Name': image_name(name, clock()),
            'Description': '%s image' % name,
            'NoReboot': config.no_reboot,
        }
        # EC2 refuses caller-supplied tags under the reserved prefix
        tags = [t for t in instance.get('Tags', [])
                if not t['Key'].startswith(RESERVED_TAG_PREFIX)]
        if tags:
            request['TagSpecifications'] = [{'ResourceType': 'image', 'Tags': tags}]

        if config.dry_run:
            logger.info('[DRY_RUN] Would create image %s from %s', request['Name'], name)
            continue

        try:
            result = ec2_client.create_image(**request)
        except (ClientError, BotoCoreError) as e:
            failed += 1
            logger.error('Could not create image for %s (%s): %s', name, instance_id, e)
            continue

        created.append(result['ImageId'])
        logger.info('Created %s from %s', result['ImageId'], name)
    return created, failed


def list_backup_images(ec2_client, config):
    paginator = ec2_client.get_paginator('describe_images')
    res = []
    for page in paginator.paginate(Owners=['self'], Filters=config.tag_filters):
        res.extend(Image.from_api(raw) for raw in page.get('Images', []))
    return res


def log_plan(plan, logger=LOGGER):
    for decision in plan.skipped:
        logger.warning(decision.advisory())
    for decision in plan.decisions:
        if not decision.skipped:
            log_entry(logger, LogEntry(
                'Selected %s for rotation' % decision.image_id, INFO, {
                    'instance_key': decision.instance_key,
                    'image_id': decision.image_id,
                    'group_size': decision.group_size,
                    'copies': decision.copies,
                }))


def deregister_images(ec2_client, image_ids, config, logger=LOGGER):
    removed = []
    failed = 0
    for image_id in image_ids:
        if config.dry_run:
            logger.info('[DRY_RUN] Would deregister %s', image_id)
            continue
        try:
            ec2_client.deregister_image(ImageId=image_id)
        except (ClientError, BotoCoreError) as e:
            failed += 1
            logger.warning('Could not deregister %s: %s', image_id, e)
            continue
        removed.append(image_id)
        logger.info('Removed %s', image_id)
    return removed, failed
