"""Synthetics canary that checks the gateway URL answers with a 2xx.

Runs inside the CloudWatch Synthetics Python runtime, which provides
aws_synthetics; only the standard library is available besides it.
"""

import os
import urllib.request

from aws_synthetics.common import synthetics_logger as logger

TIMEOUT_SECONDS = 10


def _call_api():
    url = os.environ["API_URL"]
    request = urllib.request.Request(url, headers={"User-Agent": "pipelines-webinar-canary"})
    with urllib.request.urlopen(request, timeout=TIMEOUT_SECONDS) as response:
        status = response.status
        body = response.read(512)
    logger.info("GET %s -> %d %s" % (url, status, body[:120]))
    if not 200 <= status < 300:
        raise Exception("Unexpected status %d from %s" % (status, url))


def handler(event, context):
    logger.info("Calling API")
    _call_api()
    return "Success"
