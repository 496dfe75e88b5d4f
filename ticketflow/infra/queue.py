"""Redis connection and job queues."""

import random
from datetime import timedelta
from typing import Dict, Any, Optional
from redis import Redis
from rq import Queue, Retry

from ticketflow.infra.config import config

# Initialize Redis connections: decoded for counters and pub/sub, raw for RQ job payloads
redis_conn = Redis.from_url(config.REDIS_URL, decode_responses=True)
queue_conn = Redis.from_url(config.REDIS_URL)

# Campaign dispatch queue
campaign_queue = Queue("campaigns", connection=queue_conn)

CAMPAIGN_DISPATCH_JOB = "ticketflow.workers.campaign_dispatcher.dispatch_campaign_shipping"

# 3 executions in total: the first run plus 2 retries, backoff doubling from 5 seconds
CAMPAIGN_DISPATCH_ATTEMPTS = 3
CAMPAIGN_BACKOFF_BASE_SECONDS = 5


def backoff_intervals(attempts: int = CAMPAIGN_DISPATCH_ATTEMPTS, base: int = CAMPAIGN_BACKOFF_BASE_SECONDS) -> list:
    """Delays before each retry of a job run `attempts` times: base, 2*base, ..."""
    return [base * (2 ** i) for i in range(attempts - 1)]


def enqueue_campaign_dispatch(
    campaign_shipping_id: int,
    campaign_id: int,
    delay_seconds: Optional[int] = None,
) -> str:
    """
    Enqueue a campaign dispatch job with randomized delay and retries.

    Args:
        campaign_shipping_id: Shipping row to dispatch
        campaign_id: Campaign owning the shipping row
        delay_seconds: Explicit delay; random 0..CAMPAIGN_MAX_JITTER_SECONDS when None

    Returns:
        Job ID for tracking
    """
    if delay_seconds is None:
        delay_seconds = random.randint(0, config.CAMPAIGN_MAX_JITTER_SECONDS)

    payload: Dict[str, Any] = {
        "campaignShippingId": campaign_shipping_id,
        "campaignId": campaign_id,
    }

    job = campaign_queue.enqueue_in(
        timedelta(seconds=delay_seconds),
        CAMPAIGN_DISPATCH_JOB,
        payload,
        retry=Retry(max=CAMPAIGN_DISPATCH_ATTEMPTS - 1, interval=backoff_intervals()),  # max counts retries
        result_ttl=0,  # Remove on complete
        job_timeout=120,
    )

    return job.id
