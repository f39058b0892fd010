# -*- coding: utf-8 -*-
"""Pure rules deciding when to renew a lease and what a renew answer means"""

from datetime import timedelta
from enum import Enum

# For auto-renewing leases, attempt to renew at 'lease_duration' * 'RENEW_FACTOR'
RENEW_FACTOR = 0.8


class RenewalOutcome(Enum):
    RENEWED = "renewed"
    EXHAUSTED = "exhausted"
    EXPIRED = "expired"


def next_renewal_delay(lease_duration, minimum=0.0):
    """Seconds to wait before the next renew attempt"""
    return max(float(lease_duration) * RENEW_FACTOR, float(minimum))


def projected_expiration(renew_time, lease_duration):
    return renew_time + timedelta(seconds=lease_duration)


def classify_renewal(response, old_expiration, new_expiration):
    """Classify a renew response.

    No lease id means vault has forgotten the lease. Otherwise a renewal that did not push
    the expiration forward means the lease hit its maximum ttl and has to be replaced,
    a shorter grant is treated the same as an equal one.

    :param response: RenewResponse from the backend
    :param old_expiration: expiration time before the renew call
    :param new_expiration: expiration time the response would give
    :return: RenewalOutcome
    """
    if not response.lease_id:
        return RenewalOutcome.EXPIRED
    if new_expiration - old_expiration > timedelta(0):
        return RenewalOutcome.RENEWED
    return RenewalOutcome.EXHAUSTED
