# -*- coding: utf-8 -*-
"""Credentials handed out by the lease manager

A Credential is a read only view. The part that changes on renewal lives in a
RenewalState cell which only the manager that granted the credential holds on to.
"""

from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType

from .policy import projected_expiration


@dataclass
class RenewalState:
    lease_duration: int
    last_renew_time: datetime


class Credential:
    """A vault secret containing minimally a data mapping."""

    def __init__(self, mount, role, grant, renewal_state):
        self._mount = mount
        self._role = role
        self._type = grant.mount_type
        self._lease_id = grant.lease_id
        self._renewable = grant.renewable
        self._data = MappingProxyType(dict(grant.data))
        self._renewal = renewal_state

    @property
    def mount(self):
        return self._mount

    @property
    def role(self):
        return self._role

    @property
    def type(self):
        """The vault backend type that this credential is from."""
        return self._type

    mount_type = type

    @property
    def lease_id(self):
        """The unique id representing this credential's lease, None if not leased"""
        return self._lease_id

    @property
    def renewable(self):
        return self._renewable

    @property
    def data(self):
        """The actual auth data of this credential (type specific)"""
        return self._data

    @property
    def lease_duration(self):
        """Seconds from the last renew that this lease will last"""
        return self._renewal.lease_duration

    @property
    def last_renew_time(self):
        return self._renewal.last_renew_time

    @property
    def expiration_time(self):
        # always derived so it cannot drift from duration and renew time
        renewal = self._renewal
        return projected_expiration(renewal.last_renew_time, renewal.lease_duration)

    @property
    def leased(self):
        return bool(self._lease_id)

    def __repr__(self):
        return (f"Credential(mount={self._mount!r}, role={self._role!r}, type={self._type!r}, "
                f"lease_id={self._lease_id!r}, expiration_time={self.expiration_time.isoformat()})")
