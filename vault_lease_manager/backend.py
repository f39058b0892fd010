# -*- coding: utf-8 -*-
"""This module implements the stateless client for the vault HTTP api

Every call is a single authenticated request, nothing is cached between calls. So a
credential fetch costs an extra round trip to look up the mount type each time.

"""

from __future__ import absolute_import
from __future__ import division
from __future__ import print_function
from __future__ import unicode_literals

import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests
from dateutil import parser

from .exceptions import BackendRejection, TransportError, UnknownMount, VaultConfigError

# The vault api version. This is prepended to the routes.
VAULT_VERSION = "v1"

TOKEN_HEADER = "X-Vault-Token"

# mount types whose secrets are read directly from {mount}/{role}
STATIC_MOUNT_TYPES = ("generic", "kv")

REVOKE_SUCCESS = 204


@dataclass
class Grant:
    """A secret as granted by vault, before the manager starts tracking it."""
    mount_type: str
    data: Dict[str, Any]
    lease_id: Optional[str]
    renewable: bool
    lease_duration: int


@dataclass
class RenewResponse:
    """Body of a renew call. A missing lease_id means vault no longer knows the lease."""
    lease_id: Optional[str]
    lease_duration: int = 0
    renewable: bool = False
    errors: list = field(default_factory=list)

    @property
    def expired(self):
        return not self.lease_id


@dataclass
class LeaseInfo:
    lease_id: str
    ttl: int
    renewable: bool
    issue_time: Any = None
    expire_time: Any = None
    last_renewal: Any = None


def _parse_time(value):
    if not value:
        return None
    return parser.parse(value)


class VaultBackend:
    """Thin wrapper around the vault HTTP api.

    Sessions are held per thread as the renewal tasks of a manager run on their own
    threads and a requests session is not safe to share between them.
    """

    def __init__(self, address=None, token=None, timeout=10.0, _token_callback=None):
        """
        :param address: base url of vault i.e. http://vault:8200 defaults to VAULT_ADDR
        :param token: token sent on every request, defaults to _token_callback() or VAULT_TOKEN
        :param timeout: seconds before a request is abandoned
        :param _token_callback: function returning a token, called once when first needed
        """
        self._address = address if address is not None else os.environ.get("VAULT_ADDR")
        self._token = token
        self._token_callback = _token_callback
        self.timeout = timeout
        self.ns = threading.local()

    @property
    def address(self):
        if not self._address:
            raise VaultConfigError("VAULT_ADDR")
        return self._address.rstrip("/")

    @property
    def token(self):
        if self._token is None:
            if self._token_callback is not None:
                self._token = self._token_callback()
            else:
                self._token = os.environ.get("VAULT_TOKEN")
        if not self._token:
            raise VaultConfigError("VAULT_TOKEN")
        return self._token.strip()

    def _session(self):
        if not hasattr(self.ns, "session"):
            session = requests.Session()
            session.headers[TOKEN_HEADER] = self.token
            self.ns.session = session
        return self.ns.session

    def _request(self, method, path, body=None, server_errors=True):
        url = f"{self.address}/{VAULT_VERSION}/{path}"
        try:
            if body is None:
                response = self._session().request(method, url, timeout=self.timeout)
            else:
                response = self._session().request(method, url, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(method, path, e) from e
        if server_errors and response.status_code >= 500:
            raise TransportError(method, path, f"status {response.status_code} {response.text}")
        return response

    @staticmethod
    def _json(method, path, response):
        try:
            body = response.json()
        except ValueError as e:
            raise TransportError(method, path, e) from e
        if not isinstance(body, dict):
            raise TransportError(method, path, f"expected a json object got {type(body).__name__}")
        return body

    def _checked_json(self, method, path, body=None):
        response = self._request(method, path, body)
        body = self._json(method, path, response)
        if response.status_code >= 400:
            raise BackendRejection(method, path, response.status_code, body.get("errors", []))
        return body

    def health(self):
        """Return the body of sys/health. Sealed or standby nodes answer with non 200 codes."""
        path = "sys/health"
        return self._json("GET", path, self._request("GET", path, server_errors=False))

    def mounts(self):
        """Return the mounts available through this client."""
        return self._checked_json("GET", "sys/mounts")

    def mount_type(self, mount):
        """Find the backend type of mount (generic, mysql, postgresql, database, aws...)"""
        mounts = self.mounts()
        key = f"{mount}/"
        meta = mounts.get(key) or mounts.get("data", {}).get(key)
        if not meta:
            raise UnknownMount(mount)
        return meta["type"]

    def fetch_grant(self, mount, role):
        """Reads {mount}/creds/{role}, unless the mount is generic then reads {mount}/{role}.

        :raises BackendRejection: vault answered with an error i.e. unknown role or permission denied
        :raises TransportError: vault could not be reached or answered garbage
        """
        mount_type = self.mount_type(mount)
        if mount_type in STATIC_MOUNT_TYPES:
            path = f"{mount}/{role}"
        else:
            path = f"{mount}/creds/{role}"
        body = self._checked_json("GET", path)
        logging.getLogger(__name__).debug(
            f"Read {path} lease {body.get('lease_id')} duration {body.get('lease_duration')}")
        return Grant(mount_type=mount_type,
                     data=body.get("data") or {},
                     lease_id=body.get("lease_id") or None,
                     renewable=bool(body.get("renewable")),
                     lease_duration=body.get("lease_duration") or 0)

    def renew_lease(self, lease_id, increment=None):
        """Request a renewal of a lease.

        Increment is advisory, vault may grant more or less than asked. An error answer is
        not raised, it comes back as a response without a lease id meaning the lease is gone.
        """
        path = f"sys/renew/{lease_id}"
        body = None
        if increment is not None:
            body = {"increment": increment}
        response = self._request("PUT", path, body)
        body = self._json("PUT", path, response)
        if response.status_code >= 400 or not body.get("lease_id"):
            logging.getLogger(__name__).debug(
                f"Renew of {lease_id} returned {response.status_code} errors {body.get('errors')}")
            return RenewResponse(lease_id=None, errors=body.get("errors", []))
        return RenewResponse(lease_id=body["lease_id"],
                             lease_duration=body.get("lease_duration") or 0,
                             renewable=bool(body.get("renewable")))

    def revoke_lease(self, lease_id):
        """Revoke a lease, returning the HTTP status code, 204 if everything was okay."""
        return self._request("PUT", f"sys/revoke/{lease_id}", server_errors=False).status_code

    def lookup_lease(self, lease_id):
        """Ask vault how it sees a lease"""
        data = self._checked_json("PUT", "sys/leases/lookup", {"lease_id": lease_id}).get("data", {})
        return LeaseInfo(lease_id=data.get("id", lease_id),
                         ttl=data.get("ttl", 0),
                         renewable=bool(data.get("renewable")),
                         issue_time=_parse_time(data.get("issue_time")),
                         expire_time=_parse_time(data.get("expire_time")),
                         last_renewal=_parse_time(data.get("last_renewal")))
