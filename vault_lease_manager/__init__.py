# -*- coding: utf-8 -*-
"""vault_lease_manager

Obtain short lived credentials from vault and keep their leases alive in the background,
renewing while vault allows it, replacing the lease when it hits its maximum ttl and
telling the owner when the lease is gone.

"""

from __future__ import absolute_import

from vault_lease_manager.backend import VaultBackend, Grant, RenewResponse, LeaseInfo, VAULT_VERSION, TOKEN_HEADER
from vault_lease_manager.credential import Credential
from vault_lease_manager.exceptions import LeaseManagerError, \
    TransportError, \
    BackendRejection, \
    UnknownMount, \
    LeaseTerminated, \
    VaultConfigError
from vault_lease_manager.policy import RENEW_FACTOR, RenewalOutcome, classify_renewal, next_renewal_delay, \
    projected_expiration
from vault_lease_manager.manager import LeaseManager, LeaseObserver, CallbackObserver, LeaseState
from vault_lease_manager.decorators import InjectCredentialData, InjectKeywordedCredential
from ._version import __version__

__all__ = ["__version__",
           "VAULT_VERSION",
           "TOKEN_HEADER",
           "VaultBackend",
           "Grant",
           "RenewResponse",
           "LeaseInfo",
           "Credential",
           "LeaseManagerError",
           "TransportError",
           "BackendRejection",
           "UnknownMount",
           "LeaseTerminated",
           "VaultConfigError",
           "RENEW_FACTOR",
           "RenewalOutcome",
           "classify_renewal",
           "next_renewal_delay",
           "projected_expiration",
           "LeaseManager",
           "LeaseObserver",
           "CallbackObserver",
           "LeaseState",
           "InjectCredentialData",
           "InjectKeywordedCredential"]
