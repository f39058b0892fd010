# -*- coding: utf-8 -*-
"""This module implements the lease lifecycle manager

get_credential hands back a credential straight away. When an observer is given a
background task keeps the lease alive, renewing at RENEW_FACTOR of the lease duration.
The observer is called with (credential, extended) and there are three possible
combinations:

* credential, True  -- The lease was successfully renewed, same object as before.
* credential, False -- The lease hit its maximum length and was replaced with a new
                       lease. Old references must be dropped for this one.
* None, False       -- The lease no longer exists, due to revocation or expiry.

Failures of the background task (vault unreachable, garbage answers) go to
LeaseObserver.lease_failed and end the task, the lease may still be valid until it
expires so the owner decides what to do. A plain function observer given no on_error
receives the failure as (error, False), the exception in place of the credential.

Since the autorenew will not attempt to replace a lease that has already expired, a
client can voluntarily give up a lease early with revoke_credential which also halts
the autorenew.
"""

from __future__ import absolute_import
from __future__ import division
from __future__ import print_function
from __future__ import unicode_literals

import logging
import threading
import weakref
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum

from .backend import REVOKE_SUCCESS
from .credential import Credential, RenewalState
from .exceptions import LeaseManagerError
from .policy import RenewalOutcome, classify_renewal, next_renewal_delay, projected_expiration


def _utcnow():
    return datetime.now(timezone.utc)


class LeaseState(Enum):
    ACTIVE = "active"
    EXHAUSTED_REFETCHING = "exhausted-refetching"
    TERMINATED = "terminated"


class LeaseObserver(ABC):
    """Receives the fate of a managed lease.

    Calls happen on the renewal thread of the lease, strictly in order. Anything slow
    should be handed off as the next renewal is not scheduled until the call returns.
    """

    @abstractmethod
    def lease_changed(self, credential, extended):
        """
        Args:
            credential (Credential): current credential or None once the lease is gone
            extended (bool): True if credential is the same lease renewed
        """
        pass

    def lease_failed(self, error):
        """Called once when the renewal task stops because of an error.

        The renewal thread has already logged it, override to act on it.
        """
        pass


class CallbackObserver(LeaseObserver):
    """Adapts plain functions to a LeaseObserver

    Without an error_callback failures are delivered to callback as (error, False).
    """

    def __init__(self, callback, error_callback=None):
        self._callback = callback
        self._error_callback = error_callback

    def lease_changed(self, credential, extended):
        self._callback(credential, extended)

    def lease_failed(self, error):
        if self._error_callback is None:
            self._callback(error, False)
        else:
            self._error_callback(error)


class RenewalHandle:
    """Owns the renewal thread of one managed lease and its cancellation signal.

    The lock is held while the state is changed and the observer is told about it, so
    once cancel() returns the observer will not be called again.
    """

    def __init__(self, mount, role, credential, renewal_state, observer):
        self.mount = mount
        self.role = role
        self.credential = credential
        self.renewal_state = renewal_state
        self.observer = observer
        self.state = LeaseState.ACTIVE
        self.lock = threading.RLock()
        self._cancelled = threading.Event()
        self.thread = None

    @property
    def cancelled(self):
        return self._cancelled.is_set()

    def cancel(self):
        with self.lock:
            self._cancelled.set()
            self.state = LeaseState.TERMINATED

    def wait(self, delay):
        """Sleep delay seconds, returns True straight away if cancelled meanwhile"""
        return self._cancelled.wait(delay)

    def join(self, timeout=None):
        t = self.thread
        if t is not None and t is not threading.current_thread():
            t.join(timeout)

    def notify(self, credential, extended):
        try:
            self.observer.lease_changed(credential, extended)
        except Exception:
            logging.getLogger(__name__).exception(
                f"Observer of lease {self.mount}/{self.role} raised")

    def fail(self, error):
        try:
            self.observer.lease_failed(error)
        except Exception:
            logging.getLogger(__name__).exception(
                f"Observer of lease {self.mount}/{self.role} raised handling {error}")


# The thread only holds a weak reference to the manager so an abandoned manager
# does not live on through its renewal threads.

def _renewal_thread(manager_weak_ref, handle, min_renew_delay):
    """
    Background driver loop renewing one lease
    :param manager_weak_ref: weak reference to the lease manager
    :param handle: RenewalHandle of the lease
    :param min_renew_delay: floor on the sleep between renewals
    :return: None
    """
    while not handle.cancelled:
        delay = next_renewal_delay(handle.renewal_state.lease_duration, min_renew_delay)
        logging.getLogger(__name__).debug(
            f"Renewing {handle.credential.lease_id} in {delay:.1f}s")
        if handle.wait(delay):
            break

        manager = manager_weak_ref()
        if manager is None:
            break
        try:
            keep_going = manager._renew_once(handle)
        except Exception as e:
            logging.getLogger(__name__).exception(
                f"While renewing lease {handle.credential.lease_id} for {handle.mount}/{handle.role}")
            manager._fail(handle, e)
            keep_going = False
        del manager
        if not keep_going:
            break


class LeaseManager:
    """Obtains credentials from vault and keeps their leases alive.

    Each credential obtained with an observer gets its own renewal thread, threads of
    different leases share nothing.
    """

    def __init__(self, backend, increment=None, min_renew_delay=1.0, _clock=None):
        """
        :param backend: VaultBackend used for every call
        :param increment: advisory increment in seconds asked for on every renew
        :param min_renew_delay: floor in seconds on the wait between renewals
        :param _clock: returns the current aware datetime, defaults to utc now
        """
        self._backend = backend
        self.increment = increment
        self.min_renew_delay = min_renew_delay
        self._clock = _clock if _clock is not None else _utcnow
        self._handles = {}
        self.lock = threading.Lock()

    @property
    def backend(self):
        return self._backend

    @property
    def active_leases(self):
        """Lease ids that currently have a renewal thread"""
        with self.lock:
            return list(self._handles)

    def _fetch(self, mount, role):
        grant = self._backend.fetch_grant(mount, role)
        state = RenewalState(lease_duration=grant.lease_duration, last_renew_time=self._clock())
        credential = Credential(mount, role, grant, state)
        logging.getLogger(__name__).info(
            f"Obtained credential for {mount}/{role} lease {credential.lease_id} "
            f"expires {credential.expiration_time.isoformat()}")
        return credential, state

    def get_credential(self, mount, role, observer=None, on_error=None):
        """Fetch a credential for role from mount.

        With no observer the caller owns the lifecycle and nothing runs in the background.

        :param mount: vault mount path i.e. mysql
        :param role: role to read credentials for
        :param observer: LeaseObserver or function(credential, extended) turning on autorenew
        :param on_error: function(error) used with a plain function observer
        :return: Credential
        :raises BackendRejection: vault refused the request, no task is started
        :raises TransportError: vault could not be reached
        """
        credential, state = self._fetch(mount, role)
        if observer is None:
            return credential

        if not credential.leased:
            logging.getLogger(__name__).warning(
                f"Credential for {mount}/{role} has no lease, autorenew not started")
            return credential

        if not isinstance(observer, LeaseObserver):
            observer = CallbackObserver(observer, on_error)

        handle = RenewalHandle(mount, role, credential, state, observer)
        with self.lock:
            self._handles[credential.lease_id] = handle
        t = threading.Thread(target=_renewal_thread,
                             name=f"renew_lease_{mount}_{role}",
                             args=[weakref.ref(self), handle, self.min_renew_delay])
        t.daemon = True
        handle.thread = t
        t.start()
        return credential

    def _forget(self, handle, lease_id=None):
        lease_id = lease_id or handle.credential.lease_id
        with self.lock:
            if self._handles.get(lease_id) is handle:
                del self._handles[lease_id]

    def _renew_once(self, handle):
        """One tick of the renewal loop. Returns False when the loop must end."""
        credential = handle.credential
        old_expiration = credential.expiration_time
        response = self._backend.renew_lease(credential.lease_id, self.increment)
        renewed_at = self._clock()
        new_expiration = projected_expiration(renewed_at, response.lease_duration)
        outcome = classify_renewal(response, old_expiration, new_expiration)

        if outcome is RenewalOutcome.RENEWED:
            with handle.lock:
                if handle.cancelled:
                    return False
                handle.renewal_state.lease_duration = response.lease_duration
                handle.renewal_state.last_renew_time = renewed_at
                logging.getLogger(__name__).info(
                    f"Renewed lease {credential.lease_id} now expires {new_expiration.isoformat()}")
                handle.notify(credential, True)
            return True

        if outcome is RenewalOutcome.EXPIRED:
            with handle.lock:
                if handle.cancelled:
                    return False
                handle.state = LeaseState.TERMINATED
                self._forget(handle)
                logging.getLogger(__name__).info(
                    f"Lease {credential.lease_id} for {handle.mount}/{handle.role} no longer exists")
                handle.notify(None, False)
            return False

        with handle.lock:
            if handle.cancelled:
                return False
            handle.state = LeaseState.EXHAUSTED_REFETCHING
        logging.getLogger(__name__).info(
            f"Lease {credential.lease_id} reached its maximum ttl, replacing it")
        replacement, state = self._fetch(handle.mount, handle.role)

        with handle.lock:
            if handle.cancelled:
                self._discard(replacement)
                return False
            old_lease_id = credential.lease_id
            handle.credential = replacement
            handle.renewal_state = state
            with self.lock:
                if self._handles.get(old_lease_id) is handle:
                    del self._handles[old_lease_id]
                if replacement.leased:
                    self._handles[replacement.lease_id] = handle
            handle.notify(replacement, False)
            if not replacement.leased:
                handle.state = LeaseState.TERMINATED
                return False
            handle.state = LeaseState.ACTIVE
        return True

    def _discard(self, credential):
        # revoked while a replacement was being fetched, nobody will ever see it
        if not credential.leased:
            return
        try:
            status = self._backend.revoke_lease(credential.lease_id)
            logging.getLogger(__name__).info(
                f"Revoked undelivered replacement lease {credential.lease_id} status {status}")
        except LeaseManagerError:
            logging.getLogger(__name__).exception(
                f"Could not revoke undelivered replacement lease {credential.lease_id}")

    def _fail(self, handle, error):
        with handle.lock:
            if handle.cancelled:
                return
            handle.cancel()
            self._forget(handle)
            handle.fail(error)

    def revoke_credential(self, credential):
        """Revoke the credential in vault, returning the HTTP status code, 204 if everything
        was okay. Any autorenew of the lease is stopped before the call is made.
        """
        with self.lock:
            handle = self._handles.get(credential.lease_id)
        if handle is not None:
            with handle.lock:
                # the task may have swapped in and delivered a replacement meanwhile,
                # that lease stays managed
                if handle.credential.lease_id == credential.lease_id:
                    handle.cancel()
                    self._forget(handle, credential.lease_id)
        status = self._backend.revoke_lease(credential.lease_id)
        if status == REVOKE_SUCCESS:
            logging.getLogger(__name__).info(f"Revoked lease {credential.lease_id}")
        else:
            logging.getLogger(__name__).warning(
                f"Revoke of lease {credential.lease_id} returned status {status}")
        return status

    def lookup(self, credential):
        """Vault's own view of the lease behind credential"""
        return self._backend.lookup_lease(credential.lease_id)

    def close(self, timeout=None):
        """Stop every renewal thread without revoking the leases"""
        with self.lock:
            handles = list(self._handles.values())
            self._handles.clear()
        for handle in handles:
            handle.cancel()
        for handle in handles:
            handle.join(timeout)
