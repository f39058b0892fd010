# -*- coding: utf-8 -*-
"""
Tests for the vault HTTP client with requests sessions mocked out

"""
import os
import unittest
from datetime import datetime, timezone
from unittest import mock

import requests

from vault_lease_manager import *

ADDRESS = "http://vault:8200"

MOUNTS = {
    "mysql/": {"type": "mysql", "description": ""},
    "secret/": {"type": "generic", "description": ""},
    "sys/": {"type": "system", "description": ""},
}

GRANT = {
    "lease_id": "mysql/creds/readonly/abc123",
    "renewable": True,
    "lease_duration": 300,
    "data": {"username": "v-readonly-x1", "password": "s3cr3t"},
}


def response(status_code=200, body=None):
    r = mock.Mock()
    r.status_code = status_code
    r.text = ""
    if body is None:
        r.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        r.json.return_value = body
    return r


class TestVaultBackend(unittest.TestCase):
    def setUp(self):
        patcher = mock.patch("vault_lease_manager.backend.requests.Session")
        self.session_cls = patcher.start()
        self.addCleanup(patcher.stop)
        self.session = self.session_cls.return_value
        self.session.headers = {}
        self.backend = VaultBackend(ADDRESS, token="root-token\n")

    def answer(self, *responses):
        self.session.request.side_effect = list(responses)

    def urls(self):
        return [(c.args[0], c.args[1]) for c in self.session.request.call_args_list]

    def test_dynamic_mount_reads_creds_path(self):
        self.answer(response(body=MOUNTS), response(body=GRANT))
        grant = self.backend.fetch_grant("mysql", "readonly")

        self.assertEqual(self.urls(), [("GET", f"{ADDRESS}/v1/sys/mounts"),
                                       ("GET", f"{ADDRESS}/v1/mysql/creds/readonly")])
        self.assertEqual(self.session.headers["X-Vault-Token"], "root-token")
        self.assertEqual(grant.mount_type, "mysql")
        self.assertEqual(grant.lease_id, "mysql/creds/readonly/abc123")
        self.assertEqual(grant.lease_duration, 300)
        self.assertTrue(grant.renewable)
        self.assertEqual(grant.data["username"], "v-readonly-x1")

    def test_generic_mount_reads_role_path(self):
        self.answer(response(body=MOUNTS),
                    response(body={"lease_id": "", "renewable": False, "lease_duration": 2764800,
                                   "data": {"api_key": "k"}}))
        grant = self.backend.fetch_grant("secret", "app")

        self.assertEqual(self.urls()[1], ("GET", f"{ADDRESS}/v1/secret/app"))
        self.assertIsNone(grant.lease_id)
        self.assertFalse(grant.renewable)

    def test_mount_looked_up_every_fetch(self):
        self.answer(response(body=MOUNTS), response(body=GRANT),
                    response(body=MOUNTS), response(body=GRANT))
        self.backend.fetch_grant("mysql", "readonly")
        self.backend.fetch_grant("mysql", "readonly")
        self.assertEqual([u for _, u in self.urls()].count(f"{ADDRESS}/v1/sys/mounts"), 2)

    def test_unknown_mount(self):
        self.answer(response(body=MOUNTS))
        with self.assertRaises(UnknownMount) as ctx:
            self.backend.fetch_grant("postgres", "readonly")
        self.assertEqual(ctx.exception.mount, "postgres")

    def test_rejected_fetch(self):
        self.answer(response(body=MOUNTS),
                    response(400, {"errors": ["unknown role: nope"]}))
        with self.assertRaises(BackendRejection) as ctx:
            self.backend.fetch_grant("mysql", "nope")
        self.assertEqual(ctx.exception.status_code, 400)
        self.assertEqual(ctx.exception.errors, ["unknown role: nope"])
        self.assertEqual(ctx.exception.path, "mysql/creds/nope")

    def test_connection_failure_is_transport_error(self):
        self.session.request.side_effect = requests.ConnectionError("connection refused")
        with self.assertRaises(TransportError) as ctx:
            self.backend.fetch_grant("mysql", "readonly")
        self.assertIsInstance(ctx.exception.error, requests.ConnectionError)

    def test_malformed_body_is_transport_error(self):
        self.answer(response(body=MOUNTS), response(200, None))
        with self.assertRaises(TransportError):
            self.backend.fetch_grant("mysql", "readonly")

    def test_renew_with_increment(self):
        self.answer(response(body={"lease_id": GRANT["lease_id"], "lease_duration": 600,
                                   "renewable": True}))
        renewed = self.backend.renew_lease(GRANT["lease_id"], 600)

        call = self.session.request.call_args
        self.assertEqual(call.args, ("PUT", f"{ADDRESS}/v1/sys/renew/{GRANT['lease_id']}"))
        self.assertEqual(call.kwargs["json"], {"increment": 600})
        self.assertFalse(renewed.expired)
        self.assertEqual(renewed.lease_duration, 600)

    def test_renew_without_increment_sends_no_body(self):
        self.answer(response(body={"lease_id": GRANT["lease_id"], "lease_duration": 300}))
        self.backend.renew_lease(GRANT["lease_id"])
        self.assertNotIn("json", self.session.request.call_args.kwargs)

    def test_renew_of_unknown_lease_is_expiry(self):
        self.answer(response(400, {"errors": ["lease not found or lease is not renewable"]}))
        renewed = self.backend.renew_lease(GRANT["lease_id"])
        self.assertTrue(renewed.expired)
        self.assertIsNone(renewed.lease_id)
        self.assertEqual(renewed.errors, ["lease not found or lease is not renewable"])

    def test_renew_server_error_is_transport_error(self):
        self.answer(response(500, {"errors": ["internal error"]}))
        with self.assertRaises(TransportError):
            self.backend.renew_lease(GRANT["lease_id"])

    def test_revoke_returns_status(self):
        self.answer(response(204, None), response(403, {"errors": ["permission denied"]}))
        self.assertEqual(self.backend.revoke_lease(GRANT["lease_id"]), 204)
        self.assertEqual(self.backend.revoke_lease(GRANT["lease_id"]), 403)
        self.assertEqual(self.urls()[0], ("PUT", f"{ADDRESS}/v1/sys/revoke/{GRANT['lease_id']}"))

    def test_lookup_parses_times(self):
        self.answer(response(body={"data": {
            "id": GRANT["lease_id"],
            "ttl": 299,
            "renewable": True,
            "issue_time": "2024-01-01T12:00:00.000000Z",
            "expire_time": "2024-01-01T12:05:00.000000Z",
            "last_renewal": None}}))
        info = self.backend.lookup_lease(GRANT["lease_id"])

        self.assertEqual(self.session.request.call_args.kwargs["json"], {"lease_id": GRANT["lease_id"]})
        self.assertEqual(info.expire_time, datetime(2024, 1, 1, 12, 5, tzinfo=timezone.utc))
        self.assertEqual(info.ttl, 299)
        self.assertIsNone(info.last_renewal)

    def test_health_on_sealed_vault(self):
        self.answer(response(503, {"initialized": True, "sealed": True}))
        self.assertTrue(self.backend.health()["sealed"])
        self.answer(response(200, {"initialized": True, "sealed": False}))
        self.assertFalse(self.backend.health()["sealed"])


class TestVaultBackendConfig(unittest.TestCase):

    @mock.patch.dict(os.environ, {"VAULT_ADDR": "http://env-vault:8200/", "VAULT_TOKEN": "env-token"})
    def test_environment_defaults(self):
        backend = VaultBackend()
        self.assertEqual(backend.address, "http://env-vault:8200")
        self.assertEqual(backend.token, "env-token")

    @mock.patch.dict(os.environ, {}, clear=True)
    def test_missing_settings(self):
        backend = VaultBackend()
        with self.assertRaises(VaultConfigError) as ctx:
            backend.address
        self.assertEqual(ctx.exception.setting, "VAULT_ADDR")
        with self.assertRaises(VaultConfigError):
            backend.token

    @mock.patch.dict(os.environ, {}, clear=True)
    def test_token_callback(self):
        calls = []

        def read_token():
            calls.append(1)
            return " file-token\n"

        backend = VaultBackend(ADDRESS, _token_callback=read_token)
        self.assertEqual(backend.token, "file-token")
        self.assertEqual(backend.token, "file-token")
        self.assertEqual(len(calls), 1)
