"""
Tests for GraphAuthenticator token acquisition.
"""

import unittest
from unittest.mock import MagicMock, patch

from fakes import make_audit_logger, make_tenant_config

from w365_provisioner.auth import GraphAuthenticator

SCOPES = ["https://graph.microsoft.com/.default"]


class TestClientSecret(unittest.TestCase):

    def setUp(self):
        self.audit, self.store = make_audit_logger()
        patcher = patch("w365_provisioner.auth.msal")
        self.msal = patcher.start()
        self.addCleanup(patcher.stop)
        self.app = self.msal.ConfidentialClientApplication.return_value
        self.app.acquire_token_silent.return_value = None

    def test_token_is_cached_for_the_run(self):
        self.app.acquire_token_for_client.return_value = {"access_token": "abc", "expires_in": 3600}
        authenticator = GraphAuthenticator(make_tenant_config(), self.audit)

        self.assertEqual(authenticator.acquire_token(SCOPES), "abc")
        self.assertEqual(authenticator.acquire_token(SCOPES), "abc")

        self.app.acquire_token_for_client.assert_called_once()
        self.msal.ConfidentialClientApplication.assert_called_once()
        _, kwargs = self.msal.ConfidentialClientApplication.call_args
        self.assertEqual(kwargs["client_credential"], "secret")
        self.assertEqual(kwargs["authority"], "https://login.microsoftonline.com/contoso-tenant")

    def test_failure_raises(self):
        self.app.acquire_token_for_client.return_value = {"error": "invalid_client"}
        authenticator = GraphAuthenticator(make_tenant_config(), self.audit)

        with self.assertRaises(RuntimeError):
            authenticator.acquire_token(SCOPES)
        self.assertEqual(self.store.list(), [])


class TestDeviceCode(unittest.TestCase):

    def test_device_flow_message_is_shown(self):
        audit, _ = make_audit_logger()
        prompt = MagicMock()
        with patch("w365_provisioner.auth.msal") as msal:
            app = msal.PublicClientApplication.return_value
            app.get_accounts.return_value = []
            app.initiate_device_flow.return_value = {"user_code": "ABCD", "message": "Go to https://microsoft.com/devicelogin"}
            app.acquire_token_by_device_flow.return_value = {"access_token": "delegated", "expires_in": 3600}

            authenticator = GraphAuthenticator(
                make_tenant_config(auth={"type": "device_code"}), audit, prompt=prompt
            )
            token = authenticator.acquire_token(["https://graph.microsoft.com/CloudPC.ReadWrite.All"])

        self.assertEqual(token, "delegated")
        prompt.assert_called_once_with("Go to https://microsoft.com/devicelogin")


if __name__ == "__main__":
    unittest.main()
