# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

import unittest

from amaprobe.models import (
    AccessToken,
    AgentSettingsMap,
    ChannelProtocol,
    ProbeRole,
    ProbeTarget,
    SharedKeyCredentials,
)


class ModelTests(unittest.TestCase):
    def test_probe_target_urls_and_names(self):
        regional = ProbeTarget("eastus.handler.control.monitor.azure.com", ProbeRole.REGIONAL_HANDLER, "eastus")
        self.assertEqual(regional.base_url, "https://eastus.handler.control.monitor.azure.com")
        self.assertEqual(regional.display_name, "Regional Handler (eastus)")

        arc = ProbeTarget("127.0.0.1", ProbeRole.INSTANCE_METADATA, port=40342, scheme="http")
        self.assertEqual(arc.base_url, "http://127.0.0.1:40342")
        self.assertFalse(arc.role.has_health_check)
        self.assertTrue(ProbeRole.MANAGEMENT.has_health_check)

    def test_channel_protocol_parse(self):
        self.assertIs(ChannelProtocol.parse("ODS"), ChannelProtocol.ODS)
        self.assertIs(ChannelProtocol.parse(" me "), ChannelProtocol.ME)
        self.assertIs(ChannelProtocol.parse("gig"), ChannelProtocol.OTHER)
        self.assertIs(ChannelProtocol.parse(None), ChannelProtocol.OTHER)

    def test_agent_settings_map_merges(self):
        settings = AgentSettingsMap([("A", "1"), ("", "ignored")])
        settings.merge([("A", "2"), ("B", "3")])
        self.assertEqual(dict(settings), {"A": "2", "B": "3"})
        self.assertEqual(len(settings), 2)

    def test_secrets_are_redacted_from_repr(self):
        self.assertNotIn("topsecret", repr(SharedKeyCredentials("ws", "topsecret")))
        self.assertNotIn("tokenvalue", repr(AccessToken("tokenvalue", "https://api.loganalytics.io", 1700000000)))


if __name__ == "__main__":
    unittest.main()
