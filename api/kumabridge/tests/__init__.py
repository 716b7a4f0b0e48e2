"""Test suite for KumaBridge.

- fakes/: an in-memory Telegram Bot API served through ``httpx.MockTransport``
- test_payload / test_styles / test_composer: message composition, no I/O
- test_telegram: the dispatcher against the fake API
- test_config: settings loading and validation
- test_webhooks: the HTTP endpoint end to end
"""
