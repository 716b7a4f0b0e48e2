"""KumaBridge: relay Uptime Kuma webhooks to a Telegram chat."""

__version__ = "0.1.0"
