"""Store Provisioning Platform."""

__version__ = "1.0.0"
