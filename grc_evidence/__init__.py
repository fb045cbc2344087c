"""grc-evidence: compliance evidence collection from Azure subscriptions."""

__version__ = "0.1.0"
