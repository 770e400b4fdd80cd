"""consent-pilot: resolves cookie consent prompts according to a user policy."""

__version__ = "0.1.0"
