"""Report retrieval and differencing for Nexus IQ policy evaluations."""

__version__ = "0.1.0"
