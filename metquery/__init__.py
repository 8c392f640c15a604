"""metquery: pay-per-request smart money analytics from the command line.

Queries the MetEngine analytics API over the x402 payment protocol with
retry, fallback and pacing for its known-flaky endpoints.
"""

__version__ = "0.3.0"
