"""x402 payment adapters.

Bounded Context: Paid Requests
"""
