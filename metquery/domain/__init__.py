"""Domain Layer: payment-call models, errors, events and ports.

Has no dependency on httpx, x402 or rich.
"""
