"""API Resilience Implementations.

Contains services for retrying paid calls with backoff, routing around
unreliable endpoints, pacing outbound calls and accounting for their cost.
Bounded Context: API Resilience
"""
