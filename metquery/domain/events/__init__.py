"""Domain Event definitions.

Represents significant occurrences during a paid run (retries, fallbacks,
throttle waits) that other parts of the system might react to.
"""
