"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the application to the outside world (the paid HTTP API, the x402
signer, configuration sources and the console) by implementing the
interfaces defined in the domain layer.
"""
