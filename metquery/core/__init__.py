"""Core Application Layer: Orchestrates the report use cases.

Connects the domain layer with the infrastructure layer through interfaces.
Contains the report services and the command handler.
"""
