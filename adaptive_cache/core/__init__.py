"""Core building blocks: configuration, logging, exceptions and resilience primitives."""
