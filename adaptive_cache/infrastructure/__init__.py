"""Infrastructure layer: the bounded cache and its instrumentation."""
