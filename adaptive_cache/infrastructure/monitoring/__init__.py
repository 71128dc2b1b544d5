"""
Monitoring Module

- **instrumentation.py**: InstrumentationEngine (counters, latency, recommendations)
- **metrics_collector.py**: Prometheus counters and gauges
"""
