"""HTTP middleware: request ids, timing and Prometheus request metrics."""
