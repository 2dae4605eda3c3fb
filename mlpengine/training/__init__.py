"""Training loop, configuration, metrics and pipelines."""
