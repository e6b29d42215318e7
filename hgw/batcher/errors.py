"""Batcher exceptions."""


class BatcherSetupError(ValueError):
    """The target or pool is unusable; a configuration error, not a runtime condition."""
