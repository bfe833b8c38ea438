"""Errors raised when pipeline stages are handed inconsistent inputs."""


class InsufficientDataError(ValueError):
    """Raised when there is nothing left to analyze after filtering."""


class PartitionMismatchError(ValueError):
    """Raised when a community partition does not cover exactly the graph's vertices."""

    def __init__(self, missing, extra):
        self.missing = missing
        self.extra = extra
        sample_missing = sorted(map(str, missing))[:5]
        sample_extra = sorted(map(str, extra))[:5]
        super().__init__(
            f"Partition does not match graph vertices: "
            f"{len(missing)} vertices without a community {sample_missing}, "
            f"{len(extra)} partition entries not in the graph {sample_extra}"
        )
