"""Exception types for pwrzv."""


class PwrzvError(Exception):
    """Base class for every error raised by pwrzv."""

    exit_code = 1

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class MetricUnavailable(PwrzvError):
    """A single metric could not be read. Recoverable: the metric is skipped."""

    def __init__(self, metric: str, reason: str = "not available on this platform") -> None:
        super().__init__(f"{metric}: {reason}")
        self.metric = metric
        self.reason = reason


class MetricTimeout(MetricUnavailable):
    """Reading a metric exceeded its time budget."""

    def __init__(self, metric: str, timeout: float) -> None:
        super().__init__(metric, f"timed out after {timeout:.1f}s")
        self.timeout = timeout


class MetricParseError(MetricUnavailable):
    """A metric's raw data could not be parsed."""

    def __init__(self, metric: str, detail: str) -> None:
        super().__init__(metric, f"failed to parse: {detail}")
        self.detail = detail


class InvalidConfiguration(PwrzvError):
    """A sigmoid override or parameter value is unusable."""

    exit_code = 2


class NoMetricsAvailable(PwrzvError):
    """Every metric was unavailable, so no reserve can be estimated."""

    exit_code = 1

    def __init__(self, message: str = "No metrics available to estimate power reserve") -> None:
        super().__init__(message)


class UnsupportedPlatform(PwrzvError):
    """The host platform has no metric source."""

    exit_code = 3

    def __init__(self, platform: str) -> None:
        super().__init__(
            f"Unsupported platform: {platform}. Only Linux and macOS are supported."
        )
        self.platform = platform
