"""Exception hierarchy for the runner."""


class GctfRunnerError(Exception):
    """Base class for all runner errors."""


class ConfigError(GctfRunnerError):
    """Raised for invalid run configuration, before any job is dispatched."""


class TestDefinitionError(GctfRunnerError):
    """Raised when a test file cannot be parsed."""

    __test__ = False


class ChannelError(GctfRunnerError):
    """Raised when the result channel reader cannot guarantee delivery."""


class AggregationError(GctfRunnerError):
    """Raised when the aggregator receives an outcome it must not accept."""


class ExecutorError(GctfRunnerError):
    """Base class for errors raised by test executors."""


class ServiceUnavailableError(ExecutorError):
    """Raised when the target service cannot be reached."""


class CallTimeoutError(ExecutorError):
    """Raised when a call exceeds its time bound."""


class ProtocolError(ExecutorError):
    """Raised for malformed calls or responses."""
