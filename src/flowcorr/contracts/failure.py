"""Centralized failure policy for contract violations.

Contracts fail fast, loud, and once. All violations raise the same
exception family, allowing caller to handle pipeline bugs uniformly.
Configuration errors are never retried mid-run.
"""


class ContractViolation(RuntimeError):
    """Raised when a pipeline contract is violated.

    This indicates a bug in pipeline logic, not bad user input or a
    data-quality condition. It means a pipeline stage did not produce the
    invariants it promised.

    Key distinction:
    - ValueError: User/config error (handled by Pydantic)
    - ContractViolation: Pipeline bug (programmer error)
    - Quality flags: Bad events, unvalidated bins (never raised)
    """
    pass


class ConfigurationError(ContractViolation):
    """Raised when the correction topology cannot be set up.

    Unresolved reference configurations, duplicated correction steps or
    configurations, calibration inputs with a mismatched layout and
    mutations after the topology is frozen all end up here. The run
    must be aborted.
    """
    pass
