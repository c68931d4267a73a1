"""Base contract enforcement utilities.

The require() function is the single enforcement mechanism for all contracts.
"""

from typing import Type

from flowcorr.contracts.failure import ContractViolation


def require(condition: bool, message: str,
            error: Type[ContractViolation] = ContractViolation) -> None:
    """Enforce a pipeline contract.

    This is called at stage boundaries and at setup time to verify the
    promised invariants. It is fail-fast: no recovery, no fallback, no silence.

    Parameters
    ----------
    condition : bool
        The invariant that must be true. If False, ``error`` is raised.

    message : str
        Error message explaining the contract violation (for debugging).

    error : type, optional
        ContractViolation subclass to raise (default: ContractViolation).
        Setup code passes ConfigurationError.

    Raises
    ------
    ContractViolation
        If condition is False. This indicates a bug in pipeline logic.

    Examples
    --------
    >>> require(name in columns, f"Event table contract: missing '{name}'")
    >>> require(cfg is not None, "unknown reference", error=ConfigurationError)
    """
    if not condition:
        raise error(message)
