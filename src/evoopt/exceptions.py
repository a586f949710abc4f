"""
Exception hierarchy for the evoopt optimization engines.

Cancellation is not an error and has no exception here: a cancelled run
returns its best-known solution.
"""


class EvoOptError(Exception):
    """Base for all evoopt exceptions."""

    pass


class ConfigurationError(EvoOptError, ValueError):
    """Invalid hyperparameters or an incomplete problem, rejected at construction."""

    pass


class ProblemContractViolation(EvoOptError):
    """A problem operation returned a value inconsistent with its contract."""

    pass


class MigrationError(EvoOptError):
    """A migration port could not serve a request."""

    pass
