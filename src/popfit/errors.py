#########################################################################################
##
##                                  EXCEPTION TYPES
##                                    (errors.py)
##
#########################################################################################


class PopfitError(Exception):
    """Base class for all errors raised by popfit."""


class ConfigurationError(PopfitError, ValueError):
    """Estimation inputs violate a structural contract.

    Raised for unknown functional-form names, matrix shapes that do not match
    the declared species / guild / year counts, inconsistent guild membership,
    inverted parameter ranges, and parameter vectors whose length differs from
    the active parameter layout.
    """


class ForcedStop(PopfitError):
    """Cooperative cancellation observed at an evaluation boundary.

    Raised from inside the objective function so that it unwinds the
    optimizer's search loop immediately. It is not an error: the driver
    catches it at the run boundary and ends the run as cancelled.
    """
