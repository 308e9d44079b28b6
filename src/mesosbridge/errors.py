"""
Errors which are not reported through status codes
"""


class ContractViolation(RuntimeError):
    """Misuse of a borrowed or transferred buffer, or of a destroyed driver handle.

    Not a recoverable condition -- the library never catches it."""
