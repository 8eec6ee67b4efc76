"""Exception hierarchy for AIDef."""

from typing import Optional


class AidefError(Exception):
    """Base class for all AIDef errors."""
    pass


class FileOverlapError(AidefError):
    """Raised when two leaves claim the same output path in one build."""

    def __init__(
        self,
        path: str,
        first_claimant: Optional[str] = None,
        second_claimant: Optional[str] = None,
    ):
        self.path = path
        self.first_claimant = first_claimant
        self.second_claimant = second_claimant
        if first_claimant is not None and second_claimant is not None:
            message = (
                f"File overlap detected: '{path}' is generated by both "
                f"'{first_claimant}' and '{second_claimant}'. "
                f"Each output path must belong to exactly one leaf node."
            )
        else:
            message = f"File overlap detected: '{path}' was already generated in this build"
        super().__init__(message)


class InvalidOutputPathError(AidefError):
    """Raised when a generated file path is absolute or escapes the output root."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid output path '{path}': {reason}")


class ProviderError(AidefError):
    """Raised when a provider call fails."""
    pass


class ProviderResponseError(ProviderError):
    """Raised when a provider response cannot be parsed."""
    pass
