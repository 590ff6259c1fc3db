"""Short code generation utilities."""

import random
import string
from typing import Optional

from .exceptions import ShortCodeGenerationError


class ShortCodeGenerator:
    """Generate short codes for URLs.

    Codes are drawn uniformly from the base62 alphabet and re-rolled until they
    contain at least one letter and at least one digit.
    """

    # Base62 characters (alphanumeric, case-sensitive)
    BASE62_CHARS = string.ascii_letters + string.digits  # a-zA-Z0-9

    def __init__(
        self,
        default_length: int = 6,
        max_attempts: int = 1000,
        rng: Optional[random.Random] = None,
    ):
        """Initialize short code generator.

        Args:
            default_length: Default length for generated codes
            max_attempts: Upper bound on re-rolls before giving up
            rng: Optional random source (defaults to the OS entropy pool)
        """
        self.default_length = default_length
        self.max_attempts = max_attempts
        self._rng = rng or random.SystemRandom()

    def generate(self, length: Optional[int] = None) -> str:
        """Generate a random short code with at least one letter and one digit.

        Args:
            length: Length of the code (uses default if not specified)

        Returns:
            Random short code

        Raises:
            ValueError: If length is too small to hold both a letter and a digit
            ShortCodeGenerationError: If max_attempts re-rolls all failed
        """
        length = length or self.default_length
        if length < 2:
            raise ValueError("Short code length must be at least 2")

        for _ in range(self.max_attempts):
            code = ''.join(self._rng.choices(self.BASE62_CHARS, k=length))
            if _has_letter_and_digit(code):
                return code

        raise ShortCodeGenerationError(
            f"No valid short code after {self.max_attempts} attempts"
        )

    @staticmethod
    def is_valid_code(code: str, length: int = 6) -> bool:
        """Check if code has the generated format.

        Args:
            code: Code to validate
            length: Required length

        Returns:
            True if code is `length` alphanumerics with a letter and a digit
        """
        if not isinstance(code, str) or len(code) != length:
            return False
        if not all(c in ShortCodeGenerator.BASE62_CHARS for c in code):
            return False
        return _has_letter_and_digit(code)


def _has_letter_and_digit(code: str) -> bool:
    has_letter = any(c in string.ascii_letters for c in code)
    has_digit = any(c in string.digits for c in code)
    return has_letter and has_digit
