"""
Base classes and interfaces for AI response parsers.

This module defines the contract that element mappers must follow.
"""

from typing import Any, Optional, Protocol, TypeVar

T_co = TypeVar("T_co", covariant=True)


class ElementMapper(Protocol[T_co]):
    """
    Protocol for element mappers.

    A mapper validates one element of a JSON array returned by the AI and
    converts it into a typed record. Returning None drops the element.
    """

    def __call__(self, element: Any) -> Optional[T_co]:
        """Validates and maps a single element."""
