"""Configuration system: turning YAML into validated chunk trees and parsers.

Datasets, chunk trees and parser settings can be written as YAML or JSON
manifests and validated into Pydantic models. This keeps source layouts out
of code while still giving clear error messages when something is wrong.
"""
from __future__ import annotations

import enum
from typing import Annotated, TypeVar

from pydantic import AfterValidator, BaseModel


T = TypeVar("T")


class ValidationType(enum.Enum):
    """Types of value validation we support."""

    SHOULD_BE_POSITIVE = "should_be_positive"
    SHOULD_BE_NON_NEGATIVE = "should_be_non_negative"


class Config(BaseModel):
    """Base class for all configuration objects.

    Subclasses describe one runtime object and know how to `build()` it,
    plus share the validation helpers below for enforcing constraints.
    """

    def build(self) -> object:
        """Construct the runtime object this config describes."""
        raise NotImplementedError(f"{type(self).__name__} does not build anything")

    @staticmethod
    def check(left: T, validation_type: ValidationType) -> T:
        """Validate a value against a constraint, raising ValueError on failure."""
        match validation_type:
            case ValidationType.SHOULD_BE_POSITIVE:
                if left <= 0:  # type: ignore[operator]
                    raise ValueError(
                        f"Validation failed: {validation_type.name}: {left!r} <= 0"
                    )
                return left
            case ValidationType.SHOULD_BE_NON_NEGATIVE:
                if left < 0:  # type: ignore[operator]
                    raise ValueError(
                        f"Validation failed: {validation_type.name}: {left!r} < 0"
                    )
                return left
            case _:
                raise ValueError(
                    f"Validation failed: unknown validation type {validation_type}"
                )

    @staticmethod
    def check_range(
        value: int,
        *,
        ge: int | None = None,
        lt: int | None = None,
    ) -> int:
        """Validate an integer is within [ge, lt)."""
        if ge is not None and value < ge:
            raise ValueError(f"Validation failed: {value} < {ge} (expected >= {ge})")
        if lt is not None and value >= lt:
            raise ValueError(f"Validation failed: {value} >= {lt} (expected < {lt})")
        return value


# Type aliases for validated primitives, used throughout the config models
PositiveInt = Annotated[
    int,
    AfterValidator(lambda v: Config.check(v, ValidationType.SHOULD_BE_POSITIVE)),
]
NonNegativeInt = Annotated[
    int,
    AfterValidator(lambda v: Config.check(v, ValidationType.SHOULD_BE_NON_NEGATIVE)),
]
DimensionIndex = Annotated[
    int,
    AfterValidator(lambda v: Config.check_range(v, ge=0, lt=16)),
]
