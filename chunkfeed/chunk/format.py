"""Element formats and the small enums that qualify a chunk.

A format either names how one element is encoded in the source (a binary
integer or float of some width, or a text token) or is a structural marker
pointing at a cursor dimension or at the record boundary.
"""
from __future__ import annotations

import enum
import struct


MAX_DIMENSIONS = 16


class ElementFormat(str, enum.Enum):
    """Encoding of one element read by a chunk, or a structural marker."""

    INT8 = "int8"
    UINT8 = "uint8"
    INT16 = "int16"
    UINT16 = "uint16"
    INT32 = "int32"
    UINT32 = "uint32"
    FLOAT16 = "float16"
    FLOAT32 = "float32"
    FLOAT64 = "float64"
    TEXT_LABEL = "text_label"
    TEXT_INT = "text_int"
    TEXT_FLOAT = "text_float"
    DIM0 = "dim0"
    DIM1 = "dim1"
    DIM2 = "dim2"
    DIM3 = "dim3"
    DIM4 = "dim4"
    DIM5 = "dim5"
    DIM6 = "dim6"
    DIM7 = "dim7"
    DIM8 = "dim8"
    DIM9 = "dim9"
    DIM10 = "dim10"
    DIM11 = "dim11"
    DIM12 = "dim12"
    DIM13 = "dim13"
    DIM14 = "dim14"
    DIM15 = "dim15"
    SAMPLE = "sample"

    @staticmethod
    def for_dimension(dimension: int) -> "ElementFormat":
        """Return the marker format that targets `dimension`."""
        if not 0 <= dimension < MAX_DIMENSIONS:
            raise ValueError(
                f"dimension must be in [0, {MAX_DIMENSIONS}), got {dimension}"
            )
        return ElementFormat(f"dim{dimension}")

    @property
    def is_text(self) -> bool:
        return self in _TEXT_FORMATS

    @property
    def is_marker(self) -> bool:
        return self is ElementFormat.SAMPLE or self.dimension is not None

    @property
    def is_binary(self) -> bool:
        return self in _STRUCT_CODES

    @property
    def dimension(self) -> int | None:
        """Cursor dimension named by a DIMk marker, else None."""
        if self.value.startswith("dim"):
            return int(self.value[3:])
        return None

    @property
    def byte_length(self) -> int | None:
        """Bytes one element occupies in a binary source.

        Text formats have no fixed width and return None; markers read nothing.
        """
        if self.is_text:
            return None
        code = _STRUCT_CODES.get(self)
        if code is None:
            return 0
        return struct.calcsize(code)

    @property
    def max_magnitude(self) -> float | None:
        """Largest representable magnitude for integer formats."""
        return _MAX_MAGNITUDE.get(self)

    @property
    def is_signed(self) -> bool:
        return self in (
            ElementFormat.INT8,
            ElementFormat.INT16,
            ElementFormat.INT32,
        )

    def struct_format(self, byte_order: "ByteOrder") -> str:
        """struct module format string reading one element of this format."""
        code = _STRUCT_CODES.get(self)
        if code is None:
            raise ValueError(f"{self.value} has no binary encoding")
        return byte_order.prefix + code


_TEXT_FORMATS = frozenset(
    {ElementFormat.TEXT_LABEL, ElementFormat.TEXT_INT, ElementFormat.TEXT_FLOAT}
)

_STRUCT_CODES: dict[ElementFormat, str] = {
    ElementFormat.INT8: "b",
    ElementFormat.UINT8: "B",
    ElementFormat.INT16: "h",
    ElementFormat.UINT16: "H",
    ElementFormat.INT32: "i",
    ElementFormat.UINT32: "I",
    ElementFormat.FLOAT16: "e",
    ElementFormat.FLOAT32: "f",
    ElementFormat.FLOAT64: "d",
}

_MAX_MAGNITUDE: dict[ElementFormat, float] = {
    ElementFormat.INT8: 127.0,
    ElementFormat.UINT8: 255.0,
    ElementFormat.INT16: 32767.0,
    ElementFormat.UINT16: 65535.0,
    ElementFormat.INT32: 2147483647.0,
    ElementFormat.UINT32: 4294967295.0,
}


class ByteOrder(str, enum.Enum):
    """How multi-byte binary elements are laid out in the source."""

    NATIVE = "native"
    LITTLE = "little"
    BIG = "big"

    @property
    def prefix(self) -> str:
        match self:
            case ByteOrder.NATIVE:
                return "="
            case ByteOrder.LITTLE:
                return "<"
            case ByteOrder.BIG:
                return ">"


class Scaling(str, enum.Enum):
    """Post-read processing applied to decoded values.

    The SCALE_* modes are applied to each value as it is read. The NORMALIZE_*
    modes are applied after the whole source is decoded, from the observed
    range per sample or across the dataset (the ALL variants).
    """

    NONE = "none"
    SCALE_0_1 = "scale_0_1"
    SCALE_M1_1 = "scale_m1_1"
    NORMALIZE_0_1 = "normalize_0_1"
    NORMALIZE_M1_1 = "normalize_m1_1"
    NORMALIZE_ALL_0_1 = "normalize_all_0_1"
    NORMALIZE_ALL_M1_1 = "normalize_all_m1_1"

    @property
    def is_normalization(self) -> bool:
        return self.value.startswith("normalize")

    @property
    def is_dataset_wide(self) -> bool:
        return self in (Scaling.NORMALIZE_ALL_0_1, Scaling.NORMALIZE_ALL_M1_1)

    @property
    def lower_bound(self) -> float:
        if self in (
            Scaling.SCALE_M1_1,
            Scaling.NORMALIZE_M1_1,
            Scaling.NORMALIZE_ALL_M1_1,
        ):
            return -1.0
        return 0.0

    def apply(self, value: float, fmt: ElementFormat) -> float:
        """Apply a per-value scaling; other modes return the value untouched."""
        peak = fmt.max_magnitude
        if peak is None:
            return value
        match self:
            case Scaling.SCALE_0_1:
                return value / peak
            case Scaling.SCALE_M1_1:
                if fmt.is_signed:
                    return value / peak
                return value / peak * 2.0 - 1.0
            case _:
                return value


class Target(str, enum.Enum):
    """Which cursor track(s) a structural chunk affects."""

    NEITHER = "neither"
    INPUT = "input"
    OUTPUT = "output"
    BOTH = "both"

    @property
    def affects_input(self) -> bool:
        return self in (Target.INPUT, Target.BOTH)

    @property
    def affects_output(self) -> bool:
        return self in (Target.OUTPUT, Target.BOTH)


class Channel(int, enum.Enum):
    """Fixed dimension-2 index of a single colour channel."""

    RED = 0
    GREEN = 1
    BLUE = 2
