"""Constants and creation settings of storage files."""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing_extensions import Annotated, Final

MAX_RANK: Final[int] = 4
"""Maximum number of dimensions of an array (and of one item in a dataset)."""

MIN_USERBLOCK_SIZE: Final[int] = 512
"""Smallest non-empty user block HDF5 accepts. Must be a power of 2."""

DEFAULT_COMPRESSION: Final[int] = 0
"""Default gzip level of new datasets (0 turns compression off)."""

MAX_COMPRESSION: Final[int] = 9
"""Highest gzip level supported by HDF5."""


class CreationProperties(BaseModel):
    """Settings fixed when a storage file (or a dataset in it) is created."""

    model_config = ConfigDict(frozen=True)

    userblock_size: Annotated[int, Field(ge=0)] = 0
    """Bytes reserved at the beginning of the file, outside of HDF5 control."""

    compression: Annotated[int, Field(ge=0, le=MAX_COMPRESSION)] = DEFAULT_COMPRESSION
    """gzip level used for datasets created without an explicit level."""

    @field_validator("userblock_size")
    @classmethod
    def check_userblock_size(cls, v: int) -> int:
        if v == 0:
            return v
        if v < MIN_USERBLOCK_SIZE or v & (v - 1):
            msg = f"User block size must be 0 or a power of 2 >= {MIN_USERBLOCK_SIZE}, got {v}"
            raise ValueError(msg)
        return v
