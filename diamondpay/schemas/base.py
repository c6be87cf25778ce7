"""Foundation types for diamondpay models."""

from typing import TypeAlias

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

Address: TypeAlias = str
"""Checksummed 20-byte hex address (0x...)."""

Selector: TypeAlias = str
"""0x-prefixed 4-byte function selector."""


class BaseDiamondModel(BaseModel):
    """Base class for all diamondpay models with camelCase JSON serialization.

    Field names follow the contract ABI when dumped ``by_alias`` so that
    models round-trip with what a deployed diamond returns.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )
