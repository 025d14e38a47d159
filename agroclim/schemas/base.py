"""
Base Pydantic schemas.

This module contains base schemas with common fields and configurations
that other schemas can inherit from.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BaseSchema(BaseModel):
    """
    Base schema with common configuration.

    All other schemas should inherit from this class. Fields are
    snake_case in Python and camelCase on the wire.
    """

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class FrozenSchema(BaseSchema):
    """
    Immutable schema for computed results.
    """

    model_config = ConfigDict(frozen=True)
