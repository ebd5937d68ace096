"""Shared base model for migration API payloads."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class MigrationModel(BaseModel):
    """Base model accepting both camelCase (web client) and snake_case (backend) keys.

    Serialize with ``model_dump(by_alias=True)`` to produce the camelCase wire form.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )
