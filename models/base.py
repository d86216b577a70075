"""Base models: snake_case in Python and on disk, camelCase for API output."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for every domain and API model.

    Accepts either spelling on input so rubric files written by hand
    (``total_weight``) and API payloads (``totalWeight``) both load.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class FrozenCamelModel(CamelModel):
    """Immutable variant for records that must not change once created."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )
