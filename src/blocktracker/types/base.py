"""Reusable, strict base models for tracker data types."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    A base model that reads and writes field names in camel case.

    JSON-RPC nodes report block fields as `parentHash` or `totalDifficulty`.
    The Python side keeps snake case (`parent_hash`) and the alias generator
    bridges the two when validating payloads or dumping JSON.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_default=True,
        arbitrary_types_allowed=True,
    )


class StrictBaseModel(CamelModel):
    """A strict, immutable pydantic base model."""

    model_config = CamelModel.model_config | {
        "extra": "forbid",
        "frozen": True,
        "strict": True,
    }
