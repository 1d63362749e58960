"""Shared base model for everything that crosses the HTTP boundary."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base model that reads snake_case or camelCase and emits camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
