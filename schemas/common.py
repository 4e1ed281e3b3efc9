from decimal import Decimal
from typing import Annotated
from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Wire models use camelCase keys; snake_case is accepted on input too."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Decimal internally, a JSON number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]
