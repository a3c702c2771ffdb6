from enum import Enum

from pydantic import BaseModel


class BasePydanticModel(BaseModel):
    model_config = {
        "extra": "forbid",
        "populate_by_name": True,
        "use_enum_values": True,
    }

class OutcomeStatus(str, Enum):
    RESOLVED = "resolved"   # PTR hostname found
    EMPTY = "empty"         # lookup ran, nothing usable came back
    ERROR = "error"         # session could not be set up
