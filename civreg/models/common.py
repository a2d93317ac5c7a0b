# civreg/models/common.py
from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

Role = Literal["CITIZEN", "EMPLOYEE", "ADMIN"]
Priority = Literal["LOW", "MEDIUM", "HIGH", "URGENT"]
PermitType = Literal["BURIAL", "CREMATION", "EXHUMATION"]
RegistrationType = Literal["REGULAR", "DELAYED"]

PERMIT_FEES = {"BURIAL": 500.0, "CREMATION": 750.0, "EXHUMATION": 1000.0}
REGISTRATION_FEES = {"REGULAR": 50.0, "DELAYED": 150.0}


class CamelModel(BaseModel):
    """Snake case in Python, camelCase on the wire and in Mongo documents."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)
