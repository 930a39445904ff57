from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ModelBase(BaseModel):
    """
    Base class for lifeos-sync configuration and bookkeeping models.

    Enforces strict validation, forbids unknown fields,
    and enables assignment-time validation.
    """

    model_config = ConfigDict(
        extra="forbid",
        validate_assignment=True,
        frozen=False,
    )


class DocumentModel(BaseModel):
    """
    Base class for records stored inside the application-state document.

    Keys are persisted in camelCase and unknown keys are preserved, so a
    document written by a newer schema survives a load/save cycle intact.
    """

    model_config = ConfigDict(
        extra="allow",
        alias_generator=to_camel,
        populate_by_name=True,
    )


DateKey = str
DocumentId = str
Milliseconds = int
