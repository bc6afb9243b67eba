"""
Shared base model for organizer entities.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class OrganizerModel(BaseModel):
    """Base model with camelCase aliases for presentation payloads.

    - Python code uses snake_case field names
    - ``model_dump(by_alias=True)`` produces the camelCase shape the web
      front end consumes
    - Unknown keys (``user_id``, timestamps added by the remote store) are ignored
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )
