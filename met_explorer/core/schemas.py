"""Response schemas for the Met collection API.

Responses are validated with pydantic before anything else in the package
sees them.  Field names follow Python conventions; the Met's camelCase keys
are accepted through aliases.  Unknown keys are ignored.
"""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class MetModel(BaseModel):
    """Base for Met response models.

    The API sends ``null`` for many absent fields; those keys are dropped
    before validation so field defaults apply.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


class Department(MetModel):
    department_id: int = Field(..., alias="departmentId")
    display_name: str = Field(..., alias="displayName")


class DepartmentsResponse(MetModel):
    departments: List[Department]


class SearchResponse(MetModel):
    """Raw search endpoint response; ``object_ids`` is null when empty."""

    total: int = Field(..., ge=0)
    object_ids: Optional[List[int]] = Field(None, alias="objectIDs")


class Tag(MetModel):
    term: Optional[str] = None
    aat_url: Optional[str] = Field(None, alias="AAT_URL")
    wikidata_url: Optional[str] = Field(None, alias="Wikidata_URL")


class ObjectRecord(MetModel):
    """A single collection object."""

    object_id: int = Field(..., alias="objectID")
    title: str = ""
    artist_display_name: str = Field("", alias="artistDisplayName")
    artist_display_bio: str = Field("", alias="artistDisplayBio")
    department: str = ""
    object_date: str = Field("", alias="objectDate")
    object_begin_date: Optional[int] = Field(None, alias="objectBeginDate")
    object_end_date: Optional[int] = Field(None, alias="objectEndDate")
    medium: str = ""
    dimensions: str = ""
    credit_line: str = Field("", alias="creditLine")
    culture: str = ""
    object_url: str = Field("", alias="objectURL")
    primary_image: str = Field("", alias="primaryImage")
    primary_image_small: str = Field("", alias="primaryImageSmall")
    additional_images: List[str] = Field(default_factory=list, alias="additionalImages")
    is_highlight: bool = Field(False, alias="isHighlight")
    tags: Optional[List[Tag]] = None

    @property
    def tag_terms(self) -> List[str]:
        """Non-empty tag terms, in order."""
        return [tag.term for tag in self.tags or [] if tag.term]
