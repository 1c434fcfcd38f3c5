"""
Pydantic schemas for the assessment form.

Field aliases match the camelCase keys posted by the single-page form.
Required fields are checked by the service layer so the error names the field.
"""
from typing import Any, List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

Scalar = Union[str, int, float]


class _FormModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_form_values(cls, v: Any, info: ValidationInfo) -> Any:
        # Form fields arrive as null or bare numbers; text fields take them as text
        annotation = cls.model_fields[info.field_name].annotation
        if annotation is str:
            if v is None:
                return ""
            if isinstance(v, bool):
                return "true" if v else "false"
            if isinstance(v, (int, float)):
                return str(v)
        elif annotation is bool and v is None:
            return False
        elif v is None and info.field_name in ("selections", "photos"):
            return []
        return v


class NewBatchRequest(_FormModel):
    """Schema for opening a new assessment batch."""
    client: str = Field("", description="Client name (also the photo folder name)")
    assessor_name: str = Field("", alias="assessorName", description="Assessor's name")


class SelectionIn(_FormModel):
    """One condition-code choice on an item."""
    code: str = ""
    extent: Optional[Scalar] = ""
    location: str = ""
    localized: bool = False
    note: str = ""


class ItemPayload(_FormModel):
    """Schema for saving one assessed item with its selections."""
    batch_id: str = Field("", alias="batchId")
    peril: str = ""
    impact: str = ""
    type: str = ""
    title: str = ""
    artist: str = ""
    material: str = ""
    date: str = ""
    dimensions: str = ""
    features: str = ""
    historic_yes: bool = Field(False, alias="historicYes")
    historic_code: str = Field("", alias="historicCode")
    historic_notes: str = Field("", alias="historicNotes")
    treatment_time_minutes: Optional[Scalar] = Field("", alias="TreatmentTimeMinutes")
    treatment_time_unit: str = Field("", alias="TreatmentTimeUnit")
    treatment_time: Optional[Scalar] = Field("", alias="TreatmentTime")
    incident_notes: str = Field("", alias="incidentNotes")
    other_notes: str = Field("", alias="otherNotes")
    selections: List[SelectionIn] = Field(default_factory=list)


class PhotoIn(_FormModel):
    data_url: Optional[str] = Field("", alias="dataUrl", description="data:image/<subtype>;base64,<payload>")

    @field_validator("data_url", mode="before")
    @classmethod
    def _text_or_empty(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""


class SavePhotosRequest(_FormModel):
    # Entries are filtered one by one when saved; a malformed entry must not fail the request
    photos: List[Any] = Field(default_factory=list)
