"""Pydantic schemas for grammar analysis requests and responses."""

from pydantic import BaseModel, ConfigDict, Field


class AnalysisRequest(BaseModel):
    """Validated analysis input.

    Only produced by the request validator; immutable afterwards.
    """

    model_config = ConfigDict(frozen=True)

    text: str = Field(
        ...,
        description="Text to check, passed to the upstream unchanged.",
    )
    max_length: int = Field(
        ...,
        ge=1,
        description="Length cap the text was validated against.",
    )


class AnalysisResult(BaseModel):
    """The only successful output of the analysis route."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    error_count: int = Field(
        ...,
        ge=0,
        alias="errorCount",
        description="Number of grammatical, spelling and punctuation errors found.",
    )


class AnalyzeBody(BaseModel):
    """Documented request body of the analysis route (OpenAPI only)."""

    text: str = Field(..., max_length=4000, examples=["Он пошел в магазин и купил хлеб."])


class ErrorResponse(BaseModel):
    """Error body shared by every non-2xx JSON response."""

    error: str = Field(..., description="Short human-readable message.")
