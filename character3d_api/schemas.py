from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

GenerationMode = Literal["generate", "search"]
ResultType = Literal["single_image", "gallery", "text", "failure"]


class GenerationRequest(BaseModel):
    image: str | None = None
    prompt: str | None = None
    mode: GenerationMode = "generate"


class GalleryImageOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str
    title: str
    source_url: str = Field(alias="sourceUrl")


class GenerationResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    result_type: ResultType = Field(alias="resultType")
    image_url: str | None = Field(default=None, alias="imageUrl")
    images: list[GalleryImageOut] | None = None
    text_result: str | None = Field(default=None, alias="textResult")
    character_analysis: str | None = Field(default=None, alias="characterAnalysis")
    search_query: str | None = Field(default=None, alias="searchQuery")
    error: str | None = None
    details: Any = None


class HealthResponse(BaseModel):
    status: str = "OK"
    timestamp: str
