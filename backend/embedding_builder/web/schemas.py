from pydantic import BaseModel, Field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..storage.base import MAX_TOP_K


class EmbedRequest(BaseModel):
    repo_url: str = Field(min_length=1)
    revision: Optional[str] = None
    tenant_id: str = Field(min_length=1)


class EmbedResponse(BaseModel):
    success: bool
    job_id: str
    message: str


class JobResponse(BaseModel):
    job_id: str
    status: str
    progress: int
    repo_url: str
    revision: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]
    error: Optional[str]

    class Config:
        from_attributes = True


class JobStatusResponse(BaseModel):
    success: bool = True
    job: JobResponse


class SearchRequest(BaseModel):
    query: str = Field(min_length=1)
    top_k: int = Field(10, ge=1, le=MAX_TOP_K)
    include_metadata: bool = True
    include_values: bool = False
    filter: Optional[Dict[str, Any]] = None


class SearchMatchResponse(BaseModel):
    id: str
    score: float
    metadata: Optional[Dict[str, Any]] = None
    values: Optional[List[float]] = None


class SearchResponse(BaseModel):
    success: bool = True
    namespace: str
    matches: List[SearchMatchResponse]
