from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List, Optional
from datetime import datetime

class ReviewCreate(BaseModel):
    rating: int = Field(ge=1, le=5)
    title: Optional[str] = None
    comment: Optional[str] = None

# Partial update; omitted fields keep their values
class ReviewUpdate(BaseModel):
    rating: Optional[int] = Field(default=None, ge=1, le=5)
    title: Optional[str] = None
    comment: Optional[str] = None

class ReviewOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    user_id: int
    rating: int
    title: Optional[str] = None
    comment: Optional[str] = None
    is_verified: bool
    helpful_count: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class ReviewStats(BaseModel):
    total_reviews: int
    average_rating: float
    rating_distribution: Dict[str, int]

class ReviewPage(BaseModel):
    items: List[ReviewOut]
    total: int
    page: int
    page_size: int
    stats: ReviewStats

class HelpfulVote(BaseModel):
    helpful: bool = True

class HelpfulCount(BaseModel):
    helpful_count: int
