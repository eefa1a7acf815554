"""Request and response models for the paper endpoints."""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, List, Optional, Union

from pydantic import BaseModel, Field


class PaperSummary(BaseModel):
    paper_id: int
    title: str
    abstract: Optional[str] = None
    publication_date: Optional[Union[datetime, date, str]] = None
    path: Optional[str] = None
    field_id: Optional[int] = None
    field_name: Optional[str] = None
    author_count: int = 0
    download_count: int = 0
    average_rating: float = 0.0


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class PaperListData(BaseModel):
    papers: List[PaperSummary] = Field(default_factory=list)
    pagination: Pagination
    isRecommendation: bool = False


class SearchResultData(BaseModel):
    papers: List[PaperSummary] = Field(default_factory=list)
    pagination: Pagination


class PaperAuthor(BaseModel):
    author_id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    country: Optional[str] = None


class PaperReview(BaseModel):
    review_id: int
    rating: int
    review_date: Optional[Union[datetime, str]] = None
    researcher_id: int
    user_name: Optional[str] = None


class PaperDetail(BaseModel):
    paper_id: int
    title: str
    abstract: Optional[str] = None
    publication_date: Optional[Union[datetime, date, str]] = None
    path: Optional[str] = None
    field_id: Optional[int] = None
    field_name: Optional[str] = None
    download_count: int = 0
    average_rating: float = 0.0
    review_count: int = 0
    authors: List[PaperAuthor] = Field(default_factory=list)
    keywords: str = ""
    reviews: List[PaperReview] = Field(default_factory=list)


class TopRatedPaper(BaseModel):
    paper_id: int
    title: str
    abstract: Optional[str] = None
    publication_date: Optional[Union[datetime, date, str]] = None
    path: Optional[str] = None
    field_id: int
    field_name: str
    average_rating: float = 0.0
    download_count: int = 0
    review_count: int = 0


class TopRatedData(BaseModel):
    papers: List[TopRatedPaper] = Field(default_factory=list)


class DownloadData(BaseModel):
    path: Optional[str] = None


class ReviewRequest(BaseModel):
    rating: Optional[int] = None


class Envelope(BaseModel):
    success: bool
    message: str
    data: Optional[Any] = None


__all__ = [
    "PaperSummary",
    "Pagination",
    "PaperListData",
    "SearchResultData",
    "PaperAuthor",
    "PaperReview",
    "PaperDetail",
    "TopRatedPaper",
    "TopRatedData",
    "DownloadData",
    "ReviewRequest",
    "Envelope",
]
