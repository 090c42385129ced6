"""Pydantic request bodies accepted by the REST API.

Required fields are declared optional here so the repositories can report
missing values with the same 400 messages they use for invalid ones.
"""

from typing import Optional

from pydantic import BaseModel


class EntryCreate(BaseModel):
    """Payload for creating a daily entry."""
    date: Optional[str] = None
    weight: Optional[float] = None
    calories: Optional[float] = None


class EntryUpdate(BaseModel):
    """Payload for updating the measurements of a daily entry."""
    weight: Optional[float] = None
    calories: Optional[float] = None


class ExerciseCreate(BaseModel):
    """Payload for attaching an exercise to a daily entry."""
    entry_id: Optional[int] = None
    type: Optional[str] = None
    details: Optional[str] = ""
    date: Optional[str] = None


class ExerciseUpdate(BaseModel):
    type: Optional[str] = None
    details: Optional[str] = ""
