# src/follow/schemas.py
from pydantic import BaseModel
from typing import List

class FollowStatus(BaseModel):
    tipster_id: int
    is_following: bool
    follower_count: int

class FollowedTipsters(BaseModel):
    tipster_ids: List[int]
