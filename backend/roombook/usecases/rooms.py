from typing import List

from ..domain.repositories import RoomRepository
from ..models import Room


async def list_active_rooms(room_repo: RoomRepository) -> List[Room]:
    """Active rooms ordered by name; the repository applies both."""
    return await room_repo.list_rooms(active_only=True)
