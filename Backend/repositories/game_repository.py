from typing import Protocol, List, Any, Optional, Dict
from sqlmodel import Session


class GameRepository(Protocol):
    """Persistence-agnostic contract for storing games."""
    def init(self) -> None:
        ...

    def find_all(self, where: Any = None, session: Optional[Session] = None) -> List[Any]:
        ...

    def find_by_id(self, game_id: int, session: Optional[Session] = None) -> Optional[Any]:
        ...

    def create(self, fields: Dict[str, Any], session: Optional[Session] = None) -> Any:
        ...

    def update(self, game_id: int, fields: Dict[str, Any], session: Optional[Session] = None) -> Optional[Any]:
        ...

    def delete(self, game_id: int, session: Optional[Session] = None) -> bool:
        ...

    def bulk_insert(self, games: List[Dict[str, Any]], skip_duplicates: bool = True,
                    session: Optional[Session] = None) -> int:
        ...
