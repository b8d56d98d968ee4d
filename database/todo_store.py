"""
To-do storage.  Same split as the credential store: an in-memory list
for tests and demos, a SQLAlchemy table for real deployments.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database.models import Todo


class TodoStore(ABC):
    @abstractmethod
    async def list(self) -> List[Todo]:
        ...

    @abstractmethod
    async def create(self, title: str) -> Todo:
        ...

    @abstractmethod
    async def update(
        self,
        todo_id: int,
        *,
        title: Optional[str] = None,
        completed: Optional[bool] = None,
    ) -> Optional[Todo]:
        """Apply the given fields; ``None`` means the todo does not exist."""
        ...

    @abstractmethod
    async def delete(self, todo_id: int) -> bool:
        ...


class InMemoryTodoStore(TodoStore):
    def __init__(self) -> None:
        self._todos: List[Todo] = []
        self._next_id = 1

    def _find(self, todo_id: int) -> Optional[Todo]:
        return next((t for t in self._todos if t.id == todo_id), None)

    async def list(self) -> List[Todo]:
        return list(self._todos)

    async def create(self, title: str) -> Todo:
        todo = Todo(
            id=self._next_id,
            title=title,
            completed=False,
            created_at=datetime.now(timezone.utc),
        )
        self._next_id += 1
        self._todos.append(todo)
        return todo

    async def update(self, todo_id, *, title=None, completed=None):
        todo = self._find(todo_id)
        if todo is None:
            return None
        if title is not None:
            todo.title = title
        if completed is not None:
            todo.completed = completed
        return todo

    async def delete(self, todo_id: int) -> bool:
        todo = self._find(todo_id)
        if todo is None:
            return False
        self._todos.remove(todo)
        return True


class SqlTodoStore(TodoStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def list(self) -> List[Todo]:
        async with self._session_factory() as session:
            result = await session.execute(select(Todo).order_by(Todo.id))
            return list(result.scalars().all())

    async def create(self, title: str) -> Todo:
        async with self._session_factory() as session:
            todo = Todo(title=title, completed=False, created_at=datetime.now(timezone.utc))
            session.add(todo)
            await session.commit()
            return todo

    async def update(self, todo_id, *, title=None, completed=None):
        async with self._session_factory() as session:
            todo = await session.get(Todo, todo_id)
            if todo is None:
                return None
            if title is not None:
                todo.title = title
            if completed is not None:
                todo.completed = completed
            await session.commit()
            return todo

    async def delete(self, todo_id: int) -> bool:
        async with self._session_factory() as session:
            todo = await session.get(Todo, todo_id)
            if todo is None:
                return False
            await session.delete(todo)
            await session.commit()
            return True
