"""
To-do routes.

Route prefix: /api/todos

Errors here use the ``{"error": ...}`` shape the frontend expects rather
than the auth envelope.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from database.models import Todo
from database.todo_store import TodoStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["todos"])


def get_todo_store(request: Request) -> TodoStore:
    return request.app.state.todo_store


class TodoCreate(BaseModel):
    title: Optional[str] = None


class TodoUpdate(BaseModel):
    title: Optional[str] = None
    completed: Optional[bool] = None


class TodoOut(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: int
    title: str
    completed: bool
    created_at: Optional[datetime] = None

    @classmethod
    def of(cls, todo: Todo) -> "TodoOut":
        return cls(
            id=todo.id,
            title=todo.title,
            completed=bool(todo.completed),
            created_at=todo.created_at,
        )


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.get("", response_model=List[TodoOut])
async def list_todos(store: TodoStore = Depends(get_todo_store)) -> List[TodoOut]:
    return [TodoOut.of(t) for t in await store.list()]


@router.post("", status_code=status.HTTP_201_CREATED, response_model=TodoOut)
async def create_todo(req: TodoCreate, store: TodoStore = Depends(get_todo_store)):
    title = (req.title or "").strip()
    if not title:
        return _error(status.HTTP_400_BAD_REQUEST, "Title is required")
    todo = await store.create(title)
    logger.debug("Created todo %d", todo.id)
    return TodoOut.of(todo)


@router.put("/{todo_id}", response_model=TodoOut)
async def update_todo(
    todo_id: int,
    req: TodoUpdate,
    store: TodoStore = Depends(get_todo_store),
):
    title = req.title.strip() if req.title is not None else None
    todo = await store.update(todo_id, title=title, completed=req.completed)
    if todo is None:
        return _error(status.HTTP_404_NOT_FOUND, "Todo not found")
    return TodoOut.of(todo)


@router.delete("/{todo_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_todo(todo_id: int, store: TodoStore = Depends(get_todo_store)):
    if not await store.delete(todo_id):
        return _error(status.HTTP_404_NOT_FOUND, "Todo not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
