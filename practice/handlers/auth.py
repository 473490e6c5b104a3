"""
Идентификация пользователя

Аутентификация выполняется шлюзом перед сервисом; сюда приходят
уже проверенные заголовки X-User-Id и X-User-Role.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException

from practice.roles import Identity, Role


async def get_identity(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> Identity:
    """Проверенный пользователь из заголовков шлюза"""
    if not x_user_id or not x_user_role:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        return Identity(user_id=int(x_user_id), role=Role(x_user_role))
    except ValueError:
        raise HTTPException(status_code=401, detail="Not authenticated")


async def get_student(identity: Identity = Depends(get_identity)) -> Identity:
    """Только для учеников"""
    if not identity.is_student:
        raise HTTPException(status_code=401, detail="Not authorized")
    return identity
