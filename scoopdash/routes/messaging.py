"""
Customer <-> employee messaging

A conversation links a customer and the employee assigned to one of their
services. Only the two participants can read or post.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..auth import require_role
from ..database import get_db
from ..models import Conversation, Message, Service, User
from ..services.notification_service import create_notification

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["Messaging"])

get_participant = require_role("customer", "employee")


class ConversationCreate(BaseModel):
    service_id: int


class MessageCreate(BaseModel):
    body: str = Field(..., min_length=1, max_length=2000)


class MessageResponse(BaseModel):
    id: int
    conversation_id: int
    sender_user_id: int
    body: str
    created_at: Optional[datetime] = None
    read_at: Optional[datetime] = None


class ConversationResponse(BaseModel):
    id: int
    service_id: Optional[int] = None
    customer_id: int
    employee_id: int
    other_party_name: Optional[str] = None
    status: str
    last_message_at: Optional[datetime] = None
    last_message: Optional[str] = None
    unread_count: int = 0


def _other_party(conversation: Conversation, user: User) -> Optional[User]:
    if user.role == "customer":
        return conversation.employee.user
    return conversation.customer.user


def _is_participant(conversation: Conversation, user: User) -> bool:
    if user.role == "customer" and user.customer:
        return conversation.customer_id == user.customer.id
    if user.role == "employee" and user.employee:
        return conversation.employee_id == user.employee.id
    return False


def _conversation_response(db: Session, conversation: Conversation, user: User) -> ConversationResponse:
    last = conversation.messages[-1] if conversation.messages else None
    unread = (
        db.query(Message)
        .filter(
            Message.conversation_id == conversation.id,
            Message.sender_user_id != user.id,
            Message.read_at.is_(None),
        )
        .count()
    )
    other = _other_party(conversation, user)
    return ConversationResponse(
        id=conversation.id,
        service_id=conversation.service_id,
        customer_id=conversation.customer_id,
        employee_id=conversation.employee_id,
        other_party_name=other.full_name if other else None,
        status=conversation.status,
        last_message_at=conversation.last_message_at,
        last_message=last.body if last else None,
        unread_count=unread,
    )


def _get_conversation(db: Session, conversation_id: int, user: User) -> Conversation:
    conversation = db.query(Conversation).filter(Conversation.id == conversation_id).first()
    if not conversation:
        raise HTTPException(status_code=404, detail="Conversation not found")
    if not _is_participant(conversation, user):
        raise HTTPException(status_code=403, detail="You are not part of this conversation")
    return conversation


def _message_response(message: Message) -> MessageResponse:
    return MessageResponse(
        id=message.id,
        conversation_id=message.conversation_id,
        sender_user_id=message.sender_user_id,
        body=message.body,
        created_at=message.created_at,
        read_at=message.read_at,
    )


@router.get("/conversations", response_model=list[ConversationResponse])
async def list_conversations(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user: User = Depends(get_participant),
    db: Session = Depends(get_db),
):
    query = db.query(Conversation).filter(Conversation.status == "active")
    if user.role == "customer":
        if not user.customer:
            raise HTTPException(status_code=404, detail="Customer record not found")
        query = query.filter(Conversation.customer_id == user.customer.id)
    else:
        if not user.employee:
            raise HTTPException(status_code=404, detail="Employee record not found")
        query = query.filter(Conversation.employee_id == user.employee.id)

    conversations = (
        query.order_by(
            Conversation.last_message_at.is_(None),
            Conversation.last_message_at.desc(),
            Conversation.id.desc(),
        )
        .offset(offset)
        .limit(limit)
        .all()
    )
    return [_conversation_response(db, c, user) for c in conversations]


@router.post("/conversations", response_model=ConversationResponse, status_code=201)
async def start_conversation(
    data: ConversationCreate,
    user: User = Depends(get_participant),
    db: Session = Depends(get_db),
):
    """Open (or return the existing) conversation about a service"""
    service = db.query(Service).filter(Service.id == data.service_id).first()
    if not service:
        raise HTTPException(status_code=404, detail="Service not found")

    is_customer = user.role == "customer" and user.customer and service.customer_id == user.customer.id
    is_employee = user.role == "employee" and user.employee and service.employee_id == user.employee.id
    if not (is_customer or is_employee):
        raise HTTPException(status_code=403, detail="You are not part of this service")
    if not service.employee_id:
        raise HTTPException(status_code=400, detail="No scooper is assigned to this service yet")

    conversation = (
        db.query(Conversation)
        .filter(
            Conversation.service_id == service.id,
            Conversation.customer_id == service.customer_id,
            Conversation.employee_id == service.employee_id,
        )
        .first()
    )
    if not conversation:
        conversation = Conversation(
            customer_id=service.customer_id,
            employee_id=service.employee_id,
            service_id=service.id,
            status="active",
        )
        db.add(conversation)
        db.commit()
        db.refresh(conversation)
        logger.info(f"💬 Conversation {conversation.id} opened for service {service.id}")

    return _conversation_response(db, conversation, user)


@router.get("/conversations/{conversation_id}/messages", response_model=list[MessageResponse])
async def get_messages(
    conversation_id: int,
    user: User = Depends(get_participant),
    db: Session = Depends(get_db),
):
    """Messages oldest first; marks the other party's messages as read"""
    conversation = _get_conversation(db, conversation_id, user)

    now = datetime.utcnow()
    for message in conversation.messages:
        if message.sender_user_id != user.id and message.read_at is None:
            message.read_at = now
    db.commit()

    return [_message_response(m) for m in conversation.messages]


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=MessageResponse,
    status_code=201,
)
async def send_message(
    conversation_id: int,
    data: MessageCreate,
    user: User = Depends(get_participant),
    db: Session = Depends(get_db),
):
    conversation = _get_conversation(db, conversation_id, user)
    body = data.body.strip()
    if not body:
        raise HTTPException(status_code=400, detail="Message cannot be empty")

    message = Message(conversation_id=conversation.id, sender_user_id=user.id, body=body)
    db.add(message)
    conversation.last_message_at = datetime.utcnow()

    other = _other_party(conversation, user)
    if other:
        create_notification(
            db,
            other.id,
            "new_message",
            f"New message from {user.full_name or 'your scooper'}",
            body[:140],
            {"conversation_id": conversation.id},
        )
    db.commit()
    db.refresh(message)
    return _message_response(message)
