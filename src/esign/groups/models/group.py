from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from enum import Enum as PyEnum
from database import Base


class GroupRole(PyEnum):
    ADMIN_GROUP = "admin_group"
    MEMBER = "member"


class InvitationStatus(PyEnum):
    ACTIVE = "active"
    USED = "used"


class Group(Base):
    __tablename__ = 'groups'

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # The owner; its tier drives the group's quotas
    admin_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    admin = relationship("User")

    members = relationship("GroupMember", back_populates="group", cascade="all, delete-orphan")
    documents = relationship("Document", back_populates="group")
    invitations = relationship("GroupInvitation", back_populates="group", cascade="all, delete-orphan")


class GroupMember(Base):
    __tablename__ = 'group_members'
    __table_args__ = (UniqueConstraint('group_id', 'user_id', name='uq_group_member'),)

    id = Column(Integer, primary_key=True)
    role = Column(Enum(GroupRole), nullable=False, default=GroupRole.MEMBER)
    joined_at = Column(DateTime, default=datetime.utcnow)

    group_id = Column(Integer, ForeignKey('groups.id'), nullable=False)
    group = relationship("Group", back_populates="members")

    user_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    user = relationship("User")


class GroupInvitation(Base):
    __tablename__ = 'group_invitations'

    id = Column(Integer, primary_key=True)
    token = Column(String(64), unique=True, nullable=False)
    role = Column(Enum(GroupRole), nullable=False, default=GroupRole.MEMBER)
    status = Column(Enum(InvitationStatus), nullable=False, default=InvitationStatus.ACTIVE)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    group_id = Column(Integer, ForeignKey('groups.id'), nullable=False)
    group = relationship("Group", back_populates="invitations")

    created_by = Column(Integer, ForeignKey('users.id'), nullable=False)
