"""
TeamMember model: roster managed by a press manager.

A manager (a profile) keeps a list of people they accredit on every
event, so a single submission can register the whole team.
"""

from sqlalchemy import Column, String, Text, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from accredia.extensions import db
from accredia.models.base import BaseModel


class TeamMember(BaseModel, db.Model):
    __tablename__ = 'team_members'

    manager_id = Column(Uuid(as_uuid=True), ForeignKey('profiles.id', ondelete='CASCADE'), nullable=False)
    member_profile_id = Column(Uuid(as_uuid=True), ForeignKey('profiles.id', ondelete='CASCADE'),
                               nullable=False)
    alias = Column(String(200), nullable=True)
    notas = Column(Text, nullable=True)

    member_profile = relationship('Profile', foreign_keys=[member_profile_id])

    __table_args__ = (
        UniqueConstraint('manager_id', 'member_profile_id', name='uq_team_members_manager_member'),
    )
