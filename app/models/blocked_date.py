from extensions import db
from datetime import datetime


class BlockedDate(db.Model):
    """Window of days when a property cannot be booked (both ends inclusive)"""
    __tablename__ = 'blocked_dates'
    __table_args__ = (
        db.UniqueConstraint('property_id', 'start_date', 'end_date',
                            name='uq_blocked_dates_property_window'),
        db.CheckConstraint('end_date >= start_date', name='ck_blocked_dates_ordered'),
    )

    PAST_DATES_REASON = 'Past dates blocked - cannot book in the past'

    id = db.Column(db.Integer, primary_key=True)
    property_id = db.Column(db.Integer, db.ForeignKey('properties.id'), nullable=False, index=True)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=False)
    reason = db.Column(db.String(200))
    blocked_by_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    blocked_by = db.relationship('User', foreign_keys=[blocked_by_id])

    def to_dict(self):
        return {
            'id': self.id,
            'property_id': self.property_id,
            'start_date': self.start_date.isoformat(),
            'end_date': self.end_date.isoformat(),
            'reason': self.reason,
            'blocked_by': self.blocked_by.to_dict() if self.blocked_by else None,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<BlockedDate {self.property_id} {self.start_date}..{self.end_date}>'
