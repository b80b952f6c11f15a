import enum

from sqlalchemy import CheckConstraint, Column, Enum, ForeignKey, Index, Integer, Text, text
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()
metadata = Base.metadata


class ApprovalState(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class BookingStatus(str, enum.Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


class UserRole(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"


class LedgerKind(str, enum.Enum):
    DEBIT = "debit"
    REFUND = "refund"
    GRANT = "grant"
    REVOKE = "revoke"


class Users(Base):
    __tablename__ = 'users'
    __table_args__ = (
        CheckConstraint('sessions_granted >= 0', name='ck_users_granted_non_negative'),
        CheckConstraint('remaining_credits >= 0', name='ck_users_remaining_non_negative'),
        CheckConstraint('consumed_credits >= 0', name='ck_users_consumed_non_negative'),
    )

    id = Column(Text, primary_key=True)  # opaque id from the identity provider
    name = Column(Text)
    email = Column(Text)
    role = Column(Enum('user', 'admin', name='user_role'), nullable=False, server_default=text("'user'"))
    approval_state = Column(
        Enum('pending', 'approved', 'rejected', name='approval_state'),
        nullable=False,
        server_default=text("'pending'"),
    )
    sessions_granted = Column(Integer, nullable=False, server_default=text('0'))
    remaining_credits = Column(Integer, nullable=False, server_default=text('0'))
    consumed_credits = Column(Integer, nullable=False, server_default=text('0'))
    label_id = Column(Text)
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))
    updated_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))

    bookings = relationship(
        'Bookings', back_populates='user', foreign_keys='Bookings.user_id', passive_deletes=True
    )
    ledger_transactions = relationship(
        'LedgerTransactions',
        back_populates='user',
        foreign_keys='LedgerTransactions.user_id',
        passive_deletes=True,
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


class Bookings(Base):
    __tablename__ = 'bookings'
    __table_args__ = (
        # Slot exclusivity lives in storage: one confirmed booking per (date, slot)
        Index(
            'uq_bookings_confirmed_slot',
            'date',
            'slot',
            unique=True,
            sqlite_where=text("status = 'confirmed'"),
            postgresql_where=text("status = 'confirmed'"),
        ),
        Index('ix_bookings_user_id', 'user_id'),
        Index('ix_bookings_recurring_group_id', 'recurring_group_id'),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(ForeignKey('users.id', ondelete='RESTRICT'), nullable=False)
    date = Column(Text, nullable=False)  # YYYY-MM-DD
    slot = Column(Text, nullable=False)
    status = Column(
        Enum('confirmed', 'cancelled', name='booking_status'),
        nullable=False,
        server_default=text("'confirmed'"),
    )
    recurring_group_id = Column(Text)
    series_index = Column(Integer)
    series_length = Column(Integer)
    notes = Column(Text)
    created_by = Column(ForeignKey('users.id', ondelete='SET NULL'))
    created_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))
    updated_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))

    user = relationship('Users', back_populates='bookings', foreign_keys=[user_id])
    ledger_transactions = relationship('LedgerTransactions', back_populates='booking', passive_deletes=True)


class BlackoutPeriods(Base):
    __tablename__ = 'blackout_periods'

    id = Column(Integer, primary_key=True)
    start_date = Column(Text, nullable=False)
    end_date = Column(Text, nullable=False)
    reason = Column(Text)
    created_by = Column(ForeignKey('users.id', ondelete='SET NULL'))
    created_at = Column(Text, server_default=text('CURRENT_TIMESTAMP'))


class LedgerTransactions(Base):
    __tablename__ = 'ledger_transactions'

    id = Column(Integer, primary_key=True)
    user_id = Column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    kind = Column(Enum('debit', 'refund', 'grant', 'revoke', name='ledger_kind'), nullable=False)
    amount = Column(Integer, nullable=False)  # signed change of remaining_credits
    booking_id = Column(ForeignKey('bookings.id', ondelete='SET NULL'))
    recurring_group_id = Column(Text)
    description = Column(Text)
    created_by = Column(ForeignKey('users.id', ondelete='SET NULL'))
    created_at = Column(Text, nullable=False, server_default=text('CURRENT_TIMESTAMP'))

    user = relationship('Users', back_populates='ledger_transactions', foreign_keys=[user_id])
    booking = relationship('Bookings', back_populates='ledger_transactions')
