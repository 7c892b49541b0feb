"""GoldenScenario model for the prompt regression test runner.

A golden scenario pins a vertical/channel/feature configuration, a scripted
conversation and the assertions the model's reply must satisfy.
"""

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import Uuid

from app.db.base import Base

if TYPE_CHECKING:
    from app.models.regression_test import RegressionTestResult


class Channel(str, Enum):
    """Conversation channels with distinct brevity rules."""

    PHONE = "phone"
    SMS = "sms"
    CHAT = "chat"


class FeatureFlag(str, Enum):
    """Recognized config override keys."""

    APPOINTMENT_BOOKING = "appointmentBooking"
    EMERGENCY_ESCALATION = "emergencyEscalation"
    TRANSFER_TO_HUMAN = "transferToHuman"
    PRICE_QUOTING = "priceQuoting"


class GoldenScenario(Base):
    """Regression test case for AI receptionist prompt behavior.

    Authored externally; read-only to the regression runner.
    """

    __tablename__ = "golden_scenarios"

    # Primary key
    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Scenario metadata
    name: Mapped[str] = mapped_column(String(200), nullable=False, comment="Scenario name")
    vertical_id: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
        index=True,
        comment="Business vertical (null or 0 = generic)",
    )
    channel: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=Channel.PHONE.value,
        comment="Channel: phone, sms, chat",
    )

    # Test configuration
    config_overrides: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True, comment="Feature flag overrides (ON/OFF)"
    )
    conversation_script: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list, comment="Ordered role/content turns"
    )
    expected_assertions: Mapped[dict[str, Any]] = mapped_column(
        JSON, nullable=False, default=dict, comment="Structured assertion specification"
    )

    # Scenario flags
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, index=True, comment="Whether scenario is active"
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    # Relationships
    results: Mapped[list["RegressionTestResult"]] = relationship(
        "RegressionTestResult", back_populates="scenario"
    )

    def __repr__(self) -> str:
        return (
            f"<GoldenScenario(id={self.id}, name={self.name}, "
            f"vertical_id={self.vertical_id}, channel={self.channel})>"
        )
