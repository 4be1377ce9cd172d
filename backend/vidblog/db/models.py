"""SQLAlchemy 2.0 ORM models for vidblog."""

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


class WorkflowRecord(Base):
    """One pipeline run. Step outputs and config are stored as JSON."""
    __tablename__ = "workflows"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    video_source: Mapped[str] = mapped_column(Text)
    video_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    video_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    video_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    status: Mapped[str] = mapped_column(String(20), default="created", index=True)
    current_step: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    step_statuses: Mapped[dict] = mapped_column(JSON)

    step1_output: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    step2_output: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    step3_output: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    step4_output: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    step5_output: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    step6_output: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    step7_output: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    config: Mapped[dict] = mapped_column(JSON, default=dict)

    enhance_prompt_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    blog_prompt_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    social_prompt_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Optimistic concurrency counter, bumped on every save
    version: Mapped[int] = mapped_column(Integer, default=0)


class WorkflowLogRecord(Base):
    """Append-only audit trail of step transitions."""
    __tablename__ = "workflow_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    workflow_id: Mapped[str] = mapped_column(
        ForeignKey("workflows.id", ondelete="CASCADE"), index=True
    )
    step: Mapped[int] = mapped_column(Integer)
    status: Mapped[str] = mapped_column(String(20))
    message: Mapped[str] = mapped_column(Text)
    # "metadata" is reserved on declarative classes
    log_metadata: Mapped[Optional[dict]] = mapped_column("metadata", JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class PromptRecord(Base):
    """Editable LLM prompt for the enhance, blog and social steps."""
    __tablename__ = "prompts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(200))
    type: Mapped[str] = mapped_column(String(20), index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    system_prompt: Mapped[str] = mapped_column(Text)
    user_prompt_template: Mapped[str] = mapped_column(Text)
    model: Mapped[str] = mapped_column(String(100))
    temperature: Mapped[float] = mapped_column(Float, default=0.7)
    max_tokens: Mapped[int] = mapped_column(Integer, default=4096)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )
