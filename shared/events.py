"""
Run lifecycle events for RepoPulse.

This module provides:
- Typed event definitions for analysis runs
- Event metadata for tracing runs across publishers and subscribers
- Event serialization and validation
- A factory that builds run events from reports
"""

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Any, Optional, List

from pydantic import BaseModel, Field, field_validator, field_serializer

from shared.models import AnalysisReport, RecentCommitsReport, RunFailure, RunStatus


class EventType(str, Enum):
    """Event types published by the commit insights service."""

    RUN_STARTED = "run.started"
    RUN_COMPLETED = "run.completed"
    RUN_SUPERSEDED = "run.superseded"
    RUN_RATE_LIMITED = "run.rate_limited"
    REPOSITORY_FAILED = "repository.failed"


class EventSource(str, Enum):
    """Event source systems."""

    COMMIT_INSIGHTS = "commit_insights"
    CLI = "cli"
    SYSTEM = "system"


@dataclass
class EventMetadata:
    """Event metadata for tracking and auditing."""

    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    correlation_id: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    source: EventSource = EventSource.SYSTEM
    version: str = "1.0.0"

    def to_dict(self) -> Dict[str, Any]:
        """Convert metadata to dictionary."""
        return {
            'event_id': self.event_id,
            'correlation_id': self.correlation_id,
            'timestamp': self.timestamp.isoformat(),
            'source': self.source.value,
            'version': self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EventMetadata':
        return cls(
            event_id=data['event_id'],
            correlation_id=data.get('correlation_id'),
            timestamp=datetime.fromisoformat(data['timestamp']),
            source=EventSource(data.get('source', EventSource.SYSTEM.value)),
            version=data.get('version', "1.0.0"),
        )


class RunEventData(BaseModel):
    """Payload describing one analysis or recent-commits run."""

    repository: Optional[str] = Field(None, description="Repository of the run, if any")
    generation: int = Field(default=0, ge=0, description="Run generation")
    status: Optional[RunStatus] = Field(None, description="Run status once finished")
    complete: bool = Field(default=True, description="Whether results are complete")
    truncated: bool = Field(default=False, description="Whether the page ceiling was hit")
    commit_count: int = Field(default=0, ge=0, description="Commits aggregated")
    failures: List[RunFailure] = Field(default_factory=list, description="Isolated failures")


class BaseEvent(BaseModel):
    """Base event class with common functionality."""

    metadata: EventMetadata = Field(default_factory=EventMetadata)
    event_type: EventType
    data: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"arbitrary_types_allowed": True}

    @field_validator('metadata', mode='before')
    @classmethod
    def parse_metadata(cls, v):
        if isinstance(v, dict):
            return EventMetadata.from_dict(v)
        return v

    @field_serializer('metadata')
    def serialize_metadata(self, metadata: EventMetadata):
        return metadata.to_dict()

    def to_json(self) -> str:
        """Serialize event to JSON."""
        return self.model_dump_json()

    @classmethod
    def from_json(cls, json_str: str) -> 'BaseEvent':
        """Deserialize event from JSON."""
        return cls(**json.loads(json_str))

    def get_correlation_id(self) -> str:
        """Get correlation ID for event tracing."""
        return self.metadata.correlation_id or self.metadata.event_id


class EventFactory:
    """Factory for creating events with proper metadata."""

    @staticmethod
    def create_event(
        event_type: EventType,
        data: Dict[str, Any],
        source: EventSource = EventSource.COMMIT_INSIGHTS,
        correlation_id: Optional[str] = None,
    ) -> BaseEvent:
        """Create an event with proper metadata."""
        metadata = EventMetadata(correlation_id=correlation_id, source=source)
        return BaseEvent(metadata=metadata, event_type=event_type, data=data)

    @staticmethod
    def run_started(repository: str, generation: int, **kwargs) -> BaseEvent:
        data = RunEventData(repository=repository, generation=generation)
        return EventFactory.create_event(
            EventType.RUN_STARTED, data.model_dump(mode="json"), **kwargs
        )

    @staticmethod
    def run_superseded(repository: str, generation: int, **kwargs) -> BaseEvent:
        data = RunEventData(repository=repository, generation=generation, complete=False)
        return EventFactory.create_event(
            EventType.RUN_SUPERSEDED, data.model_dump(mode="json"), **kwargs
        )

    @staticmethod
    def from_report(
        report: AnalysisReport, commit_count: Optional[int] = None, **kwargs
    ) -> BaseEvent:
        """Completion event for an analysis report.

        ``commit_count`` is the number of repository-wide commits the run
        aggregated; without it only the contributor lists can be counted.
        """
        if commit_count is None:
            commit_count = len(
                {commit.sha for commits in report.commit_lists.values() for commit in commits}
            )
        data = RunEventData(
            repository=report.repository,
            generation=report.generation,
            status=report.status,
            complete=report.complete,
            truncated=report.truncated,
            commit_count=commit_count,
            failures=report.failures,
        )
        event_type = (
            EventType.RUN_RATE_LIMITED
            if report.status == RunStatus.RATE_LIMIT_EXCEEDED
            else EventType.RUN_COMPLETED
        )
        return EventFactory.create_event(event_type, data.model_dump(mode="json"), **kwargs)

    @staticmethod
    def from_recent_commits(report: RecentCommitsReport, **kwargs) -> List[BaseEvent]:
        """One event per failed repository of a recent-commits run."""
        return [
            EventFactory.create_event(
                EventType.REPOSITORY_FAILED,
                RunEventData(
                    repository=failure.repository,
                    status=report.status,
                    complete=False,
                    failures=[failure],
                ).model_dump(mode="json"),
                **kwargs,
            )
            for failure in report.failures
        ]


class EventSerializer:
    """Helper for event serialization and deserialization."""

    @staticmethod
    def serialize(event: BaseEvent) -> str:
        """Serialize an event to JSON string."""
        return event.to_json()

    @staticmethod
    def deserialize(json_str: str) -> BaseEvent:
        """Deserialize an event from JSON string."""
        return BaseEvent.from_json(json_str)


class EventValidator:
    """Validator for events."""

    @staticmethod
    def validate_event(event: BaseEvent) -> List[str]:
        """Validate an event and return list of errors."""
        errors = []

        if not event.metadata.event_id:
            errors.append("Event ID is required")

        if not event.metadata.timestamp:
            errors.append("Event timestamp is required")

        if not event.event_type:
            errors.append("Event type is required")

        if event.metadata.correlation_id and not EventValidator._is_valid_uuid(
            event.metadata.correlation_id
        ):
            errors.append("Invalid correlation ID format")

        if not event.data.get("repository"):
            errors.append("Run events must name a repository")

        return errors

    @staticmethod
    def _is_valid_uuid(uuid_str: str) -> bool:
        """Check if a string is a valid UUID."""
        try:
            uuid.UUID(uuid_str)
            return True
        except ValueError:
            return False

    @staticmethod
    def is_valid(event: BaseEvent) -> bool:
        """Check if an event is valid."""
        return len(EventValidator.validate_event(event)) == 0


__all__ = [
    'EventType', 'EventSource', 'EventMetadata', 'RunEventData', 'BaseEvent',
    'EventFactory', 'EventSerializer', 'EventValidator'
]
