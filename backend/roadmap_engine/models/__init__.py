"""Database models."""

from roadmap_engine.models.audit import AuditAction, AuditLog
from roadmap_engine.models.project import (
    ConsultantProfile,
    Interview,
    Project,
    ProjectStatus,
    SelfAssessment,
)
from roadmap_engine.models.roadmap import RoadmapStatus, RoadmapVersion
from roadmap_engine.models.usage import UsageMetric, UserQuota
from roadmap_engine.models.user import User, UserRole

__all__ = [
    "User",
    "UserRole",
    "Project",
    "ProjectStatus",
    "SelfAssessment",
    "Interview",
    "ConsultantProfile",
    "RoadmapVersion",
    "RoadmapStatus",
    "UserQuota",
    "UsageMetric",
    "AuditLog",
    "AuditAction",
]
