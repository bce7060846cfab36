"""Core domain entities, session state and exceptions."""

from .entities import (
    AlignmentConfig, AnalysisResult, Box2D, Discrepancy, IssueCategory,
    OracleCandidate, OracleRequest, RasterImage, Severity
)
from .exceptions import (
    ApplicationError, CandidateUnavailable, ConfigError, DecodeError,
    OracleError, OracleTimeoutError, TransformError, ValidationError
)
from .session import AnalysisTicket, ComparisonSession

__all__ = [
    "AlignmentConfig", "AnalysisResult", "Box2D", "Discrepancy", "IssueCategory",
    "OracleCandidate", "OracleRequest", "RasterImage", "Severity",
    "ApplicationError", "CandidateUnavailable", "ConfigError", "DecodeError",
    "OracleError", "OracleTimeoutError", "TransformError", "ValidationError",
    "AnalysisTicket", "ComparisonSession",
]
