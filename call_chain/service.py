import logging
import os
from typing import Optional

from call_chain.chain_builder import CallChainBuilder
from call_chain.config import CallChainConfig, DEFAULT_CONFIG
from call_chain.exceptions import CallChainError, ConfigurationError, ValidationError
from call_chain.metrics import get_metrics
from call_chain.models import AnalysisRequest, AnalysisResponse
from call_chain.project import FileSystemProject, ProjectSource

# Configure Logger
logger = logging.getLogger(__name__)


class CallChainService:
    """
    High-level service for hosts (editor integrations, the CLI).
    Validates requests, runs the builder and turns every outcome into an
    ``AnalysisResponse``, so callers never see exceptions from the core.
    """

    def __init__(self, project: ProjectSource, config: Optional[CallChainConfig] = None):
        self.config = config or DEFAULT_CONFIG
        warnings = self.config.validate()
        # "must" warnings describe values the builder cannot run with
        problems = [w for w in warnings if "must" in w]
        if problems:
            raise ConfigurationError(problems)
        for warning in warnings:
            logger.warning(f"Config: {warning}")

        self.project = project
        self._builder = CallChainBuilder(project, config=self.config)
        self._metrics = get_metrics()

    @classmethod
    def for_directory(cls, project_root: str,
                      config: Optional[CallChainConfig] = None) -> "CallChainService":
        """Service over a project directory on disk."""
        if not project_root or not os.path.isdir(project_root):
            raise ValidationError("project_root", f"not a directory: {project_root}")
        config = config or DEFAULT_CONFIG
        return cls(FileSystemProject.from_config(project_root, config), config)

    @property
    def builder(self) -> CallChainBuilder:
        return self._builder

    def analyze(self, request: AnalysisRequest) -> AnalysisResponse:
        """
        Main entry point: build the call chain at the request's cursor.
        """
        errors = request.validate()
        if errors:
            message = "; ".join(errors)
            logger.warning(f"Input validation failed: {message}")
            return AnalysisResponse.error_response(f"Error: {message}", error_type="validation")

        try:
            logger.info(f"Analyzing {request.file_path}:{request.line + 1} ({request.direction})")
            result = self._builder.analyze_call_chain(
                request.file_path,
                request.line,
                text=request.text,
                direction=request.resolved_direction,
            )
        except CallChainError as e:
            logger.warning(f"Call chain analysis failed: {e}")
            self._metrics.record_error(type(e).__name__, str(e))
            return AnalysisResponse.error_response(str(e), error_type=type(e).__name__)

        if result is None:
            return AnalysisResponse.error_response(
                f"No method found at {request.file_path}:{request.line + 1}",
                error_type="not_found",
            )

        logger.info(f"Analysis complete: depth={result.depth}, methods={result.total_methods}")
        return AnalysisResponse.success(result)
