"""
call_chain - lexical call-chain analysis for Java-like sources.

Builds bounded trees of the callers (upward) or callees (downward) of the
method at a cursor position, without a compiler front end: brace nesting is
computed by a small lexical state machine and declarations / call sites are
matched with regular expressions.

Architecture:
    ┌─────────────────────────────────────────────────┐
    │                CallChainService                 │  ← Public API
    │  (validation, request/response, error mapping)  │
    ├─────────────────────────────────────────────────┤
    │               CallChainBuilder                  │  ← Traversal
    │  (build_up / build_down, TraversalContext)      │
    ├────────────────────────┬────────────────────────┤
    │  MethodLocator         │  CallSiteExtractor     │  ← Matching
    │  MethodRangeResolver   │  contains_method_call  │
    ├────────────────────────┴────────────────────────┤
    │              LexicalClassifier                  │  ← Lexing
    │  (per-line brace delta, carried ScanContext)    │
    └─────────────────────────────────────────────────┘

Supporting modules:
    config.py           - CallChainConfig dataclass
    exceptions.py       - Custom exception hierarchy
    models.py           - Method / call-site / call-chain models
    project.py          - Project file enumeration and reading
    graph_metrics.py    - Depth and node counts of a built tree
    report.py           - Markdown, rich tree, JSON and GraphML output
    metrics.py          - Observability and performance tracking
    utils.py            - Shared utilities (line splitting, paths)
    cli.py              - call-chain command
"""

# --- Core Public API ---
from call_chain.service import CallChainService
from call_chain.chain_builder import CallChainBuilder, TraversalContext
from call_chain.lexer import LexicalClassifier, ScanContext, BraceCount
from call_chain.locator import MethodLocator, MethodRangeResolver, parse_method_declaration
from call_chain.call_sites import CallSiteExtractor, contains_method_call
from call_chain.graph_metrics import calculate_depth, count_total_methods

# --- Project Sources ---
from call_chain.project import ProjectSource, FileSystemProject, InMemoryProject

# --- Configuration ---
from call_chain.config import CallChainConfig, DEFAULT_CONFIG

# --- Models ---
from call_chain.models import (
    AnalysisRequest,
    AnalysisResponse,
    CallChainNode,
    CallChainResult,
    CallSite,
    Direction,
    MethodDescriptor,
    MethodRange,
)

# --- Exceptions ---
from call_chain.exceptions import (
    CallChainError,
    SourceError,
    SourceReadError,
    SourceNotFoundError,
    ValidationError,
    InvalidDirectionError,
    ConfigurationError,
)

# --- Infrastructure ---
from call_chain.metrics import MetricsCollector, get_metrics

__version__ = "1.0.0"

__all__ = [
    # Core
    "CallChainService",
    "CallChainBuilder",
    "TraversalContext",
    "LexicalClassifier",
    "ScanContext",
    "BraceCount",
    "MethodLocator",
    "MethodRangeResolver",
    "parse_method_declaration",
    "CallSiteExtractor",
    "contains_method_call",
    "calculate_depth",
    "count_total_methods",
    # Project sources
    "ProjectSource",
    "FileSystemProject",
    "InMemoryProject",
    # Config
    "CallChainConfig",
    "DEFAULT_CONFIG",
    # Models
    "AnalysisRequest",
    "AnalysisResponse",
    "CallChainNode",
    "CallChainResult",
    "CallSite",
    "Direction",
    "MethodDescriptor",
    "MethodRange",
    # Exceptions
    "CallChainError",
    "SourceError",
    "SourceReadError",
    "SourceNotFoundError",
    "ValidationError",
    "InvalidDirectionError",
    "ConfigurationError",
    # Infrastructure
    "MetricsCollector",
    "get_metrics",
]
