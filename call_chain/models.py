"""
Structured data models for the call_chain package.

Defines typed method / call-site / call-chain objects using dataclasses
instead of implicit Dict[str, Any] types, plus the request/response pair
used by the service layer.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, Any, List, Tuple

import xxhash

EXTERNAL_FILE = "External"
UNKNOWN_CLASS = "Unknown"


# --- Enums ---

class Direction(str, Enum):
    """Traversal direction of a call chain."""
    UP = "up"        # callers of the root method
    DOWN = "down"    # callees of the root method

    @classmethod
    def from_string(cls, value: str) -> Optional["Direction"]:
        """Resolve a direction from a string, accepting a few aliases."""
        cleaned = (value or "").strip().lower()
        aliases = {
            "up": cls.UP, "upward": cls.UP, "callers": cls.UP,
            "down": cls.DOWN, "downward": cls.DOWN, "callees": cls.DOWN,
        }
        return aliases.get(cleaned)

    @property
    def display_name(self) -> str:
        return "callers (upward)" if self is Direction.UP else "callees (downward)"


# --- Source Models ---

@dataclass
class MethodDescriptor:
    """A method declaration found in a source file."""
    name: str
    enclosing_class: Optional[str] = None
    file_path: str = ""
    declaration_line: int = 0  # 1-based
    parameters: List[str] = field(default_factory=list)
    return_type: Optional[str] = None  # None for constructors

    @property
    def key(self) -> Tuple[str, str, str]:
        """
        Identity of the method within a traversal.  Overloads sharing a name
        in one class collapse to the same key.
        """
        return (self.file_path, self.enclosing_class or "", self.name)

    @property
    def is_constructor(self) -> bool:
        return self.return_type is None and self.name == self.enclosing_class

    @property
    def qualified_name(self) -> str:
        return f"{self.enclosing_class}.{self.name}" if self.enclosing_class else self.name

    def signature(self) -> str:
        prefix = f"{self.return_type} " if self.return_type else ""
        return f"{prefix}{self.name}({', '.join(self.parameters)})"


@dataclass
class MethodRange:
    """
    Inclusive, 0-based line range of a method from declaration to closing
    brace.  ``body_line``/``body_column`` point just past the body's opening
    brace (``None`` when no brace was found).
    """
    start: int
    end: int
    body_line: Optional[int] = None
    body_column: int = 0

    def __contains__(self, line: int) -> bool:
        return self.start <= line <= self.end

    @property
    def line_count(self) -> int:
        return self.end - self.start + 1

    def body_lines(self, lines: List[str]) -> List[str]:
        """Lines of the body only: the declaration signature is cut off."""
        if self.body_line is None:
            return list(lines[self.start:self.end + 1])
        body = list(lines[self.body_line:self.end + 1])
        if body:
            body[0] = " " * self.body_column + body[0][self.body_column:]
        return body


@dataclass
class CallSite:
    """A textual method invocation found inside a method body."""
    callee_name: str
    receiver: Optional[str] = None
    line_number: int = 0  # 1-based


# --- Call Chain Models ---

@dataclass
class CallChainNode:
    """One method in a call-chain tree."""
    method_name: str
    class_name: str
    file_path: str
    line_number: int
    parameters: List[str] = field(default_factory=list)
    return_type: Optional[str] = None
    children: List["CallChainNode"] = field(default_factory=list)
    is_external: bool = False

    @property
    def node_id(self) -> str:
        """Stable identifier for the method at this location."""
        return xxhash.xxh64(
            f"{self.file_path}:{self.class_name}.{self.method_name}:{self.line_number}".encode("utf-8")
        ).hexdigest()

    @property
    def qualified_name(self) -> str:
        return f"{self.class_name}.{self.method_name}" if self.class_name else self.method_name

    def iter_nodes(self):
        """Pre-order walk over this node and all descendants."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.node_id,
            "methodName": self.method_name,
            "className": self.class_name,
            "filePath": self.file_path,
            "lineNumber": self.line_number,
            "parameters": list(self.parameters),
            "returnType": self.return_type,
            "isExternal": self.is_external,
            "children": [child.to_dict() for child in self.children],
        }


@dataclass
class CallChainResult:
    """A finished call-chain tree with its metrics."""
    root: CallChainNode
    depth: int
    total_methods: int
    direction: Direction = Direction.UP

    def to_dict(self) -> Dict[str, Any]:
        return {
            "direction": self.direction.value,
            "depth": self.depth,
            "totalMethods": self.total_methods,
            "root": self.root.to_dict(),
        }


# --- Request/Response Models ---

@dataclass
class AnalysisRequest:
    """
    Structured request for a call-chain analysis at a cursor position.
    ``line`` is 0-based, as editors report cursor positions.
    """
    file_path: str
    line: int
    direction: str = Direction.UP.value
    text: Optional[str] = None

    def __post_init__(self):
        """Normalize types after initialization."""
        try:
            self.line = int(self.line)
        except (ValueError, TypeError):
            self.line = -1

    @property
    def resolved_direction(self) -> Optional[Direction]:
        return Direction.from_string(self.direction)

    def validate(self) -> List[str]:
        """
        Validate request fields and return a list of error messages.
        Returns empty list if valid.
        """
        errors = []

        if not self.file_path:
            errors.append("file_path is required")

        if self.line < 0:
            errors.append(f"line must be a non-negative integer, got {self.line}")

        if self.resolved_direction is None:
            errors.append(
                f"Unknown direction '{self.direction}'. "
                f"Valid: {[d.value for d in Direction]}"
            )

        return errors


@dataclass
class AnalysisResponse:
    """Structured response from a call-chain analysis."""
    message: str
    result: Optional[CallChainResult] = None
    error: bool = False
    error_type: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "message": self.message,
            "data": self.result.to_dict() if self.result else {},
        }
        if self.error:
            payload["error"] = True
            if self.error_type:
                payload["error_type"] = self.error_type
        return payload

    @classmethod
    def success(cls, result: CallChainResult, message: str = "success") -> "AnalysisResponse":
        """Create a success response."""
        return cls(message=message, result=result)

    @classmethod
    def error_response(cls, message: str, error_type: str = "general") -> "AnalysisResponse":
        """Create an error response."""
        return cls(message=message, error=True, error_type=error_type)
