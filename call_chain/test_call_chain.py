"""
Comprehensive test suite for the call_chain package.

Tests all modules:
    - Config, Exceptions, Models, Utils, Metrics
    - LexicalClassifier (contexts, heuristics, brace balance)
    - MethodLocator / MethodRangeResolver / CallSiteExtractor
    - CallChainBuilder: upward and downward chains, cycles, depth bound,
      unreadable files
    - Project sources, reports, service and CLI

Usage:
    python -m call_chain.test_call_chain
    # or with pytest from the project root:
    pytest call_chain
"""

import os
import sys
import json
import logging
import tempfile
from pathlib import Path

# Ensure the parent directory is in the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from call_chain.call_sites import CallSiteExtractor, contains_method_call
from call_chain.chain_builder import CallChainBuilder
from call_chain.config import CallChainConfig, DEFAULT_CONFIG
from call_chain.exceptions import (
    CallChainError, ConfigurationError, InvalidDirectionError, SourceError,
    SourceNotFoundError, SourceReadError, ValidationError,
)
from call_chain.graph_metrics import calculate_depth, count_external, count_total_methods, summarize
from call_chain.lexer import LexicalClassifier, ScanContext, is_generic_start, is_regex_end, is_regex_start
from call_chain.locator import MethodLocator, MethodRangeResolver, parse_method_declaration
from call_chain.metrics import MetricsCollector
from call_chain.models import (
    AnalysisRequest, AnalysisResponse, CallChainNode, CallChainResult, Direction, MethodDescriptor,
)
from call_chain.project import FileSystemProject, InMemoryProject
from call_chain.service import CallChainService
from call_chain.utils import display_path, is_comment_line, split_source_lines

# Setup logging
logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)


# ============================================================
# Test Fixtures
# ============================================================

COUNTER_SOURCE = """\
package com.example;

import java.util.*;

/**
 * Counts things { in a javadoc }.
 */
@SuppressWarnings({"unchecked"})
public class Counter<T extends Comparable<T>> {
    private final Map<String, List<Integer>> index = new HashMap<>();
    private static final String OPEN = "{";
    private static final char CLOSE = '}';

    @Override
    public String toString() {
        return "Counter{" + index + "}";
    }

    public Map<String, Integer>
        computeCounts(List<String> items,
                      boolean strict) {
        Map<String, Integer> counts = new TreeMap<>();
        for (int i = 0; i < items.size(); i++) {
            String item = items.get(i); // trailing { comment
            if (strict && item.isEmpty()) {
                continue;
            }
            counts.merge(item, 1, Integer::sum);
        }
        /* block { comment
           still } inside */
        return counts;
    }

    public void run(Runnable r) {
        new Thread(() -> {
            r.run();
        }).start();
    }
}
"""

NESTED_SOURCE = """\
public class Outer {
    private int x;
    static class Inner {
        void f() {
        }
    }
    void g() {
    }
}
"""

A_SOURCE = "class A { void a(){ b(); } }"
B_SOURCE = "class B { void caller(){ new A().a(); } }"


def _line_of(text: str, fragment: str) -> int:
    """0-based index of the first line containing ``fragment``."""
    for index, line in enumerate(split_source_lines(text)):
        if fragment in line:
            return index
    raise AssertionError(f"fragment not found: {fragment!r}")


def _chain_project(length: int) -> InMemoryProject:
    """C0.m0 <- C1.m1 <- ... <- C{length-1}.m{length-1}, one class per file."""
    files = {"C0.java": "class C0 { void m0() { } }"}
    for i in range(1, length):
        files[f"C{i}.java"] = f"class C{i} {{ void m{i}() {{ new C{i - 1}().m{i - 1}(); }} }}"
    return InMemoryProject(files)


def _builder(project, **overrides) -> CallChainBuilder:
    return CallChainBuilder(project, config=CallChainConfig(**overrides), metrics=MetricsCollector())


class _BrokenProject(InMemoryProject):
    """Lists a file that cannot be read."""

    def list_files(self):
        return super().list_files() + ["Broken.java"]

    def read_file(self, file_path):
        if file_path == "Broken.java":
            raise SourceReadError(file_path, "permission denied")
        return super().read_file(file_path)


# ============================================================
# Test 1: Module Imports
# ============================================================

def test_imports():
    """Every public name is importable from the package."""
    logger.info("--- Test 1: Module Imports ---")

    import call_chain

    for name in call_chain.__all__:
        assert hasattr(call_chain, name), f"call_chain.{name} missing"
    assert call_chain.__version__
    logger.info(f"  PASS: {len(call_chain.__all__)} public names importable.")


# ============================================================
# Test 2: Configuration
# ============================================================

def test_config():
    """Test the CallChainConfig dataclass."""
    logger.info("--- Test 2: Configuration ---")

    config = CallChainConfig()
    assert config.max_depth == 10, f"Expected max_depth=10, got {config.max_depth}"
    assert config.default_direction == "up"
    assert config.detect_regex_literals is True
    assert config.extensions == [".java"]
    assert config.validate() == []
    logger.info("  PASS: Default config values correct.")

    bad_config = CallChainConfig(max_depth=0, default_direction="sideways", extensions=[], max_files=0)
    warnings = bad_config.validate()
    assert len(warnings) == 4, f"Expected 4 validation warnings, got {warnings}"
    logger.info(f"  PASS: Validation caught {len(warnings)} config issues.")

    saved = {k: os.environ.get(k) for k in ("CALLCHAIN_MAX_DEPTH", "CALLCHAIN_DETECT_REGEX",
                                            "CALLCHAIN_EXTENSIONS", "CALLCHAIN_MAX_FILES")}
    try:
        os.environ["CALLCHAIN_MAX_DEPTH"] = "4"
        os.environ["CALLCHAIN_DETECT_REGEX"] = "off"
        os.environ["CALLCHAIN_EXTENSIONS"] = ".java, .jav"
        os.environ["CALLCHAIN_MAX_FILES"] = "not-a-number"
        env_config = CallChainConfig.from_env()
        assert env_config.max_depth == 4
        assert env_config.detect_regex_literals is False
        assert env_config.extensions == [".java", ".jav"]
        assert env_config.max_files == 20000, "unparsable values keep the default"
    finally:
        for key, value in saved.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value
    logger.info("  PASS: from_env() reads CALLCHAIN_* variables.")

    assert isinstance(DEFAULT_CONFIG, CallChainConfig)


# ============================================================
# Test 3: Exceptions
# ============================================================

def test_exceptions():
    """Test the custom exception hierarchy."""
    logger.info("--- Test 3: Exceptions ---")

    err = SourceReadError("src/A.java", "permission denied")
    assert isinstance(err, SourceError) and isinstance(err, CallChainError)
    assert err.details == {"file_path": "src/A.java", "reason": "permission denied"}
    assert "permission denied" in str(err)

    err = SourceNotFoundError("A.java", "/repo")
    assert "A.java" in str(err) and "/repo" in str(err)

    err = InvalidDirectionError("sideways")
    assert isinstance(err, ValidationError)
    assert err.details["field"] == "direction"
    assert err.details["valid_directions"] == ["down", "up"]

    err = ConfigurationError(["max_depth must be >= 1, got 0"])
    assert err.details["problems"] == ["max_depth must be >= 1, got 0"]
    logger.info("  PASS: Exception hierarchy and details correct.")


# ============================================================
# Test 4: Models
# ============================================================

def test_models():
    """Test the structured data models."""
    logger.info("--- Test 4: Models ---")

    assert Direction.from_string("UP") is Direction.UP
    assert Direction.from_string(" callees ") is Direction.DOWN
    assert Direction.from_string("sideways") is None
    assert Direction.from_string(None) is None

    first = MethodDescriptor("load", "Repo", "Repo.java", 3, ["int id"], "Item")
    overload = MethodDescriptor("load", "Repo", "Repo.java", 9, ["String key"], "Item")
    assert first.key == overload.key == ("Repo.java", "Repo", "load")
    assert first.signature() == "Item load(int id)"
    assert MethodDescriptor("Repo", "Repo", return_type=None).is_constructor

    leaf = CallChainNode("save", "Repo", "Repo.java", 12, is_external=True)
    root = CallChainNode("handle", "Api", "Api.java", 4, children=[leaf])
    assert root.node_id == CallChainNode("handle", "Api", "Api.java", 4).node_id
    assert root.node_id != leaf.node_id
    assert len(root.node_id) == 16 and int(root.node_id, 16) >= 0
    assert CallChainNode("größe", "Maß", "src/Maß.java", 2).to_dict()["id"]
    assert [n.method_name for n in root.iter_nodes()] == ["handle", "save"]

    data = CallChainResult(root, 2, 2, Direction.DOWN).to_dict()
    assert data["direction"] == "down"
    assert data["root"]["children"][0]["isExternal"] is True

    assert AnalysisRequest("A.java", 0).validate() == []
    errors = AnalysisRequest("", "x", "sideways").validate()
    assert len(errors) == 3, errors

    response = AnalysisResponse.error_response("nope", error_type="not_found")
    assert response.to_dict() == {"message": "nope", "data": {}, "error": True, "error_type": "not_found"}
    assert AnalysisResponse.success(CallChainResult(leaf, 1, 1)).to_dict()["data"]["depth"] == 1
    logger.info("  PASS: Models behave as expected.")


# ============================================================
# Test 5: Utilities
# ============================================================

def test_utils():
    """Test shared utility functions."""
    logger.info("--- Test 5: Utilities ---")

    assert split_source_lines("a\r\nb\n") == ["a", "b", ""]
    assert split_source_lines("") == [""]
    assert is_comment_line("   // note")
    assert is_comment_line(" * javadoc")
    assert not is_comment_line("x = 1; // note")
    assert display_path("/repo/src/A.java", "/repo") == os.path.join("src", "A.java")
    assert display_path("/elsewhere/A.java", "/repo") == "/elsewhere/A.java"
    logger.info("  PASS: Utilities correct.")


# ============================================================
# Test 6: Metrics
# ============================================================

def test_metrics():
    """Test the MetricsCollector."""
    logger.info("--- Test 6: Metrics ---")

    metrics = MetricsCollector()
    with metrics.timer("analyze_call_chain"):
        pass
    metrics.record_file_read("A.java")
    metrics.record_file_read_failure("B.java", "denied")
    metrics.record_node()
    metrics.record_node(external=True)
    metrics.record_unresolved_call("println")

    summary = metrics.summary()
    assert summary["files"] == {"read": 1, "read_failures": 1}
    assert summary["traversal"] == {"nodes_created": 2, "nodes_external": 1, "calls_unresolved": 1}
    assert summary["errors"] == {"SourceReadError": 1}
    assert metrics.get_timing_stats("analyze_call_chain")["count"] == 1
    assert metrics.get_counter("analyze_call_chain.success") == 1

    try:
        with metrics.timer("analyze_call_chain"):
            raise RuntimeError("boom")
    except RuntimeError:
        pass
    assert metrics.get_counter("analyze_call_chain.failure") == 1

    metrics.reset()
    assert metrics.get_counter("files.read") == 0
    logger.info("  PASS: Metrics recorded and summarized.")


# ============================================================
# Test 7: Lexical Classifier
# ============================================================

def test_lexer_ignores_literal_and_comment_braces():
    """Braces inside strings, chars, comments and annotations never count."""
    logger.info("--- Test 7: Lexical contexts ---")

    classifier = LexicalClassifier()
    fresh = ScanContext()

    assert classifier.classify('String s = "{ not a brace }";', fresh)[0] == 0
    assert classifier.classify("char c = '{';", fresh)[0] == 0
    assert classifier.classify('String q = "quote \\" {";', fresh)[0] == 0
    assert classifier.classify("int x = 1; // trailing {", fresh)[0] == 0
    assert classifier.classify('@SuppressWarnings({"unchecked", "rawtypes"})', fresh)[0] == 0
    assert classifier.classify("@Override public void run() {", fresh)[0] == 1
    assert classifier.classify("int half = total / 2; if (ok) {", fresh)[0] == 1

    delta, ctx = classifier.classify("/* start {", fresh)
    assert delta == 0 and ctx.in_block_comment
    delta, ctx = classifier.classify("still } */ }", ctx)
    assert delta == -1 and ctx.in_code

    ctx = fresh
    deltas = []
    for line in ['String json = """', '  { "a": 1 }', '  """;', "}"]:
        delta, ctx = classifier.classify(line, ctx)
        deltas.append(delta)
    assert deltas == [0, 0, 0, -1], deltas

    # Ordinary string literals end with the line
    delta, ctx = classifier.classify('String s = "abc', fresh)
    assert not ctx.in_string
    assert classifier.classify("{", ctx)[0] == 1
    logger.info("  PASS: Non-code braces ignored.")


def test_lexer_generics():
    """Generic parameter lists are skipped; comparisons are not generics."""
    logger.info("--- Test 8: Generics ---")

    classifier = LexicalClassifier()
    delta, ctx = classifier.classify("Map<String, List<Integer>> m = new HashMap<>();", ScanContext())
    assert delta == 0
    assert not ctx.in_generic and ctx.generic_level == 0

    assert classifier.classify("for (int i = 0; i < n; i++) {", ScanContext())[0] == 1
    assert classifier.classify("if (a < b && c > d) {", ScanContext())[0] == 1

    line = "List<String> names;"
    assert is_generic_start(line, line.index("<"))
    line = "if (a < b) {"
    assert not is_generic_start(line, line.index("<"))

    # The heuristic is pluggable
    always = LexicalClassifier(generic_predicate=lambda text, index: True)
    delta, ctx = always.classify("if (a < b) {", ScanContext())
    assert delta == 0 and ctx.in_generic
    logger.info("  PASS: Generic heuristic correct.")


def test_lexer_regex_literals():
    """Regex-literal mode is optional and heuristic."""
    logger.info("--- Test 9: Regex literals ---")

    line = "x = /{/;"
    assert is_regex_start(line, line.index("/"))
    assert is_regex_end(line, line.rindex("/"))
    assert LexicalClassifier(detect_regex=True).classify(line, ScanContext())[0] == 0
    assert LexicalClassifier(detect_regex=False).classify(line, ScanContext())[0] == 1

    line = "int r = total / count;"
    assert not is_regex_start(line, line.index("/"))
    line = "return /a+b/g;"
    assert is_regex_start(line, line.index("/"))
    assert is_regex_end(line, line.rindex("/"))
    logger.info("  PASS: Regex heuristic correct.")


def test_lexer_brace_balance():
    """A balanced file nets to zero brace delta."""
    logger.info("--- Test 10: Brace balance ---")

    classifier = LexicalClassifier()
    deltas = classifier.scan(split_source_lines(COUNTER_SOURCE))
    assert sum(deltas) == 0, f"Expected balance, got {sum(deltas)}"

    running = 0
    for delta in deltas:
        running += delta
        assert running >= 0
    logger.info("  PASS: Brace delta balanced over the file.")


def test_code_text_masks_non_code():
    classifier = LexicalClassifier()
    code, _ = classifier.code_text('foo("bar()"); // baz()', ScanContext())
    assert "bar" not in code and "baz" not in code
    assert code.startswith("foo(")
    assert len(code) == len('foo("bar()"); // baz()')

    code, _ = classifier.code_text("public Map<String, Integer>", ScanContext())
    assert code == "public Map<String, Integer>"


# ============================================================
# Test 11: Method Locator
# ============================================================

def test_parse_method_declaration():
    logger.info("--- Test 11: Declaration parsing ---")

    parsed = parse_method_declaration(
        "@Override public <T> List<T> wrap(T value, Map<String, List<T>> extra) throws IOException {"
    )
    assert parsed.name == "wrap"
    assert parsed.return_type == "List<T>"
    assert parsed.parameters == ["T value", "Map<String, List<T>> extra"]

    assert parse_method_declaration("return foo(x);") is None
    assert parse_method_declaration("new Foo(1);") is None
    assert parse_method_declaration("else if (x) {") is None
    assert parse_method_declaration("Point(int x, int y) {") is None

    ctor = parse_method_declaration("public Point(int x, int y) {", "Point")
    assert ctor.name == "Point" and ctor.return_type is None
    assert ctor.parameters == ["int x", "int y"]
    logger.info("  PASS: Declarations parsed.")


def test_find_method_at_multiline_signature():
    """A signature spread over three lines is found from any of them."""
    logger.info("--- Test 12: Multi-line declaration ---")

    text = (
        "public Map<String, Integer>\n"
        "    computeCounts(List<String> items,\n"
        "                  boolean strict) {\n"
    )
    locator = MethodLocator()
    for line in (0, 1, 2):
        method = locator.find_method_at(text, line)
        assert method is not None, f"nothing found at line {line}"
        assert method.name == "computeCounts"
        assert method.return_type == "Map<String, Integer>"
        assert method.parameters == ["List<String> items", "boolean strict"]
        assert method.declaration_line == 1

    # Same signature inside a class, cursor deep in the body
    line = _line_of(COUNTER_SOURCE, "String item = items.get(i);")
    method = locator.find_method_at(COUNTER_SOURCE, line, "Counter.java")
    assert method.name == "computeCounts"
    assert method.enclosing_class == "Counter"
    assert method.file_path == "Counter.java"
    assert method.declaration_line == _line_of(COUNTER_SOURCE, "public Map<String, Integer>") + 1
    logger.info("  PASS: Multi-line signature resolved.")


def test_find_method_at_skips_comments():
    text = (
        "class Doc {\n"
        "    void real() {\n"
        "        // void fake() {\n"
        "        /* void other() { */\n"
        "        work();\n"
        "    }\n"
        "}\n"
    )
    method = MethodLocator().find_method_at(text, 4)
    assert method.name == "real"
    assert MethodLocator().find_method_at("class Empty {\n}\n", 1) is None


def test_find_enclosing_class_nested():
    locator = MethodLocator()
    assert locator.find_enclosing_class(NESTED_SOURCE, 1) == "Outer"
    assert locator.find_enclosing_class(NESTED_SOURCE, 3) == "Inner"
    assert locator.find_enclosing_class(NESTED_SOURCE, 4) == "Inner"
    assert locator.find_enclosing_class(NESTED_SOURCE, 6) == "Outer"
    assert locator.find_enclosing_class("int x;\n", 0) is None
    assert locator.find_enclosing_class(NESTED_SOURCE, 99) is None


def test_find_all_method_definitions():
    logger.info("--- Test 13: All definitions ---")

    locator = MethodLocator()
    defs = locator.find_all_method_definitions(COUNTER_SOURCE, "Counter.java")
    assert [d.name for d in defs] == ["toString", "computeCounts", "run"], [d.name for d in defs]
    assert all(d.enclosing_class == "Counter" for d in defs)
    assert defs[1].declaration_line == _line_of(COUNTER_SOURCE, "public Map<String, Integer>") + 1
    assert defs[2].parameters == ["Runnable r"]

    nested = locator.find_all_method_definitions(NESTED_SOURCE)
    assert [(d.enclosing_class, d.name) for d in nested] == [("Inner", "f"), ("Outer", "g")]

    one_liner = locator.find_all_method_definitions(A_SOURCE)
    assert [(d.enclosing_class, d.name, d.declaration_line) for d in one_liner] == [("A", "a", 1)]

    assert locator.find_all_method_definitions("interface Shape { double area(); }") == []

    ctor = locator.find_all_method_definitions("class Point {\n    Point(int x) {\n    }\n}\n")
    assert ctor[0].name == "Point" and ctor[0].is_constructor
    logger.info("  PASS: Definitions collected with classes.")


# ============================================================
# Test 14: Method Range Resolver
# ============================================================

def test_find_range():
    logger.info("--- Test 14: Method ranges ---")

    resolver = MethodRangeResolver()
    lines = split_source_lines(COUNTER_SOURCE)

    rng = resolver.find_range(COUNTER_SOURCE, "computeCounts")
    assert rng.start == _line_of(COUNTER_SOURCE, "public Map<String, Integer>")
    assert lines[rng.end].strip() == "}"
    assert lines[rng.end - 1].strip() == "return counts;"
    assert rng.body_line == _line_of(COUNTER_SOURCE, "boolean strict) {")

    rng = resolver.find_range(COUNTER_SOURCE, "toString", class_name="Counter")
    assert rng.line_count == 3
    assert resolver.find_range(COUNTER_SOURCE, "toString", class_name="Other") is None
    assert resolver.find_range(COUNTER_SOURCE, "missing") is None

    # Unterminated bodies run to the end of the file
    rng = resolver.find_range("class A {\n  void f() {\n    a();", "f")
    assert (rng.start, rng.end) == (1, 2)

    # One-line method: the body starts after the method's own brace
    rng = resolver.range_from([A_SOURCE], 0, "a")
    assert (rng.start, rng.end) == (0, 0)
    assert rng.body_lines([A_SOURCE])[0].strip() == "b(); } }"
    logger.info("  PASS: Ranges resolved.")


# ============================================================
# Test 15: Call Sites
# ============================================================

def test_call_site_extraction():
    logger.info("--- Test 15: Call sites ---")

    lines = [
        "helper.process(data);",
        "Utils.format(x);",
        "compute(1);",
        "Foo f = new Foo(2);",
        "if (ready) { run(); }",
        "// commented(call);",
    ]
    sites = CallSiteExtractor().extract(lines, 0, 5)
    found = [(s.callee_name, s.receiver, s.line_number) for s in sites]

    assert ("process", "helper", 1) in found
    assert ("process", None, 1) in found
    assert found.count(("format", "Utils", 2)) == 2, "qualified and static patterns both match"
    assert ("compute", None, 3) in found
    assert found.count(("Foo", None, 4)) == 2, "bare and constructor patterns both match"
    assert ("run", None, 5) in found
    assert not any(name in ("if", "commented") for name, _, _ in found)
    assert len(sites) == 9, found

    # Slice of the first line
    sites = CallSiteExtractor().extract(["void a(){ b(); }"], 0, 0, first_column=9)
    assert [s.callee_name for s in sites] == ["b"]
    logger.info("  PASS: Call sites extracted.")


def test_contains_method_call():
    assert contains_method_call(["x = svc.save(item);"], "save")
    assert contains_method_call(["this.reset();"], "reset")
    assert contains_method_call(["super.reset();"], "reset")
    assert contains_method_call(["Repo.load(1);"], "load", "Repo")
    assert contains_method_call(["builder.a().b().save();"], "save")
    assert contains_method_call(["Widget w = new Widget();"], "Widget", "Widget")
    assert not contains_method_call(["saveAll(items);"], "save")
    assert not contains_method_call(["// save(x);"], "save")


# ============================================================
# Test 16: Graph Metrics
# ============================================================

def test_graph_metrics():
    leaf = CallChainNode("c", "C", "C.java", 1, is_external=True)
    mid = CallChainNode("b", "B", "B.java", 1, children=[leaf])
    root = CallChainNode("a", "A", "A.java", 1, children=[mid, CallChainNode("d", "D", "D.java", 1)])

    assert calculate_depth(leaf) == 1
    assert calculate_depth(root) == 3
    assert count_total_methods(root) == 4
    assert count_external(root) == 1
    assert summarize(root) == {"depth": 3, "total_methods": 4, "external": 1}


# ============================================================
# Test 17: Call Chain Builder
# ============================================================

def test_upward_chain_two_files():
    """A.a is called from B.caller."""
    logger.info("--- Test 17: Upward chain ---")

    project = InMemoryProject({"A.java": A_SOURCE, "B.java": B_SOURCE})
    result = _builder(project).analyze_call_chain("A.java", 0, text=A_SOURCE)

    assert result is not None
    assert result.direction is Direction.UP
    assert result.root.method_name == "a" and result.root.class_name == "A"
    assert result.root.line_number == 1
    assert [c.method_name for c in result.root.children] == ["caller"]
    caller = result.root.children[0]
    assert caller.class_name == "B" and caller.file_path == "B.java"
    assert not caller.is_external
    assert result.depth == 2
    assert result.total_methods == 2
    logger.info("  PASS: Upward chain built.")


def test_depth_cutoff():
    """Fifteen nested callers are cut at the configured depth."""
    logger.info("--- Test 18: Depth bound ---")

    project = _chain_project(15)
    result = _builder(project, max_depth=10).analyze_call_chain("C0.java", 0)

    assert result.depth == 10
    assert result.total_methods == 10

    node = result.root
    for level in range(1, 10):
        assert not node.is_external, f"level {level} should be expanded"
        assert len(node.children) == 1
        node = node.children[0]
    assert node.method_name == "m9"
    assert node.is_external and not node.children
    logger.info("  PASS: Depth bound enforced.")


def test_depth_bound_holds_for_small_limits():
    project = _chain_project(6)
    for limit in (1, 2, 3):
        result = _builder(project, max_depth=limit).analyze_call_chain("C0.java", 0)
        assert result.depth <= limit


def test_downward_cycle_is_cut():
    text = (
        "class Loop {\n"
        "    void ping() {\n"
        "        pong();\n"
        "    }\n"
        "    void pong() {\n"
        "        ping();\n"
        "    }\n"
        "}\n"
    )
    project = InMemoryProject({"Loop.java": text})
    result = _builder(project).analyze_call_chain("Loop.java", 2, direction="down")

    assert result.direction is Direction.DOWN
    assert result.root.method_name == "ping"
    pong = result.root.children[0]
    assert pong.method_name == "pong" and not pong.is_external
    again = pong.children[0]
    assert again.method_name == "ping" and again.is_external and not again.children
    assert result.depth == 3 and result.total_methods == 3


def test_self_recursion_terminates():
    text = "class M {\n    int fact(int n) { return n <= 1 ? 1 : n * fact(n - 1); }\n}\n"
    project = InMemoryProject({"M.java": text})
    result = _builder(project).analyze_call_chain("M.java", 1, direction=Direction.DOWN)

    assert result.root.method_name == "fact"
    assert [(c.method_name, c.is_external) for c in result.root.children] == [("fact", True)]
    assert result.depth == 2

    up = _builder(project).analyze_call_chain("M.java", 1, direction="up")
    assert up.total_methods == 1, "a method is never its own caller"


def test_downward_unresolved_calls_become_external():
    text = (
        "class Svc {\n"
        "    void handle() {\n"
        "        System.out.println(\"start\");\n"
        "        helper();\n"
        "    }\n"
        "    void helper() {\n"
        "    }\n"
        "}\n"
    )
    project = InMemoryProject({"Svc.java": text})
    result = _builder(project).analyze_call_chain("Svc.java", 1, direction="down")

    children = [(c.method_name, c.class_name, c.file_path, c.is_external) for c in result.root.children]
    assert ("println", "out", "External", True) in children
    assert ("println", "Unknown", "External", True) in children
    assert ("helper", "Svc", "Svc.java", False) in children
    assert result.root.children[0].line_number == 3
    assert result.depth == 2 and result.total_methods == 4


def test_downward_resolves_across_files():
    project = InMemoryProject({
        "App.java": "class App {\n    void start() {\n        new Repo().load();\n    }\n}\n",
        "Repo.java": "class Repo {\n    void load() {\n    }\n}\n",
    })
    result = _builder(project).analyze_call_chain("App.java", 2, direction="down")

    resolved = [c for c in result.root.children if not c.is_external]
    assert resolved and resolved[0].method_name == "load"
    assert resolved[0].class_name == "Repo" and resolved[0].file_path == "Repo.java"
    assert resolved[0].line_number == 2


def test_unreadable_files_are_skipped():
    project = _BrokenProject({"A.java": A_SOURCE, "B.java": B_SOURCE})
    builder = _builder(project)
    result = builder.analyze_call_chain("A.java", 0, text=A_SOURCE)

    assert result.depth == 2 and result.total_methods == 2
    assert builder.metrics.get_counter("files.read_failures") == 1


def test_no_method_or_class_returns_none():
    project = InMemoryProject({"E.java": "class Empty {\n}\n", "O.java": "void orphan() {\n}\n"})
    builder = _builder(project)
    assert builder.analyze_call_chain("E.java", 0) is None
    assert builder.analyze_call_chain("O.java", 0) is None

    try:
        builder.analyze_call_chain("E.java", 0, direction="sideways")
        raise AssertionError("expected InvalidDirectionError")
    except InvalidDirectionError:
        pass


def test_traversals_do_not_share_state():
    project = InMemoryProject({"A.java": A_SOURCE, "B.java": B_SOURCE})
    builder = _builder(project)
    first = builder.analyze_call_chain("A.java", 0)
    second = builder.analyze_call_chain("A.java", 0)
    assert first.to_dict() == second.to_dict()


# ============================================================
# Test 19: Project Sources
# ============================================================

def test_file_system_project():
    logger.info("--- Test 19: Project sources ---")

    with tempfile.TemporaryDirectory() as tmp:
        root = Path(tmp)
        (root / "src" / "gen").mkdir(parents=True)
        (root / "build").mkdir()
        (root / "src" / "A.java").write_text(A_SOURCE, encoding="utf-8")
        (root / "src" / "B.java").write_text(B_SOURCE, encoding="utf-8")
        (root / "src" / "notes.txt").write_text("not java", encoding="utf-8")
        (root / "src" / "gen" / "X.java").write_text("class X {}", encoding="utf-8")
        (root / "build" / "Gen.java").write_text("class Gen {}", encoding="utf-8")

        project = FileSystemProject(str(root), exclude_globs=["src/gen/*"])
        names = [Path(p).name for p in project.list_files()]
        assert names == ["A.java", "B.java"], names

        assert project.read_file("src/A.java") == A_SOURCE
        try:
            project.read_file("src/Missing.java")
            raise AssertionError("expected SourceNotFoundError")
        except SourceNotFoundError:
            pass

        limited = FileSystemProject(str(root), max_files=1)
        assert len(limited.list_files()) == 1

    memory = InMemoryProject({"A.java": A_SOURCE})
    memory.add_file("B.java", B_SOURCE)
    assert memory.list_files() == ["A.java", "B.java"]
    logger.info("  PASS: Project sources list and read files.")


# ============================================================
# Test 20: Reports
# ============================================================

def _ab_result() -> CallChainResult:
    project = InMemoryProject({"A.java": A_SOURCE, "B.java": B_SOURCE})
    return _builder(project).analyze_call_chain("A.java", 0)


def test_markdown_report():
    logger.info("--- Test 20: Reports ---")

    from call_chain.report import to_markdown

    result = _ab_result()
    result.root.children.append(CallChainNode("log", "Unknown", "External", 1, is_external=True))
    report = to_markdown(result)

    assert report.startswith("# Java Method Call Chain Report")
    assert "**Root method:** A.a" in report
    assert "**Call chain depth:** 2" in report
    assert "- **a** (file://" in report and "A.java#1)" in report
    assert "  - **caller** (file://" in report
    assert "  - **log** (External) (external)" in report


def test_json_graph_and_tree_reports():
    from call_chain.report import to_digraph, to_json, to_rich_tree, write_graphml

    result = _ab_result()
    data = json.loads(to_json(result))
    assert data["depth"] == 2
    assert data["root"]["children"][0]["className"] == "B"

    graph = to_digraph(result)
    caller = result.root.children[0]
    assert graph.number_of_nodes() == 2
    assert graph.has_edge(caller.node_id, result.root.node_id), "edges point from caller to callee"
    assert graph.nodes[caller.node_id]["class_name"] == "B"

    tree = to_rich_tree(result)
    assert len(tree.children) == 1

    with tempfile.TemporaryDirectory() as tmp:
        target = os.path.join(tmp, "chain.graphml")
        write_graphml(result, target)
        assert os.path.getsize(target) > 0
    logger.info("  PASS: Reports rendered.")


# ============================================================
# Test 21: Service
# ============================================================

def test_service_responses():
    logger.info("--- Test 21: Service ---")

    project = InMemoryProject({"A.java": A_SOURCE, "B.java": B_SOURCE, "E.java": "class E {\n}\n"})
    service = CallChainService(project, CallChainConfig())

    ok = service.analyze(AnalysisRequest("A.java", 0))
    assert not ok.error and ok.result.total_methods == 2

    down = service.analyze(AnalysisRequest("A.java", 0, direction="down"))
    assert down.result.direction is Direction.DOWN

    invalid = service.analyze(AnalysisRequest("A.java", -1))
    assert invalid.error and invalid.error_type == "validation"

    missing = service.analyze(AnalysisRequest("Nope.java", 0))
    assert missing.error and missing.error_type == "SourceNotFoundError"

    not_found = service.analyze(AnalysisRequest("E.java", 0))
    assert not_found.error and not_found.error_type == "not_found"

    try:
        CallChainService(project, CallChainConfig(max_depth=0))
        raise AssertionError("expected ConfigurationError")
    except ConfigurationError:
        pass

    try:
        CallChainService.for_directory("/definitely/not/here")
        raise AssertionError("expected ValidationError")
    except ValidationError:
        pass
    logger.info("  PASS: Service maps outcomes to responses.")


def test_service_relative_path_keeps_root_identity():
    """A root file given relative to the project is the same method as its listed path."""
    recursive = (
        "class R {\n"
        "    int fact(int n) {\n"
        "        return n <= 1 ? 1 : n * fact(n - 1);\n"
        "    }\n"
        "}\n"
    )
    with tempfile.TemporaryDirectory() as tmp:
        (Path(tmp) / "R.java").write_text(recursive, encoding="utf-8")
        service = CallChainService.for_directory(tmp, CallChainConfig())
        assert service.project.normalize_path("R.java") == service.project.list_files()[0]

        up = service.analyze(AnalysisRequest("R.java", 2, direction="up", text=recursive))
        assert not up.error
        assert up.result.root.children == [], "a method is never its own caller"
        assert up.result.total_methods == 1

        down = service.analyze(AnalysisRequest("R.java", 2, direction="down"))
        assert [(c.method_name, c.is_external) for c in down.result.root.children] == [("fact", True)]
        assert down.result.root.file_path == service.project.list_files()[0]


# ============================================================
# Test 22: CLI
# ============================================================

def test_cli():
    logger.info("--- Test 22: CLI ---")

    from call_chain.cli import main, EXIT_INVALID, EXIT_NOT_FOUND, EXIT_OK

    with tempfile.TemporaryDirectory() as tmp:
        root = Path(tmp).resolve()
        (root / "A.java").write_text(A_SOURCE, encoding="utf-8")
        (root / "B.java").write_text(B_SOURCE, encoding="utf-8")
        (root / "E.java").write_text("class E {\n}\n", encoding="utf-8")
        out = root / "chain.json"

        code = main([str(root / "A.java"), "1", "--project-root", str(root),
                     "--format", "json", "-o", str(out), "--quiet"])
        assert code == EXIT_OK
        data = json.loads(out.read_text(encoding="utf-8"))
        assert data["depth"] == 2 and data["totalMethods"] == 2

        md = root / "chain.md"
        code = main([str(root / "A.java"), "1", "--direction", "down",
                     "--format", "markdown", "-o", str(md), "--quiet"])
        assert code == EXIT_OK
        assert "**Direction:** callees (downward)" in md.read_text(encoding="utf-8")

        assert main([str(root / "E.java"), "1", "--quiet"]) == EXIT_NOT_FOUND
        assert main([str(root / "A.java"), "0", "--quiet"]) == EXIT_INVALID
        assert main([str(root / "Missing.java"), "1", "--quiet"]) == EXIT_INVALID
        assert main([str(root / "A.java"), "1", "--max-depth", "0", "--quiet"]) == EXIT_INVALID
    logger.info("  PASS: CLI exit codes and outputs correct.")


# ============================================================
# Run All Tests
# ============================================================

def run_all_tests():
    """Run all tests and report results."""
    logger.info("=" * 60)
    logger.info(" CALL_CHAIN TEST SUITE")
    logger.info("=" * 60)

    tests = {
        name[len("test_"):].replace("_", " ").title(): func
        for name, func in sorted(globals().items())
        if name.startswith("test_") and callable(func)
    }

    results = {}
    for name, func in tests.items():
        try:
            func()
            results[name] = True
        except AssertionError as e:
            logger.error(f"FAIL: {name}: {e}")
            results[name] = False
        except Exception as e:
            logger.exception(f"FAIL: {name}: Unexpected error: {e}")
            results[name] = False

    logger.info("\n" + "=" * 60)
    logger.info(" TEST RESULTS")
    logger.info("=" * 60)

    for name, passed in results.items():
        status = "PASS" if passed else "FAIL"
        icon = "+" if passed else "X"
        logger.info(f"  [{icon}] {name}: {status}")

    passed_count = sum(1 for v in results.values() if v)
    logger.info(f"\n  {passed_count}/{len(results)} tests passed")
    logger.info("=" * 60)

    if passed_count == len(results):
        logger.info(" ALL TESTS PASSED")
    else:
        logger.error(" SOME TESTS FAILED")
        sys.exit(1)


if __name__ == "__main__":
    run_all_tests()
