"""
Rendering of call-chain results.

    to_markdown     nested bullet report with file:// links
    to_rich_tree    rich.tree.Tree for console display
    to_json         JSON document via CallChainResult.to_dict()
    to_digraph      networkx.DiGraph (one node per distinct method location)
    write_graphml   GraphML export of the digraph
"""

import json
import logging
import os
from datetime import datetime
from typing import List, Optional

import networkx as nx
from rich.markup import escape
from rich.tree import Tree

from call_chain.models import CallChainNode, CallChainResult, Direction, EXTERNAL_FILE
from call_chain.utils import display_path, to_uri

logger = logging.getLogger(__name__)

EXTERNAL_MARK = " (external)"


def _is_external(node: CallChainNode) -> bool:
    return node.is_external or node.file_path == EXTERNAL_FILE


def _location_link(node: CallChainNode) -> str:
    if not node.file_path or node.file_path == EXTERNAL_FILE:
        return node.file_path or EXTERNAL_FILE
    try:
        return f"{to_uri(os.path.abspath(node.file_path))}#{node.line_number}"
    except (OSError, ValueError):
        return f"{node.file_path}:{node.line_number}"


# ═══════════════════════════════════════════════════════════════════════════════
#  Markdown
# ═══════════════════════════════════════════════════════════════════════════════

def to_markdown(result: CallChainResult, generated_at: Optional[datetime] = None) -> str:
    """
    Markdown report: header block with the root method and metrics, then the
    tree as an indented bullet list, one entry per node.
    """
    timestamp = (generated_at or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
    root = result.root

    parts = [
        "# Java Method Call Chain Report\n\n",
        f"**Generated:** {timestamp}\n",
        f"**Root method:** {root.class_name}.{root.method_name}\n",
        f"**Direction:** {result.direction.display_name}\n",
        f"**Call chain depth:** {result.depth}\n",
        f"**Total methods:** {result.total_methods}\n\n",
        "## Call chain\n\n",
    ]
    _markdown_tree(root, 0, parts)
    return "".join(parts)


def _markdown_tree(node: CallChainNode, level: int, parts: List[str]) -> None:
    indent = "  " * level
    mark = EXTERNAL_MARK if _is_external(node) else ""
    parts.append(f"{indent}- **{node.method_name}** ({_location_link(node)}){mark}\n")
    for child in node.children:
        _markdown_tree(child, level + 1, parts)


# ═══════════════════════════════════════════════════════════════════════════════
#  Rich console tree
# ═══════════════════════════════════════════════════════════════════════════════

def _rich_label(node: CallChainNode, project_root: str) -> str:
    name = f"[bold]{escape(node.class_name)}.{escape(node.method_name)}[/bold]"
    if node.file_path == EXTERNAL_FILE:
        location = f"[dim]{EXTERNAL_FILE}, line {node.line_number}[/dim]"
    else:
        location = f"[cyan]{escape(display_path(node.file_path, project_root))}:{node.line_number}[/cyan]"
    mark = " [yellow](external)[/yellow]" if _is_external(node) else ""
    return f"{name}  {location}{mark}"


def to_rich_tree(result: CallChainResult, project_root: str = "") -> Tree:
    arrow = "callers" if result.direction is Direction.UP else "callees"
    tree = Tree(
        f"{_rich_label(result.root, project_root)}  "
        f"[dim]({arrow}, depth {result.depth}, {result.total_methods} methods)[/dim]"
    )

    def _add(parent: Tree, node: CallChainNode) -> None:
        for child in node.children:
            _add(parent.add(_rich_label(child, project_root)), child)

    _add(tree, result.root)
    return tree


# ═══════════════════════════════════════════════════════════════════════════════
#  JSON / graph export
# ═══════════════════════════════════════════════════════════════════════════════

def to_json(result: CallChainResult, indent: int = 2) -> str:
    return json.dumps(result.to_dict(), indent=indent)


def to_digraph(result: CallChainResult) -> nx.DiGraph:
    """
    Directed graph with edges in call direction (caller -> callee) whatever
    the traversal direction.  Nodes are merged by ``node_id``; a node is
    external if any occurrence of it was.
    """
    graph = nx.DiGraph(direction=result.direction.value, depth=result.depth,
                       total_methods=result.total_methods)

    seen = set()
    stack = [result.root]
    while stack:
        node = stack.pop()
        node_id = node.node_id
        if node_id in seen:
            graph.nodes[node_id]["is_external"] = graph.nodes[node_id]["is_external"] or node.is_external
        else:
            graph.add_node(
                node_id,
                method_name=node.method_name,
                class_name=node.class_name,
                file_path=node.file_path,
                line_number=node.line_number,
                parameters=", ".join(node.parameters),
                return_type=node.return_type or "",
                is_external=node.is_external,
            )
            seen.add(node_id)
        for child in node.children:
            if result.direction is Direction.UP:
                graph.add_edge(child.node_id, node_id)
            else:
                graph.add_edge(node_id, child.node_id)
            stack.append(child)

    logger.debug(f"Call graph: {graph.number_of_nodes()} nodes, {graph.number_of_edges()} edges")
    return graph


def write_graphml(result: CallChainResult, path: str) -> None:
    nx.write_graphml(to_digraph(result), path)
