"""
Post-processing metrics over a built call-chain tree.
"""

from typing import Any, Dict

from call_chain.models import CallChainNode


def calculate_depth(node: CallChainNode) -> int:
    """Longest root-to-leaf path; a childless node has depth 1."""
    if not node.children:
        return 1
    return 1 + max(calculate_depth(child) for child in node.children)


def count_total_methods(node: CallChainNode) -> int:
    """Total number of nodes in the tree, root included."""
    return 1 + sum(count_total_methods(child) for child in node.children)


def count_external(node: CallChainNode) -> int:
    """Number of nodes whose expansion was stopped."""
    return sum(1 for n in node.iter_nodes() if n.is_external)


def summarize(node: CallChainNode) -> Dict[str, Any]:
    return {
        "depth": calculate_depth(node),
        "total_methods": count_total_methods(node),
        "external": count_external(node),
    }
