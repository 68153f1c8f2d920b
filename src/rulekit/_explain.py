"""Plain English rendering of condition trees."""

from __future__ import annotations

from rulekit._nodes import ExpressionTree, Logic, LogicalNode, PredicateNode, _call_repr

_ROOT_HEADERS = {
    Logic.AND: "Check passes if ALL of:",
    Logic.OR: "Check passes if ANY of:",
    Logic.XOR: "Check passes if EXACTLY ONE of:",
    Logic.NOT: "Check passes if NOT ALL of:",
}

_HEADERS = {
    Logic.AND: "ALL of:",
    Logic.OR: "ANY of:",
    Logic.XOR: "EXACTLY ONE of:",
    Logic.NOT: "NOT ALL of:",
}


def explain(tree: ExpressionTree) -> str:
    """
    Generate a plain English explanation of a condition tree.

    Example:
        tree = parse_condition("is_admin | (is_active & ~is_banned)")
        print(explain(tree))

        # Output:
        # Check passes if ANY of:
        #   • Check: is_admin
        #   • ALL of:
        #     • Check: is_active
        #     • NOT: is_banned
    """
    output_lines: list[str] = []

    # Children are pushed in reverse so they pop in document order
    stack: list[tuple[ExpressionTree, int]] = [(tree, 0)]
    while stack:
        node, depth = stack.pop()
        indent = "  " * depth
        bullet = "• " if depth > 0 else ""

        if isinstance(node, PredicateNode):
            output_lines.append(f"{indent}{bullet}{_describe_predicate(node)}")

        elif (
            isinstance(node, LogicalNode)
            and node.kind is Logic.NOT
            and len(node.children) == 1
            and isinstance(node.children[0], PredicateNode)
        ):
            inner = _call_repr(node.children[0].name, node.children[0].args)
            output_lines.append(f"{indent}{bullet}NOT: {inner}")

        elif isinstance(node, LogicalNode):
            if depth == 0:
                header = _ROOT_HEADERS[node.kind]
            else:
                header = f"{indent}{bullet}{_HEADERS[node.kind]}"
            output_lines.append(header)
            for child in reversed(node.children):
                stack.append((child, depth + 1))

        else:
            output_lines.append(f"{indent}{bullet}{node!r}")

    return "\n".join(output_lines)


def _describe_predicate(node: PredicateNode) -> str:
    if node.name == "always" and not node.args:
        return "Always pass"
    if node.name == "never" and not node.args:
        return "Always fail"
    return f"Check: {_call_repr(node.name, node.args)}"
