"""
Example: Checkout pricing rules with rulekit

Shows how a cart context is updated by a collection of rules: standalone
rules that always apply when their condition holds, a rule set where only
the first matching tier fires, custom predicates and operations, and
tracing with PrintHook.
"""

import asyncio
import json

from rulekit import (
    Catalog,
    Param,
    ParamType,
    PrintHook,
    RuleEngine,
    explain,
    get_path,
    parse_condition,
    set_path,
    use_tracing,
)

# =============================================================================
# Custom predicates and operations
# =============================================================================

conditions = Catalog()
effects = Catalog()


@conditions.declare("has_coupon", Param("code", ParamType.STRING, required=True))
async def has_coupon(args, ctx):
    """Coupon code was entered at checkout."""
    # Stand-in for a lookup against a coupon service
    await asyncio.sleep(0.01)
    return args["code"] in get_path(ctx, "cart.coupons", default=[])


@effects.declare("note", Param("text", ParamType.STRING, required=True))
def note(args, ctx):
    """Append a line to the receipt, tagged with the running rule's label."""
    label = get_path(ctx, "rule.label", default="?")
    notes = get_path(ctx, "receipt", default=[])
    set_path(ctx, "receipt", notes + [f"[{label}] {args['text']}"])


# =============================================================================
# Rules
# =============================================================================

RULES = [
    # 1. Standalone rule: members get free shipping
    {
        "label": "member shipping",
        "conditions": 'is_truthy(path="user.member")',
        "effects": """
            set(path="cart.shipping", value=0)
            note(text="free shipping for members")
        """,
    },
    # 2. Rule set: only the first matching volume tier applies
    [
        {
            "label": "gold tier",
            "conditions": 'greater_than_or_equal(path="cart.subtotal", value=500)',
            "effects": 'multiply(path="cart.subtotal", value=0.8) note(text="20% off")',
        },
        {
            "label": "silver tier",
            "conditions": 'greater_than_or_equal(path="cart.subtotal", value=100)',
            "effects": 'multiply(path="cart.subtotal", value=0.9) note(text="10% off")',
        },
    ],
    # 3. Custom predicate combined with built-ins
    {
        "label": "welcome coupon",
        "conditions": 'has_coupon(code="WELCOME") & ~is_truthy(path="user.returning")',
        "effects": 'subtract(path="cart.subtotal", value=5) note(text="welcome coupon")',
    },
    # 4. Totals are computed last
    {
        "label": "total",
        "conditions": "always",
        "effects": """
            set(path="cart.total", value_path="cart.subtotal")
            round(path="cart.total", precision=2)
        """,
    },
]


# =============================================================================
# Run examples
# =============================================================================

if __name__ == "__main__":
    engine = RuleEngine(conditions=conditions.build(), effects=effects.build())

    # --- 1. Explain a condition ---
    print("=== 1. Explain ===\n")
    print(explain(parse_condition(RULES[2]["conditions"])))

    # --- 2. Process rules ---
    print("\n=== 2. Process Rules ===\n")
    ctx = {
        "user": {"member": True, "returning": False},
        "cart": {"subtotal": 240.0, "shipping": 4.95, "coupons": ["WELCOME"]},
    }
    asyncio.run(engine.process_rules(RULES, ctx))
    del ctx["rule"]
    print(json.dumps(ctx, indent=2))

    # --- 3. Tracing ---
    print("\n=== 3. Tracing ===\n")
    ctx = {"user": {}, "cart": {"subtotal": 50.0, "shipping": 4.95}}
    with use_tracing(PrintHook()):
        asyncio.run(engine.process_rules(RULES, ctx))
