"""
Built-in predicate and operation catalogs.

``CONDITIONS`` and ``EFFECTS`` are registries that RuleEngine merges custom
registries over unless ``EngineConfig(include_builtins=False)`` is given.
"""

from rulekit.builtins._compare import deep_merge, is_match
from rulekit.builtins.conditions import CONDITIONS
from rulekit.builtins.effects import EFFECTS, round_to

__all__ = ["CONDITIONS", "EFFECTS", "deep_merge", "is_match", "round_to"]
