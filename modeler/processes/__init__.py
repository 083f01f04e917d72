"""
Built-in process types.

Importing this package registers them in ProcessRegistry.global_registry();
install_builtins() copies them into a custom registry.
"""

from modeler.processes.builtin import (  # noqa: F401 - registers built-in process types
    BUILTIN_PROCESSES,
    AccumulateProcess,
    ConstantProcess,
    RenameProcess,
)
from modeler.processes.expression import (  # noqa: F401 - registers "expression"
    ExpressionProcess,
    SafeExpressionEvaluator,
    compile_expression,
)


def install_builtins(registry) -> None:
    """Register every built-in process type in registry."""
    for cls in (*BUILTIN_PROCESSES, ExpressionProcess):
        registry.register(cls.process_type, cls)


__all__ = [
    "AccumulateProcess",
    "ConstantProcess",
    "ExpressionProcess",
    "RenameProcess",
    "SafeExpressionEvaluator",
    "compile_expression",
    "install_builtins",
]
