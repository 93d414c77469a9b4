"""
Embedded ``@{...}`` expression language.

Tokenizer, parser, function registry and evaluator for bound strings.

Usage:
    from divcore.domain.expressions import evaluate, parse_template

    template = parse_template("Count: @{counter + 1}")
    result = evaluate(template, store.snapshot())
    # result.value == "Count: 1"
"""

from divcore.domain.expressions.evaluator import EvalResult, Evaluator, evaluate
from divcore.domain.expressions.functions import Function, FunctionRegistry
from divcore.domain.expressions.parser import (
    TemplateCache,
    has_expression,
    parse_expression,
    parse_template,
)

__all__ = [
    "EvalResult",
    "Evaluator",
    "Function",
    "FunctionRegistry",
    "TemplateCache",
    "evaluate",
    "has_expression",
    "parse_expression",
    "parse_template",
]
