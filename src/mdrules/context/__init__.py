"""Context assembly for mdrules.

Selects the documents that apply to a request, pulls in the documents they
link to, and renders the ordered result for an agent.

Usage:
    from mdrules.context import ContextAssembler, ContextFormatter

    assembler = ContextAssembler(index, hoist=True)
    items = assembler.assemble(["src/main.ts"], ["Database conventions"])
    print(ContextFormatter(root, index).format_context(items))
"""

from mdrules.context.engine import ContextAssembler
from mdrules.context.formatter import ContextFormatter
from mdrules.context.models import Classification, ContextItem, ContextPackage

__all__ = [
    "Classification",
    "ContextAssembler",
    "ContextFormatter",
    "ContextItem",
    "ContextPackage",
]
