"""bond_generator – assemble per-bond certificates from a tagged DOCX template.

Sub-modules:

* `parsing`          – maturity and CUSIP schedule parsers
* `joiner`           – (maturity date, series) composite-key join
* `numbering`        – canonical order and bond number labels
* `principal_words`  – amounts in words
* `tags`             – tag vocabulary, template scanning, completeness gate, manual tagging
* `filler`           – per-bond document filling
* `packaging`        – ZIP archive and manifest
* `assembler`        – the gated end-to-end run
* `drafts`           – resumable workflow state (not used by the pipeline)

Typical use::

    from bond_generator.assembler import AssemblyRequest, generate_bond_archive
"""

from .assembler import AssemblyPreview, AssemblyRequest, generate_bond_archive, preview_assembly
from .errors import BondGeneratorError
from .models import BondMetadata, BondNumberingConfig

__all__ = [
    "AssemblyPreview",
    "AssemblyRequest",
    "BondGeneratorError",
    "BondMetadata",
    "BondNumberingConfig",
    "generate_bond_archive",
    "preview_assembly",
]
