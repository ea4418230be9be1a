# packaging.py
# Purpose: Bundle filled certificates into one ZIP archive (members in sequence order,
# fixed timestamps so identical inputs give identical archives) and describe the run.

from __future__ import annotations

import io
import logging
import zipfile
from typing import Any, Dict, List, Sequence

from .errors import PackagingError
from .models import FilledDocument, JoinedBond, Manifest

logger = logging.getLogger(__name__)

# Earliest timestamp the ZIP format can store
FIXED_MEMBER_TIMESTAMP = (1980, 1, 1, 0, 0, 0)


def _validate_documents(documents: Sequence[FilledDocument]) -> None:
    if not documents:
        raise PackagingError("No bonds to assemble into the archive", code="NO_BONDS")
    empty = [d.filename for d in documents if not d.content]
    if empty:
        raise PackagingError(
            f"Bond documents are empty: {empty}", details={"empty_documents": empty}
        )
    seen: Dict[str, int] = {}
    for d in documents:
        seen[d.filename] = seen.get(d.filename, 0) + 1
    duplicates = sorted(name for name, count in seen.items() if count > 1)
    if duplicates:
        raise PackagingError(
            f"Duplicate archive member names: {duplicates}",
            details={"duplicate_names": duplicates},
        )


def assemble_archive(documents: Sequence[FilledDocument]) -> bytes:
    """
    Builds the deflated ZIP in memory. Nothing is returned unless every member was written.

    Raises:
        PackagingError: empty document list, an empty document, duplicate names or a write failure.
    """
    logger.info(f"Assembling archive with {len(documents)} documents")
    _validate_documents(documents)
    ordered = sorted(documents, key=lambda d: (d.bond.sequence_number or 0, d.filename))
    buffer = io.BytesIO()
    try:
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for doc in ordered:
                info = zipfile.ZipInfo(doc.filename, date_time=FIXED_MEMBER_TIMESTAMP)
                info.compress_type = zipfile.ZIP_DEFLATED
                info.external_attr = 0o644 << 16
                archive.writestr(info, doc.content)
    except (OSError, ValueError, zipfile.BadZipFile) as e:
        logger.error(f"Archive assembly failed: {e}", exc_info=True)
        raise PackagingError(
            "Failed to create the ZIP archive", details={"error": str(e), "bond_count": len(documents)}
        ) from e
    data = buffer.getvalue()
    logger.info(
        f"Archive assembled: {len(ordered)} members, {len(data)} bytes "
        f"({ordered[0].filename} .. {ordered[-1].filename})"
    )
    return data


def archive_metadata(archive: bytes) -> Dict[str, Any]:
    """File count, total size and member names of an assembled archive."""
    with zipfile.ZipFile(io.BytesIO(archive)) as zf:
        names = zf.namelist()
    return {"file_count": len(names), "total_size": len(archive), "files": names}


def build_manifest(
    bonds: Sequence[JoinedBond], documents: Sequence[FilledDocument], template_id: str
) -> Manifest:
    ordered = sorted(bonds, key=lambda b: b.sequence_number or 0)
    dated_dates = sorted({b.dated_date for b in ordered if b.dated_date is not None})
    series: List[str] = sorted({b.series for b in ordered if b.series})
    return Manifest(
        bond_count=len(ordered),
        dated_date=dated_dates[0] if dated_dates else None,
        series=series,
        template_id=template_id,
        filenames=[d.filename for d in sorted(documents, key=lambda d: d.bond.sequence_number or 0)],
        first_bond_number=ordered[0].bond_number if ordered else None,
        last_bond_number=ordered[-1].bond_number if ordered else None,
    )
