# Purpose: Tests for ZIP packaging and the run manifest (ordering, determinism, duplicate and empty guards).

import io
import zipfile
from datetime import date
from decimal import Decimal

import pytest

from bond_generator.errors import PackagingError
from bond_generator.models import FilledDocument, JoinedBond
from bond_generator.packaging import (
    FIXED_MEMBER_TIMESTAMP,
    archive_metadata,
    assemble_archive,
    build_manifest,
)


def _doc(seq, name=None, content=None, series=None):
    bond = JoinedBond(
        cusip=f"CUSIP{seq:03d}X",
        maturity_date=date(2030 + seq, 6, 1),
        principal_amount=5000,
        coupon_rate=Decimal("4"),
        maturity_row_number=seq + 1,
        cusip_row_number=seq + 1,
        dated_date=date(2025, 1, 15),
        series=series,
        sequence_number=seq,
        bond_number=f"BOND-{seq:03d}",
    )
    return FilledDocument(
        bond=bond,
        filename=name or f"Bond_Series_{2030 + seq}0601_BOND-{seq:03d}.docx",
        content=content if content is not None else f"certificate {seq}".encode(),
    )


def test_members_in_sequence_order_with_fixed_timestamps():
    archive = assemble_archive([_doc(3), _doc(1), _doc(2)])
    with zipfile.ZipFile(io.BytesIO(archive)) as zf:
        infos = zf.infolist()
        assert [i.filename for i in infos] == [_doc(n).filename for n in (1, 2, 3)]
        assert all(i.date_time == FIXED_MEMBER_TIMESTAMP for i in infos)
        assert all(i.compress_type == zipfile.ZIP_DEFLATED for i in infos)
        assert zf.read(infos[0].filename) == b"certificate 1"


def test_identical_input_gives_identical_archive():
    docs = [_doc(1), _doc(2)]
    assert assemble_archive(docs) == assemble_archive(list(reversed(docs)))


def test_archive_metadata():
    archive = assemble_archive([_doc(1), _doc(2)])
    meta = archive_metadata(archive)
    assert meta["file_count"] == 2
    assert meta["total_size"] == len(archive)
    assert meta["files"][0] == _doc(1).filename


def test_empty_document_list_is_refused():
    with pytest.raises(PackagingError) as exc:
        assemble_archive([])
    assert exc.value.code == "NO_BONDS"


def test_duplicate_names_are_refused():
    with pytest.raises(PackagingError) as exc:
        assemble_archive([_doc(1, name="same.docx"), _doc(2, name="same.docx")])
    assert exc.value.details["duplicate_names"] == ["same.docx"]
    assert exc.value.code == "ZIP_ERROR"


def test_empty_document_is_refused():
    with pytest.raises(PackagingError):
        assemble_archive([_doc(1), _doc(2, content=b"")])


def test_build_manifest():
    docs = [_doc(2, series="2025A"), _doc(1, series="2025A")]
    manifest = build_manifest([d.bond for d in docs], docs, "abc123")
    assert manifest.bond_count == 2
    assert manifest.first_bond_number == "BOND-001"
    assert manifest.last_bond_number == "BOND-002"
    assert manifest.series == ["2025A"]
    assert manifest.filenames == [docs[1].filename, docs[0].filename]
    assert manifest.to_dict()["dated_date"] == "2025-01-15"
