# joiner.py
# Purpose: Join maturity rows to CUSIP rows on the (maturity date, series) composite key.
# A key joins only when exactly one row on each side carries it; everything else is reported.

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import List, Optional, Sequence

from .models import AmbiguousKey, CusipRow, JoinedBond, JoinKey, JoinResult, MaturityRow

logger = logging.getLogger(__name__)


def normalize_series(series: Optional[str]) -> Optional[str]:
    """Trim a series label; blank becomes None. Comparison stays case-sensitive."""
    if series is None:
        return None
    trimmed = str(series).strip()
    return trimmed or None


def _group(rows: Sequence, key_fn) -> "OrderedDict[JoinKey, List]":
    groups: "OrderedDict[JoinKey, List]" = OrderedDict()
    for row in rows:
        groups.setdefault(key_fn(row), []).append(row)
    return groups


def _key(row) -> JoinKey:
    return (row.maturity_date, normalize_series(row.series))


def join_schedules(maturity_rows: Sequence[MaturityRow], cusip_rows: Sequence[CusipRow]) -> JoinResult:
    """
    Joins the two validated schedules.

    Joined bonds keep the maturity schedule's input order; numbering decides the
    final order. No value is ever defaulted: principal words and sequence numbers
    are filled in by later stages.

    Args:
        maturity_rows: Valid rows from the maturity schedule.
        cusip_rows: Valid rows from the CUSIP schedule.

    Returns:
        JoinResult: Joined bonds plus unmatched and ambiguous rows from either side.
    """
    maturity_groups = _group(maturity_rows, _key)
    cusip_groups = _group(cusip_rows, _key)
    logger.info(
        f"Joining {len(maturity_rows)} maturity rows ({len(maturity_groups)} keys) with "
        f"{len(cusip_rows)} CUSIP rows ({len(cusip_groups)} keys)"
    )

    joined: List[JoinedBond] = []
    unmatched_maturity: List[MaturityRow] = []
    unmatched_cusip: List[CusipRow] = []
    ambiguous: List[AmbiguousKey] = []

    for key, m_rows in maturity_groups.items():
        c_rows = cusip_groups.get(key, [])
        if len(m_rows) > 1 or len(c_rows) > 1:
            ambiguous.append(
                AmbiguousKey(
                    key=key,
                    maturity_rows=[r.row_number for r in m_rows],
                    cusip_rows=[r.row_number for r in c_rows],
                )
            )
            logger.warning(
                f"Ambiguous join key {key[0].isoformat()}/{key[1]}: maturity rows "
                f"{[r.row_number for r in m_rows]}, CUSIP rows {[r.row_number for r in c_rows]}"
            )
            continue
        if not c_rows:
            unmatched_maturity.append(m_rows[0])
            continue
        m, c = m_rows[0], c_rows[0]
        joined.append(
            JoinedBond(
                cusip=c.cusip,
                maturity_date=m.maturity_date,
                principal_amount=m.principal_amount,
                coupon_rate=m.coupon_rate,
                maturity_row_number=m.row_number,
                cusip_row_number=c.row_number,
                dated_date=m.dated_date,
                series=normalize_series(m.series),
            )
        )

    for key, c_rows in cusip_groups.items():
        if key in maturity_groups:
            continue
        if len(c_rows) > 1:
            ambiguous.append(
                AmbiguousKey(key=key, maturity_rows=[], cusip_rows=[r.row_number for r in c_rows])
            )
            logger.warning(
                f"Ambiguous join key {key[0].isoformat()}/{key[1]}: CUSIP rows "
                f"{[r.row_number for r in c_rows]} share a key with no maturity row"
            )
        else:
            unmatched_cusip.extend(c_rows)

    result = JoinResult(
        joined=joined,
        unmatched_maturity=unmatched_maturity,
        unmatched_cusip=unmatched_cusip,
        ambiguous=ambiguous,
    )
    if unmatched_maturity or unmatched_cusip:
        logger.warning(
            f"Unmatched rows: maturity {[r.row_number for r in unmatched_maturity]}, "
            f"CUSIP {[r.row_number for r in unmatched_cusip]}"
        )
    logger.info(
        f"Join finished: {len(joined)} joined, {len(unmatched_maturity)} unmatched maturity, "
        f"{len(unmatched_cusip)} unmatched CUSIP, {len(ambiguous)} ambiguous keys"
    )
    return result
