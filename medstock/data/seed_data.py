#!/usr/bin/env python3
"""
seed_data.py

Writes the default ward formulary into a JSON state store (default: ward_data).

Run:
  python -m medstock.data.seed_data --data-dir ward_data
"""

from __future__ import annotations

import argparse
import sys
from datetime import date, datetime, timezone
from typing import List, Optional

from .backends import JsonFileStore
from .interface import MEDICATIONS
from .models import Medication
from .state import WardState
from ..config import get_config
from ..logging import get_logger

logger = get_logger(__name__)

# -----------------------------
# Default formulary
# -----------------------------

DEFAULT_FORMULARY = [
    # id, name, dosage, ref, stock, threshold, category, expiry, kind
    ("n1", "Lasix 40 mg TAB", "40 mg", "LSX-40-001", 50, 10, "Diuretics", date(2028, 5, 1), "drug"),
    ("n2", "Captopril 25 mg TAB", "25 mg", "CPT-25-012", 40, 10, "Antihypertensives", date(2026, 5, 1), "drug"),
    ("n4", "Paracetamol 500 mg TAB", "500 mg", "PCM-500-101", 100, 20, "Analgesics", date(2028, 5, 1), "drug"),
    ("va_flu", "FLU Vaccine", "Adult Dose", "VAC-FLU-S", 67, 10, "Adult Vaccine", date(2026, 6, 1), "vaccine_adult"),
    ("vc_hexa", "HEXA Vaccine", "Pediatric", "VAC-HEX-P", 51, 8, "Pediatric Vaccine", date(2026, 2, 1), "vaccine_child"),
]


def default_medications(now: Optional[datetime] = None) -> List[Medication]:
    now = now or datetime.now(timezone.utc)
    return [
        Medication(
            id=mid,
            name=name,
            dosage=dosage,
            ref_number=ref,
            current_stock=stock,
            min_threshold=threshold,
            category=category,
            expiry_date=expiry,
            last_updated=now,
            kind=kind,
        )
        for (mid, name, dosage, ref, stock, threshold, category, expiry, kind) in DEFAULT_FORMULARY
    ]


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Seed the ward formulary into a JSON state store.")
    parser.add_argument("--data-dir", default=None, help="Output folder (default: configured data_dir)")
    parser.add_argument("--force", action="store_true", help="Overwrite an existing medication list")
    args = parser.parse_args(argv)

    store = JsonFileStore(data_dir=args.data_dir or get_config().data_dir)
    if store.load(MEDICATIONS) is not None:
        if not args.force:
            logger.error(f"Medications already present in {store.data_dir}; use --force to overwrite")
            return 1
        store.save(MEDICATIONS, None)

    state = WardState.load(store, seed=default_medications)
    logger.info(f"Seeded {len(state.medications)} medication(s) into {store.data_dir}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
