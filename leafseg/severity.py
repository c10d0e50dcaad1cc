# leafseg/severity.py

import logging
import math
import os
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import pandas as pd

from leafseg import config

log = logging.getLogger(__name__)

# Upper bound of tiers 1..10 (inclusive, tier 10 exclusive); 0 is exact, >= 1.0 is tier 11
TIER_BOUNDS: List[float] = [0.03, 0.06, 0.12, 0.25, 0.50, 0.75, 0.87, 0.94, 0.97]
MAX_TIER = 11

HEALTHY = ("Healthy Leaf", (
    "No treatment necessary.",
))
MILD = ("Mild Infection", (
    "Remove and destroy infected lower leaves to prevent disease spread.",
    "Stake or cage plants to improve airflow and reduce humidity.",
    "Use drip irrigation or water at the base to keep foliage dry.",
))
MODERATE = ("Moderate Infection", (
    "Use fungicides containing chlorothalonil or copper-based products every 7-10 days.",
    "Apply bio-fungicides like Bacillus subtilis or Bacillus amyloliquefaciens.",
    "Continue removing infected leaves and maintain proper spacing to reduce humidity.",
))
SEVERE = ("Severe Infection", (
    "Rotate fungicides with different modes of action, like strobilurins and chlorothalonil.",
    "Uproot and destroy heavily infected plants.",
    "Remove all plant debris and practice crop rotation to prevent overwintering pathogens.",
))


def _default_table() -> Dict[int, Tuple[str, Tuple[str, ...]]]:
    table = {0: HEALTHY}
    for t in range(1, 4):
        table[t] = MILD
    for t in range(4, 7):
        table[t] = MODERATE
    for t in range(7, MAX_TIER + 1):
        table[t] = SEVERE
    return table


@dataclass(frozen=True)
class Severity:
    tier: int
    label: str
    treatment: Tuple[str, ...]


def tier_for(ratio: float) -> int:
    r = float(ratio)
    if math.isnan(r) or math.isinf(r) or r < 0:
        raise ValueError(f"severity ratio must be a finite non-negative number, got {ratio}")
    if r == 0:
        return 0
    for i, bound in enumerate(TIER_BOUNDS):
        if r <= bound:
            return i + 1
    if r < 1.0:
        return 10
    return MAX_TIER


def _load_rules_override(path: str) -> Dict[int, Tuple[str, Tuple[str, ...]]]:
    """tier,label,treatment CSV; treatment lines are separated by '|'."""
    if not path or not os.path.exists(path):
        return {}
    try:
        df = pd.read_csv(path)
        m: Dict[int, Tuple[str, Tuple[str, ...]]] = {}
        for _, row in df.iterrows():
            tier = int(row["tier"])
            if not 0 <= tier <= MAX_TIER:
                continue
            lines = tuple(s.strip() for s in str(row["treatment"]).split("|") if s.strip())
            m[tier] = (str(row["label"]).strip(), lines)
        return m
    except Exception as e:
        log.warning("ignoring severity rules %s: %s", path, e)
        return {}


class SeverityTable:
    def __init__(self, rules_csv: Optional[str] = None) -> None:
        self.table = _default_table()
        self.table.update(_load_rules_override(config.SEVERITY_RULES_CSV if rules_csv is None else rules_csv))

    def classify(self, ratio: float) -> Severity:
        tier = tier_for(ratio)
        label, treatment = self.table[tier]
        return Severity(tier=tier, label=label, treatment=treatment)


_default: Optional[SeverityTable] = None


def classify(ratio: float) -> Severity:
    global _default
    if _default is None:
        _default = SeverityTable()
    return _default.classify(ratio)


def format_severity(ratio: float) -> str:
    return "%.2f%%" % (ratio * 100)
