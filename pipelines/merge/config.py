from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

KEY_DELIMITER = "_"

# Household-level key components, in key order
HOUSEHOLD_KEY_FIELDS: Tuple[str, ...] = ("YEAR", "QUARTER", "PSU", "EAUM", "HHNO")

PERSON_KEY_COL = "person_id"
HOUSEHOLD_KEY_COL = "hh_id"

ROSTER = "roster"
EMPLOYMENT = "employment"
MIGRATION = "migration"
HOUSEHOLD = "household"

QUARTERS: Tuple[int, ...] = (1, 2, 3, 4)


@dataclass(frozen=True)
class ModuleSpec:
    name: str
    file_stem: str                 # BBS_LFS_Q{q}_{year}_<file_stem>.dta
    line_field: Optional[str]      # None for the household-level module
    suffix: str = ""               # "" for the base module
    extra_drop: Tuple[str, ...] = ()  # unsuffixed names dropped after the join

    @property
    def is_household(self) -> bool:
        return self.line_field is None

    @property
    def key_col(self) -> str:
        return HOUSEHOLD_KEY_COL if self.is_household else PERSON_KEY_COL


@dataclass(frozen=True)
class KeyFormat:
    """
    Optional zero-padding of digit-only key components.

    Keys built from unpadded integers (HHNO=1) never match keys built from
    padded strings (HHNO="0001"), so when modules disagree on formatting every
    module must be keyed with the same KeyFormat.
    """
    widths: Dict[str, int] = field(default_factory=dict)
    line_width: Optional[int] = None

    def width_for(self, field_name: str, is_line: bool = False) -> Optional[int]:
        if is_line:
            return self.line_width
        return self.widths.get(field_name)


# Matches the published example 2023_1_001_01_0001_01
PUBLISHED_KEY_FORMAT = KeyFormat(widths={"PSU": 3, "EAUM": 2, "HHNO": 4}, line_width=2)


def weight_fields(year: int) -> Dict[int, str]:
    return {q: f"wgt_{year}q{q}" for q in QUARTERS}


def default_modules(year: int = 2023) -> List[ModuleSpec]:
    """Base module first, then the join order."""
    return [
        ModuleSpec(ROSTER, "Roster_Disability", "HR_LN"),
        ModuleSpec(EMPLOYMENT, "Employment_Education", "EMP_HRLN", "_emp", ("BBSn",)),
        ModuleSpec(
            MIGRATION,
            "Migration",
            "MGT_LN",
            "_mig",
            tuple(weight_fields(year).values()),
        ),
        ModuleSpec(HOUSEHOLD, "Socio_Economic", None, "_hh", ("RU", "BBS_geo")),
    ]


def required_key_fields(modules: Sequence[ModuleSpec]) -> List[str]:
    """Key fields every master table must carry: household key plus the base person line."""
    return [*HOUSEHOLD_KEY_FIELDS, modules[0].line_field]
