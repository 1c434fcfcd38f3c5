# services/api/core/notes.py
"""
Automatic note text for assessed items.

Two sources:
- NOTE_RULES: a fixed, ordered rules table (category -> trigger -> sentences)
  evaluated against the item's selected condition codes.
- The externally authored NotesRules sheet: historic code -> note text.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Tuple

logger = logging.getLogger(__name__)

STRUCTURAL_CODES = frozenset({
    "STRUCT_DAMAGED", "JOINTS_LOOSE", "VENEER_LIFTING", "VENEER_LOSS",
    "PNT_LIFTING", "PNT_LOSS", "PNT_TEAR", "WOP_MEDIA_LOSS", "WOP_HINGE_FAIL",
    "FRM_STRUCT", "GILT_ORNAMENT_CRACK", "OBJ_CORROSION", "OBJ_OXIDATION",
    "CERAMIC_CRACK", "CERAMIC_CHIP", "CERAMIC_BREAK", "TXT_TEAR",
    "UPH_FABRIC_DAMAGE", "RUG_COLOUR_RUN",
})

FLATTENING_CODES = frozenset({"WOP_COCKLING", "PNT_DEFORMATION"})

HISTORIC_SENTENCES = (
    "Historic issues, including age, wear and use issues will not be addressed as part of the claim",
    "Historic issues can be addressed outside the claim on a private client basis should this be of interest to the client.",
)
MINOR_DIFFERENCE_SENTENCE = "Some minor visible difference may remain in impacted area following treatment"
STRUCTURAL_SENTENCE = "Underlying material instability will remain following treatment"
FLATTENING_SENTENCE = (
    "Given the materials we may face limitation in flattening the artwork, "
    "we will take this to a safe level"
)

# Trigger kinds
HISTORIC = "historic"
ANY_CODE = "any"
CODES = "codes"


@dataclass(frozen=True)
class NoteRule:
    name: str
    trigger: str
    sentences: Tuple[str, ...]
    codes: FrozenSet[str] = frozenset()

    def matches(self, historic_yes: bool, codes: FrozenSet[str]) -> bool:
        if self.trigger == HISTORIC:
            return historic_yes
        if self.trigger == ANY_CODE:
            return bool(codes)
        return not self.codes.isdisjoint(codes)


# Evaluated in order; the order is the order sentences appear in the notes.
NOTE_RULES: Tuple[NoteRule, ...] = (
    NoteRule("historic", HISTORIC, HISTORIC_SENTENCES),
    NoteRule("minor_difference", ANY_CODE, (MINOR_DIFFERENCE_SENTENCE,)),
    NoteRule("structural", CODES, (STRUCTURAL_SENTENCE,), STRUCTURAL_CODES),
    NoteRule("flattening", CODES, (FLATTENING_SENTENCE,), FLATTENING_CODES),
)


def build_notes(historic_yes: bool, codes: Iterable[str], rules: Tuple[NoteRule, ...] = NOTE_RULES) -> str:
    """Compose the auto-notes text for an item, one sentence per line."""
    code_set = frozenset(c for c in codes if c)
    out = []
    for rule in rules:
        if rule.matches(bool(historic_yes), code_set):
            out.extend(rule.sentences)
    return "\n".join(out)


_REPLACEMENT_RE = re.compile(r"Replacement needed", re.IGNORECASE)
_REUPHOLSTERY_RE = re.compile(r"Reupholstery needed", re.IGNORECASE)


def needs_replacement(note: str) -> bool:
    return bool(_REPLACEMENT_RE.search(note or ""))


def needs_reupholstery(note: str) -> bool:
    return bool(_REUPHOLSTERY_RE.search(note or ""))


def note_for_historic_code(store, code: str, sheet_name: str = "NotesRules") -> str:
    """
    Look up the note text for a historic-issue code in the NotesRules sheet.

    Column A is the code, column B the note; row 1 is a header. Matching is
    trimmed and case-insensitive. Returns "" when the code is blank, the sheet
    is missing or unreadable - auto notes never fail an item write.
    """
    code = str(code or "").strip()
    if not code:
        return ""
    try:
        ws = store.worksheet(sheet_name)
        if ws is None:
            return ""
        rows = ws.get_all_values()
    except Exception as e:
        logger.warning(f"NotesRules lookup failed for code '{code}': {e}")
        return ""

    wanted = code.lower()
    for row in rows[1:]:
        a = str(row[0] if len(row) > 0 else "").strip()
        if not a:
            continue
        if a.lower() == wanted:
            return str(row[1] if len(row) > 1 else "").strip()
    return ""
