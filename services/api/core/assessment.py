# services/api/core/assessment.py
"""
Record builders for the conservator assessment form.

Each operation validates its input, generates identifiers, derives the
computed fields and then goes ensure_sheet -> next_free_row -> write_record
on the tabular store. Nothing here is transactional: a failure part-way
leaves the rows already written in place.
"""
from __future__ import annotations

import base64
import logging
import re
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Union
from zoneinfo import ZoneInfo

from adapters.base import FileStore, TabularStore
from adapters.sheets import HEADERS, KEY_HEADERS, SH_BATCHES, SH_ITEMS, SH_PHOTOS, SH_SELECT
from core.errors import ValidationError
from core.notes import build_notes, needs_replacement, needs_reupholstery, note_for_historic_code
from core.properties import PropertyStore, client_key, photos_key
from schemas.assessment import ItemPayload, PhotoIn

logger = logging.getLogger(__name__)

DATA_URL_RE = re.compile(r"^data:(image/[^;]+);base64,(.+)$")


def _bool_cell(v: bool) -> str:
    return "TRUE" if v else "FALSE"


def _millis(now: datetime) -> str:
    return f"{now.microsecond // 1000:03d}"


def batch_id_for(now: datetime) -> str:
    """BATCH-yyyyMMdd-HHmmss-SSS"""
    return "BATCH-" + now.strftime("%Y%m%d-%H%M%S-") + _millis(now)


def short_id(prefix: str) -> str:
    return prefix + str(uuid.uuid4())[:8]


def item_code(n: int) -> str:
    return "I" + str(n).zfill(3)


class AssessmentService:
    def __init__(
        self,
        store: TabularStore,
        files: FileStore,
        props: PropertyStore,
        *,
        tz: str = "UTC",
        photos_root_id: Union[str, Callable[[], str], None] = None,
        notes_rules_sheet: str = "NotesRules",
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self.files = files
        self.props = props
        self.tz = ZoneInfo(tz)
        self._photos_root_id = photos_root_id
        self.notes_rules_sheet = notes_rules_sheet
        self._clock = clock

    def now(self) -> datetime:
        if self._clock is not None:
            return self._clock()
        return datetime.now(self.tz)

    def photos_root_id(self) -> str:
        root = self._photos_root_id
        if callable(root):
            root = root()
        return root or ""

    # ========== Batches ==========

    def new_batch(self, client: str, assessor_name: str) -> Dict[str, str]:
        """Create a batch row and the client's photo folder."""
        if not (client or "").strip():
            raise ValidationError("Client is required")
        if not (assessor_name or "").strip():
            raise ValidationError("Assessor is required")

        now = self.now()
        batch_id = batch_id_for(now)
        folder_id = self.files.ensure_client_folder(self.photos_root_id(), client)

        self.props.set_property(client_key(batch_id), client)
        self.props.set_property(photos_key(batch_id), folder_id)

        ws = self.store.ensure_sheet(SH_BATCHES, HEADERS[SH_BATCHES])
        row = self.store.next_free_row(ws, KEY_HEADERS[SH_BATCHES])
        self.store.write_record(ws, row, {
            "BatchID": batch_id,
            "Client": client,
            "StartDate": now.strftime("%Y-%m-%d"),
            "Assessor": assessor_name,
            "Status": "Open",
        })
        logger.info(f"Created batch {batch_id} for client '{client}' (row {row})")
        return {"batchId": batch_id, "clientFolderId": folder_id}

    # ========== Items ==========

    def next_code_for_batch(self, batch_id: str) -> str:
        """I001, I002, ... by counting the batch's existing items (racy, display only)."""
        items = [r for r in self.store.read_all(SH_ITEMS) if r.get("BatchID") == batch_id]
        return item_code(len(items) + 1)

    def save_item(self, payload: Union[ItemPayload, Mapping[str, Any], None]) -> Dict[str, str]:
        """Save an item and its selections."""
        try:
            if payload is None:
                raise ValidationError("Missing batchId")
            if not isinstance(payload, ItemPayload):
                payload = ItemPayload.model_validate(payload)
            if not payload.batch_id:
                raise ValidationError("Missing batchId")

            items_ws = self.store.ensure_sheet(SH_ITEMS, HEADERS[SH_ITEMS])
            sel_ws = self.store.ensure_sheet(SH_SELECT, HEADERS[SH_SELECT])

            item_id = short_id("ITM-")
            code = self.next_code_for_batch(payload.batch_id)
            created_at = self.now().strftime("%Y-%m-%d %H:%M:%S")

            rule_note = note_for_historic_code(self.store, payload.historic_code, self.notes_rules_sheet)
            auto_notes = build_notes(payload.historic_yes, [s.code for s in payload.selections])
            notes = "\n".join(n for n in (rule_note, auto_notes) if n)

            row = self.store.next_free_row(items_ws, KEY_HEADERS[SH_ITEMS])
            self.store.write_record(items_ws, row, {
                "ItemID": item_id,
                "BatchID": payload.batch_id,
                "Code": code,
                "PerilType": payload.peril,
                "ImpactLevel": payload.impact,
                "Type": payload.type,
                "Title": payload.title,
                "Artist": payload.artist,
                "Material": payload.material,
                "Date": payload.date,
                "Dimensions": payload.dimensions,
                "Features": payload.features,
                "HistoricIssuesPresent": _bool_cell(payload.historic_yes),
                "HistoricCode": payload.historic_code.lower(),
                "HistoricNotes": payload.historic_notes,
                "TreatmentTimeMinutes": payload.treatment_time_minutes or "",
                "TreatmentTimeUnit": payload.treatment_time_unit,
                "TreatmentTime": payload.treatment_time or "",
                "AdditionalNotes": payload.incident_notes,
                "OtherNotes": payload.other_notes,
                "Notes": notes,
                "CreatedAt": created_at,
            })

            for s in payload.selections:
                is_local = bool(s.localized)
                note = s.note or ""
                sel_row = self.store.next_free_row(sel_ws, KEY_HEADERS[SH_SELECT])
                self.store.write_record(sel_ws, sel_row, {
                    "SelectionID": short_id("SEL-"),
                    "ItemID": item_id,
                    "OptionCode": s.code,
                    "Severity": "",
                    "ExtentPercent": s.extent if s.extent is not None else "",
                    "Location": s.location,
                    "ItemType": payload.type,
                    "UseSeverity": "",
                    "SeverityWord": "",
                    "BasePhrase": "",
                    "IsLocalized": _bool_cell(is_local),
                    "LocPart": "",
                    "ExtPart": "",
                    "CondLine": "",
                    "GlobalFrag": "" if is_local else note,
                    "LocalText": note if is_local else "",
                    "LocalWhere": s.location,
                    "NeedsReplacement": _bool_cell(needs_replacement(note)),
                    "NeedsReupholstery": _bool_cell(needs_reupholstery(note)),
                })

            logger.info(f"Saved item {item_id} ({code}) with {len(payload.selections)} selection(s)")
            return {"itemId": item_id, "code": code}
        except Exception:
            logger.exception("saveItem error")
            raise

    # ========== Photos ==========

    def save_photos_data_urls(
        self,
        batch_id: str,
        item_id: str,
        photos: Iterable[Union[PhotoIn, Mapping[str, Any]]],
    ) -> Dict[str, int]:
        """
        Decode data-URL photos into the batch's Drive folder and record them.
        Entries that are not image data URLs are skipped; per-photo failures
        are logged and skipped, so `saved` may be less than len(photos).
        """
        if not batch_id or not item_id:
            raise ValidationError("Missing batchId or itemId")
        photos = list(photos or [])
        if not photos:
            return {"saved": 0}

        ws = self.store.ensure_sheet(SH_PHOTOS, HEADERS[SH_PHOTOS])
        folder_id = self.props.get_property(photos_key(batch_id))
        if not folder_id:
            raise ValidationError("Photo folder not configured for this batch.")

        when = self.now().strftime("%Y%m%d-%H%M%S")
        saved = 0
        for idx, p in enumerate(photos):
            try:
                if isinstance(p, PhotoIn):
                    data_url = p.data_url or ""
                elif isinstance(p, Mapping):
                    data_url = PhotoIn.model_validate(p).data_url
                else:
                    data_url = ""
                m = DATA_URL_RE.match(data_url)
                if not m:
                    continue
                content_type = m.group(1)
                data = base64.b64decode(m.group(2), validate=True)
                ext = "png" if content_type == "image/png" else "jpg"
                name = f"{item_id}-{when}-{idx + 1:02d}.{ext}"
                file_id = self.files.create_file(folder_id, name, data, content_type)

                row = self.store.next_free_row(ws, KEY_HEADERS[SH_PHOTOS])
                self.store.write_record(ws, row, {
                    "PhotoID": str(uuid.uuid4()),
                    "ItemID": item_id,
                    "Image": file_id,
                    "Caption": "",
                    "TakenAt": self.now().strftime("%Y-%m-%d %H:%M:%S"),
                    "Lat": "",
                    "Lng": "",
                    "Uploader": "",
                })
                saved += 1
            except Exception as e:
                logger.exception(f"photo save failed (item {item_id}, #{idx + 1}): {e}")

        logger.info(f"Saved {saved}/{len(photos)} photo(s) for item {item_id}")
        return {"saved": saved}

    # ========== One-click setup / repair ==========

    def initialize_database(self) -> Dict[str, Any]:
        """Create any missing sheets / header columns. Safe to run repeatedly."""
        urls: Dict[str, str] = {}
        for name, header in HEADERS.items():
            ws = self.store.ensure_sheet(name, header)
            urls[name] = self.store.sheet_url(ws)
        return {"documentUrl": self.store.url, "sheets": urls}
