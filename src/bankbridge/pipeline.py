"""Import pipeline: map columns, preview against master data, then commit.

States::

    MAPPING --advance_to_preview--> PREVIEW --commit--> COMMITTED
       ^                              |
       +-------back_to_mapping--------+
    MAPPING / PREVIEW --cancel--> CANCELLED

The duplicate check runs against a snapshot of the store taken when the
pipeline enters PREVIEW. Changes made to the store after that point are
not seen before commit.
"""

from enum import Enum

from bankbridge.duplicates import find_duplicates
from bankbridge.errors import PipelineStateError, ValidationError
from bankbridge.logging_setup import get_logger
from bankbridge.mapping import (
    assign_field,
    auto_detect_mappings,
    missing_required_fields,
    transform_rows,
    validate_mappings,
)
from bankbridge.models import ColumnMapping, CreateTransactionInput, PreviewTransaction, Transaction
from bankbridge.store import TransactionStore

logger = get_logger(__name__)

DEFAULT_SOURCE_FILE = "manual_import"


class PipelineState(Enum):
    MAPPING = "mapping"
    PREVIEW = "preview"
    COMMITTED = "committed"
    CANCELLED = "cancelled"


class ImportPipeline:
    def __init__(
        self,
        store: TransactionStore,
        source_columns: list[str],
        sample_data: list[dict[str, str]],
        source_file: str = DEFAULT_SOURCE_FILE,
    ):
        self.store = store
        self.source_columns = list(source_columns)
        self.sample_data = list(sample_data)
        self.source_file = source_file
        self.state = PipelineState.MAPPING
        self.mappings: list[ColumnMapping] = auto_detect_mappings(self.source_columns)
        self.preview: list[PreviewTransaction] = []
        self.selected: set[int] = set()

    def _require(self, *states: PipelineState) -> None:
        if self.state not in states:
            allowed = " or ".join(s.value for s in states)
            raise PipelineStateError(f"Import is {self.state.value}; this step needs {allowed}")

    # --- Mapping ---

    def set_mapping(self, source_column: str, target_field: str | None) -> None:
        self._require(PipelineState.MAPPING)
        assign_field(self.mappings, source_column, target_field)

    def mapping_for(self, field: str) -> str | None:
        """Source column currently assigned to ``field``."""
        for m in self.mappings:
            if m.target_field == field:
                return m.source_column
        return None

    def missing_required_fields(self) -> list[str]:
        return missing_required_fields(self.mappings)

    async def advance_to_preview(self) -> list[PreviewTransaction]:
        """Transform every sample row and flag the ones already in master data."""
        self._require(PipelineState.MAPPING)
        validate_mappings(self.mappings)

        inputs = transform_rows(self.sample_data, self.mappings, self.source_file)
        existing = await self.store.get_all_transactions()
        duplicates = find_duplicates(inputs, existing)

        self.preview = [
            PreviewTransaction(
                index=i,
                input=txn,
                is_duplicate=i in duplicates,
                existing_transaction=duplicates.get(i),
            )
            for i, txn in enumerate(inputs)
        ]
        self.selected = {p.index for p in self.preview if not p.is_duplicate}
        self.state = PipelineState.PREVIEW
        logger.info(
            "Import preview: %d rows, %d duplicates", len(self.preview), len(duplicates)
        )
        return self.preview

    # --- Preview ---

    def back_to_mapping(self) -> None:
        self._require(PipelineState.PREVIEW)
        self.preview = []
        self.selected = set()
        self.state = PipelineState.MAPPING

    def toggle(self, index: int) -> bool:
        """Flip selection of one row; returns whether it is now selected."""
        self._require(PipelineState.PREVIEW)
        if not 0 <= index < len(self.preview):
            raise ValidationError(f"No preview row at index {index}")
        if index in self.selected:
            self.selected.discard(index)
            return False
        self.selected.add(index)
        return True

    def select_all(self) -> None:
        self._require(PipelineState.PREVIEW)
        self.selected = {p.index for p in self.preview}

    def deselect_all(self) -> None:
        self._require(PipelineState.PREVIEW)
        self.selected = set()

    def select_duplicates(self) -> None:
        self._require(PipelineState.PREVIEW)
        self.selected |= {p.index for p in self.preview if p.is_duplicate}

    def deselect_duplicates(self) -> None:
        self._require(PipelineState.PREVIEW)
        self.selected -= {p.index for p in self.preview if p.is_duplicate}

    def selected_inputs(self) -> list[CreateTransactionInput]:
        return [p.input for p in self.preview if p.index in self.selected]

    def summary(self) -> dict:
        duplicates = sum(1 for p in self.preview if p.is_duplicate)
        return {
            "total": len(self.preview),
            "duplicates": duplicates,
            "new": len(self.preview) - duplicates,
            "selected": len(self.selected),
            "selected_duplicates": sum(
                1 for p in self.preview if p.is_duplicate and p.index in self.selected
            ),
        }

    async def commit(self) -> list[Transaction]:
        """Add the selected rows to the store in one batch."""
        self._require(PipelineState.PREVIEW)
        batch = self.selected_inputs()
        if not batch:
            raise ValidationError("No transactions selected")
        created = await self.store.add_transactions(batch)
        self.state = PipelineState.COMMITTED
        logger.info("Imported %d transactions from %s", len(created), self.source_file)
        return created

    def cancel(self) -> None:
        self._require(PipelineState.MAPPING, PipelineState.PREVIEW)
        self.mappings = []
        self.preview = []
        self.selected = set()
        self.state = PipelineState.CANCELLED
