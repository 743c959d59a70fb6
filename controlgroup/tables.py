"""
Row-by-row layouts for the authoring grid and the peer viewer.

Both tables share the same three fixed columns (feature, intervention,
complete control); these helpers line the control columns up against the
question's feature list so the templates only loop.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from django.conf import settings

from submissions import store

from .workflow import CellValue, ControlSelection, WorkflowState, cell_style, options_for


@dataclass
class Cell:
    value: CellValue
    style: str
    title: str = ''
    column: int = 0
    row: int = 0
    name: str = ''
    options: List[CellValue] = field(default_factory=list)

    @property
    def label(self) -> str:
        return self.value.label


@dataclass
class Row:
    feature: str
    description: str
    complete: Cell
    cells: List[Cell]


@dataclass
class PeerTable:
    headers: List[str]
    rows: List[Row]
    total_count: int

    @property
    def is_empty(self) -> bool:
        return not self.headers


def _title(selection: ControlSelection) -> str:
    if selection.value is CellValue.DIFFERENT and selection.description:
        return selection.description
    return selection.value.value


def _complete_cell(feature) -> Cell:
    value = CellValue.parse(feature.option1)
    return Cell(value=value, style=cell_style(value), title=feature.option1_text)


def authoring_rows(question, state: WorkflowState) -> List[Row]:
    rows = []
    for row_index, feature in enumerate(question.features):
        options = options_for(feature)
        cells = []
        for col_index, column in enumerate(state.columns):
            selection = column[row_index] if row_index < len(column) else ControlSelection()
            cells.append(Cell(
                value=selection.value,
                style=cell_style(selection.value, selection.color),
                title=_title(selection),
                column=col_index,
                row=row_index,
                name=state.names[col_index],
                options=options,
            ))
        rows.append(Row(feature=feature.feature, description=feature.description,
                        complete=_complete_cell(feature), cells=cells))
    return rows


def fetch_peer_submissions(question_id: int, session_id: Optional[str], limit: Optional[int] = None):
    """Most recent submissions for the question, newest first."""
    limit = limit or settings.PEER_DISPLAY_LIMIT
    return store.list_submissions(question_id=question_id, session_id=session_id, page=1, limit=limit)


def peer_table(question, submissions, total_count: int) -> PeerTable:
    headers = [s.control_name for s in submissions]
    rows = []
    for row_index, feature in enumerate(question.features):
        cells = []
        for col_index, submission in enumerate(submissions):
            stored = submission.new_control_selections
            raw = stored[row_index] if row_index < len(stored) and isinstance(stored[row_index], dict) else {}
            selection = ControlSelection.from_dict(raw)
            cells.append(Cell(
                value=selection.value,
                style=cell_style(selection.value, selection.color),
                title=_title(selection),
                column=col_index,
                row=row_index,
            ))
        rows.append(Row(feature=feature.feature, description=feature.description,
                        complete=_complete_cell(feature), cells=cells))
    return PeerTable(headers=headers, rows=rows, total_count=total_count)
