"""
State machine behind the control authoring activity.

A student moves through four stages:

    SELECTING_QUESTION -> DETAILS_SHOWN -> LOCKED -> REVIEWING

Every transition is a function ``(state, ...) -> new state``. States are
frozen dataclasses, so a transition never mutates the state it was given,
and the whole machine can be exercised without a request or a template.
Only ``submit`` and ``back_to_authoring`` touch storage, and they do so
through the callables they are handed.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from django.conf import settings

logger = logging.getLogger(__name__)

MAX_NEW_CONTROL_COLUMNS = 6


class WorkflowError(ValueError):
    pass


class Stage(str, Enum):
    SELECTING_QUESTION = 'selecting_question'
    DETAILS_SHOWN = 'details_shown'
    LOCKED = 'locked'
    REVIEWING = 'reviewing'


class CellValue(str, Enum):
    EMPTY = ''
    MATCH = 'MATCH'
    ABSENT = 'ABSENT'
    DIFFERENT = 'DIFFERENT'

    @classmethod
    def parse(cls, raw) -> 'CellValue':
        """Stored values are free text; anything unrecognised renders as empty."""
        try:
            return cls(str(raw or '').strip().upper())
        except ValueError:
            return cls.EMPTY

    @property
    def label(self) -> str:
        return self.value or '-'


# One entry per CellValue member; tests check nothing is missing.
CELL_STYLES = {
    CellValue.EMPTY: {'background-color': '#ffffff', 'color': '#333333'},
    CellValue.MATCH: {'background-color': '#2e7d32', 'color': '#ffffff'},
    CellValue.ABSENT: {'background-color': '#424242', 'color': '#ffffff'},
    CellValue.DIFFERENT: {'background-color': '#ff7ef2', 'color': '#000000'},
}


def cell_style(value: CellValue, color: Optional[str] = None) -> str:
    style = dict(CELL_STYLES[value])
    if value is CellValue.DIFFERENT and color:
        style['background-color'] = color
    return ';'.join(f'{k}:{v}' for k, v in style.items())


@dataclass(frozen=True)
class ControlSelection:
    value: CellValue = CellValue.EMPTY
    description: str = ''
    color: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        if self.value is CellValue.EMPTY:
            return False
        if self.value is CellValue.DIFFERENT:
            return bool(self.description.strip())
        return True

    def to_dict(self) -> dict:
        data = {'value': self.value.value, 'description': self.description}
        if self.color is not None:
            data['color'] = self.color
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'ControlSelection':
        return cls(
            value=CellValue.parse(data.get('value')),
            description=data.get('description') or '',
            color=data.get('color'),
        )


@dataclass(frozen=True)
class PendingDifferent:
    """A DIFFERENT pick waiting for its description and colour."""
    column: int
    row: int
    previous: ControlSelection


Column = Tuple[ControlSelection, ...]


@dataclass(frozen=True)
class WorkflowState:
    session_id: str
    stage: Stage = Stage.SELECTING_QUESTION
    question_id: Optional[int] = None
    columns: Tuple[Column, ...] = ()
    names: Tuple[str, ...] = ()
    submission_ids: Tuple[str, ...] = ()
    pending: Optional[PendingDifferent] = None

    def to_dict(self) -> dict:
        return {
            'session_id': self.session_id,
            'stage': self.stage.value,
            'question_id': self.question_id,
            'columns': [[cell.to_dict() for cell in column] for column in self.columns],
            'names': list(self.names),
            'submission_ids': list(self.submission_ids),
            'pending': None if self.pending is None else {
                'column': self.pending.column,
                'row': self.pending.row,
                'previous': self.pending.previous.to_dict(),
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'WorkflowState':
        pending = data.get('pending')
        return cls(
            session_id=data['session_id'],
            stage=Stage(data.get('stage', Stage.SELECTING_QUESTION.value)),
            question_id=data.get('question_id'),
            columns=tuple(
                tuple(ControlSelection.from_dict(cell) for cell in column)
                for column in data.get('columns', [])
            ),
            names=tuple(data.get('names', [])),
            submission_ids=tuple(data.get('submission_ids', [])),
            pending=None if not pending else PendingDifferent(
                column=pending['column'],
                row=pending['row'],
                previous=ControlSelection.from_dict(pending['previous']),
            ),
        )


@dataclass
class ColumnFailure:
    index: int
    name: str
    error: str


@dataclass
class SubmitReport:
    created_ids: List[str] = field(default_factory=list)
    failures: List[ColumnFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def _require_stage(state: WorkflowState, *stages: Stage):
    if state.stage not in stages:
        raise WorkflowError(f"Not allowed while {state.stage.value.replace('_', ' ')}")


def _require_column(state: WorkflowState, index: int):
    if not 0 <= index < len(state.columns):
        raise WorkflowError(f"No control column {index + 1}")


def _replace_cell(state: WorkflowState, column: int, row: int, cell: ControlSelection) -> WorkflowState:
    columns = list(state.columns)
    cells = list(columns[column])
    cells[row] = cell
    columns[column] = tuple(cells)
    return replace(state, columns=tuple(columns))


def new_state(session_id: str) -> WorkflowState:
    return WorkflowState(session_id=session_id)


def select_question(state: WorkflowState, question) -> WorkflowState:
    _require_stage(state, Stage.SELECTING_QUESTION, Stage.DETAILS_SHOWN)
    return replace(
        state,
        stage=Stage.DETAILS_SHOWN,
        question_id=question.id,
        columns=(),
        names=(),
        submission_ids=(),
        pending=None,
    )


def back_to_questions(state: WorkflowState) -> WorkflowState:
    _require_stage(state, Stage.DETAILS_SHOWN)
    return new_state(state.session_id)


def lock(state: WorkflowState) -> WorkflowState:
    _require_stage(state, Stage.DETAILS_SHOWN)
    return replace(state, stage=Stage.LOCKED)


def max_columns() -> int:
    return getattr(settings, 'MAX_NEW_CONTROL_COLUMNS', MAX_NEW_CONTROL_COLUMNS)


def add_column(state: WorkflowState, question) -> WorkflowState:
    """Append an empty control column; does nothing once the limit is reached."""
    _require_stage(state, Stage.LOCKED)
    if len(state.columns) >= max_columns():
        return state
    column = tuple(ControlSelection() for _ in question.features)
    return replace(state, columns=state.columns + (column,), names=state.names + ('',))


def delete_column(state: WorkflowState, index: int) -> WorkflowState:
    _require_stage(state, Stage.LOCKED)
    _require_column(state, index)

    pending = state.pending
    if pending is not None:
        if pending.column == index:
            pending = None
        elif pending.column > index:
            pending = replace(pending, column=pending.column - 1)

    return replace(
        state,
        columns=state.columns[:index] + state.columns[index + 1:],
        names=state.names[:index] + state.names[index + 1:],
        pending=pending,
    )


def rename_column(state: WorkflowState, index: int, name: str) -> WorkflowState:
    _require_stage(state, Stage.LOCKED)
    _require_column(state, index)
    names = list(state.names)
    names[index] = name or ''
    return replace(state, names=tuple(names))


def options_for(feature) -> List[CellValue]:
    """Choices offered for one feature row, in display order."""
    options = [CellValue.DIFFERENT, CellValue.MATCH]
    if feature.absent_allowed:
        options.insert(0, CellValue.ABSENT)
    return options


def set_cell(state: WorkflowState, question, column: int, row: int, value) -> WorkflowState:
    """
    Record a pick for one cell.

    MATCH and ABSENT are written straight away and drop any earlier
    description. DIFFERENT only opens the description dialog: the cell shows
    DIFFERENT until ``confirm_different`` or ``cancel_different``.
    """
    _require_stage(state, Stage.LOCKED)
    _require_column(state, column)
    if state.pending is not None:
        raise WorkflowError("Finish describing the DIFFERENT cell first")
    if not 0 <= row < len(question.features):
        raise WorkflowError(f"No feature row {row + 1}")

    choice = CellValue.parse(value)
    if choice is CellValue.EMPTY:
        raise WorkflowError(f"Unknown selection: {value!r}")
    feature = question.features[row]
    if choice not in options_for(feature):
        raise WorkflowError(f"ABSENT is not an option for {feature.feature}")

    current = state.columns[column][row]
    if choice is CellValue.DIFFERENT:
        draft = ControlSelection(
            value=CellValue.DIFFERENT,
            description=current.description if current.value is CellValue.DIFFERENT else '',
            color=current.color,
        )
        state = _replace_cell(state, column, row, draft)
        return replace(state, pending=PendingDifferent(column=column, row=row, previous=current))

    return _replace_cell(state, column, row, ControlSelection(value=choice))


def palette() -> List[str]:
    return list(settings.DIFFERENT_COLOR_PALETTE)


def confirm_different(state: WorkflowState, description: str, color: Optional[str]) -> WorkflowState:
    if state.pending is None:
        raise WorkflowError("No DIFFERENT cell is being edited")
    description = (description or '').strip()
    if not description:
        raise WorkflowError("Description is required for 'DIFFERENT'.")
    color = color or palette()[0]
    if color not in palette():
        raise WorkflowError(f"Unknown colour: {color}")

    pending = state.pending
    cell = ControlSelection(value=CellValue.DIFFERENT, description=description, color=color)
    state = _replace_cell(state, pending.column, pending.row, cell)
    return replace(state, pending=None)


def cancel_different(state: WorkflowState) -> WorkflowState:
    if state.pending is None:
        return state
    pending = state.pending
    state = _replace_cell(state, pending.column, pending.row, pending.previous)
    return replace(state, pending=None)


def column_is_complete(column: Sequence[ControlSelection], name: str) -> bool:
    return bool((name or '').strip()) and all(cell.is_complete for cell in column)


def is_submittable(state: WorkflowState) -> bool:
    if state.stage is not Stage.LOCKED or state.pending is not None or not state.columns:
        return False
    return all(column_is_complete(column, name) for column, name in zip(state.columns, state.names))


def submission_payloads(state: WorkflowState) -> List[dict]:
    return [
        {
            'questionId': state.question_id,
            'newControlSelections': [cell.to_dict() for cell in column],
            'controlName': name.strip(),
            'sessionId': state.session_id,
        }
        for column, name in zip(state.columns, state.names)
    ]


def submit(state: WorkflowState, create: Callable[[dict], str]) -> Tuple[WorkflowState, SubmitReport]:
    """
    Store every authored column, one ``create`` call per column, in order.

    A column that fails is logged and reported; the rest are still sent and
    the activity moves on to reviewing either way.
    """
    if not is_submittable(state):
        raise WorkflowError("Every control needs a name and a value in every row before submitting")

    report = SubmitReport()
    for index, payload in enumerate(submission_payloads(state)):
        try:
            report.created_ids.append(str(create(payload)))
        except Exception as e:
            logger.warning("[Control Workflow] Column %d (%s) was not saved: %s",
                           index + 1, payload['controlName'], e)
            report.failures.append(ColumnFailure(index=index, name=payload['controlName'], error=str(e)))

    state = replace(state, stage=Stage.REVIEWING, submission_ids=tuple(report.created_ids))
    return state, report


def skip(state: WorkflowState) -> WorkflowState:
    _require_stage(state, Stage.LOCKED)
    if state.pending is not None:
        state = cancel_different(state)
    return replace(state, stage=Stage.REVIEWING, submission_ids=())


def back_to_authoring(state: WorkflowState, delete: Callable[[List[str]], int]) -> WorkflowState:
    """
    Return to editing, removing what this pass submitted so the next submit
    does not leave duplicates behind. If the delete fails the state stays put.
    """
    _require_stage(state, Stage.REVIEWING)
    if state.submission_ids:
        delete(list(state.submission_ids))
    return replace(state, stage=Stage.LOCKED, submission_ids=())


def start_over(state: WorkflowState) -> WorkflowState:
    return new_state(state.session_id)
