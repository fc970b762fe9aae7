"""Interactive sequence viewer widget.

Displays chain sequences as a horizontal strip of residue cells. Pointer
events on the strip drive a DragSelectionController, and the cells are
repainted from the SelectionModel whenever the selection changes.
"""

import logging

from PyQt6.QtCore import Qt, pyqtSignal
from PyQt6.QtGui import QColor, QFont, QPainter, QPen
from PyQt6.QtWidgets import (
    QFrame,
    QHBoxLayout,
    QLabel,
    QMenu,
    QPushButton,
    QScrollArea,
    QVBoxLayout,
    QWidget,
)

from src.models.drag_selection import DragSelectionController
from src.models.selection import SelectionModel, SelectionRegion, SequenceSelection, make_region
from src.models.sequence import SequenceData, SequenceResidue

logger = logging.getLogger(__name__)

SECONDARY_STRUCTURE_COLORS = {
    "helix": "#fde2e4",
    "sheet": "#e2ecfd",
}


class ResidueCell(QWidget):
    """A single residue cell in the sequence viewer."""

    CELL_WIDTH = 22
    CELL_HEIGHT = 28
    FONT_SIZE = 11

    def __init__(self, residue: SequenceResidue, parent=None):
        super().__init__(parent)
        self._residue = residue
        self._selected = False
        self._active = False
        self._candidate = False
        self._hovered = False

        self.setFixedSize(self.CELL_WIDTH, self.CELL_HEIGHT)
        ss = f" [{residue.secondary_structure}]" if residue.secondary_structure else ""
        self.setToolTip(f"{residue.chain_id}:{residue.position} {residue.code}{ss}")
        # The strip handles all pointer events
        self.setAttribute(Qt.WidgetAttribute.WA_TransparentForMouseEvents)

    @property
    def residue(self) -> SequenceResidue:
        return self._residue

    def set_state(self, selected: bool, active: bool, candidate: bool, hovered: bool) -> None:
        state = (selected, active, candidate, hovered)
        if state != (self._selected, self._active, self._candidate, self._hovered):
            self._selected, self._active, self._candidate, self._hovered = state
            self.update()

    def paintEvent(self, event):
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)

        if self._candidate:
            bg_color = QColor("#b3d9ff")
        elif self._selected:
            bg_color = QColor("#ffff00")
        elif self._hovered:
            bg_color = QColor("#e6e6e6")
        else:
            bg_color = QColor(SECONDARY_STRUCTURE_COLORS.get(self._residue.secondary_structure, "#f8f8f8"))
        painter.fillRect(0, 0, self.width(), self.height(), bg_color)

        if self._selected:
            border = "#cc6600" if self._active else "#cc9900"
            painter.setPen(QPen(QColor(border), 2))
            painter.drawRect(1, 1, self.width() - 2, self.height() - 2)

        font = QFont("Consolas, Monaco, monospace", self.FONT_SIZE)
        font.setBold(True)
        painter.setFont(font)
        painter.setPen(QColor("#333333"))
        painter.drawText(
            0, 0, self.width(), self.height(),
            Qt.AlignmentFlag.AlignCenter,
            self._residue.code,
        )


class ChainSeparator(QFrame):
    """Visual separator between chains."""

    WIDTH = 24

    def __init__(self, chain_id: str, parent=None):
        super().__init__(parent)
        self._chain_id = chain_id
        self.setFixedWidth(self.WIDTH)
        self.setFixedHeight(ResidueCell.CELL_HEIGHT)
        self.setToolTip(f"Chain {chain_id}")
        self.setAttribute(Qt.WidgetAttribute.WA_TransparentForMouseEvents)

    def paintEvent(self, event):
        painter = QPainter(self)
        painter.setPen(QPen(QColor("#999999"), 1))
        x = self.width() // 2
        painter.drawLine(x, 2, x, self.height() - 2)

        font = QFont("Arial", 8)
        font.setBold(True)
        painter.setFont(font)
        painter.setPen(QColor("#666666"))
        painter.drawText(
            0, 0, self.width(), self.height(),
            Qt.AlignmentFlag.AlignCenter,
            self._chain_id,
        )


class _SequenceStrip(QWidget):
    """Container for residue cells that routes pointer events to the drag controller."""

    context_requested = pyqtSignal(object, object)  # (SequenceResidue, QPoint global)
    drag_updated = pyqtSignal()

    def __init__(self, drag: DragSelectionController, parent=None):
        super().__init__(parent)
        self._drag = drag
        self._last_residue: SequenceResidue | None = None
        self.setMouseTracking(True)

    def _residue_at(self, pos) -> SequenceResidue | None:
        child = self.childAt(pos)
        return child.residue if isinstance(child, ResidueCell) else None

    def mousePressEvent(self, event):
        if event.button() != Qt.MouseButton.LeftButton:
            return
        residue = self._residue_at(event.position().toPoint())
        if residue is not None:
            self._drag.pointer_down(residue)
            self._last_residue = residue
            self.drag_updated.emit()

    def mouseMoveEvent(self, event):
        residue = self._residue_at(event.position().toPoint())
        if residue is None or residue == self._last_residue:
            return
        self._last_residue = residue
        self._drag.pointer_enter(residue)
        if self._drag.is_dragging:
            self.drag_updated.emit()

    def mouseReleaseEvent(self, event):
        if event.button() != Qt.MouseButton.LeftButton:
            return
        add = bool(event.modifiers() & (
            Qt.KeyboardModifier.ControlModifier | Qt.KeyboardModifier.ShiftModifier
        ))
        self._drag.pointer_up(add_modifier=add)
        self.drag_updated.emit()

    def leaveEvent(self, event):
        self._last_residue = None
        self._drag.pointer_leave()
        super().leaveEvent(event)

    def contextMenuEvent(self, event):
        self._drag.open_context_menu()
        self.drag_updated.emit()
        residue = self._residue_at(event.pos())
        if residue is not None:
            self.context_requested.emit(residue, event.globalPos())


class SequenceViewer(QWidget):
    """Interactive sequence viewer with drag selection.

    Signals:
        residue_action_requested(str, object): A context action was chosen
            for a SelectionRegion ('hide', 'isolate', 'highlight', 'copy').
    """

    residue_action_requested = pyqtSignal(str, object)

    # Model listeners may fire on a worker thread; widget updates are queued
    # onto the GUI thread through these.
    _selection_received = pyqtSignal(object)  # SequenceSelection
    _highlight_received = pyqtSignal(object)  # list[SequenceResidue]

    CONTEXT_ACTIONS = [
        ("Hide", "hide"),
        ("Isolate", "isolate"),
        ("Highlight", "highlight"),
        ("Copy Sequence", "copy"),
    ]

    def __init__(self, model: SelectionModel, drag: DragSelectionController, parent=None):
        super().__init__(parent)
        self._model = model
        self._drag = drag
        self._residue_cells: dict[tuple[str, int], ResidueCell] = {}
        self._highlighted: set[tuple[str, int]] = set()
        self._init_ui()

        self._selection_received.connect(self._on_selection_changed)
        self._highlight_received.connect(self._on_highlight_changed)
        self._model.add_listener(self._selection_received.emit)
        self._drag.add_highlight_listener(self._highlight_received.emit)

    def _init_ui(self):
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)

        header = QWidget()
        header_layout = QHBoxLayout(header)
        header_layout.setContentsMargins(5, 2, 5, 2)
        header_layout.setSpacing(5)

        self._label = QLabel("No sequence loaded")
        self._label.setStyleSheet("font-weight: bold; font-size: 11px;")
        header_layout.addWidget(self._label)

        header_layout.addStretch()

        self._selection_label = QLabel("")
        self._selection_label.setStyleSheet("font-size: 10px; color: #666;")
        header_layout.addWidget(self._selection_label)

        self._btn_clear = QPushButton("Clear")
        self._btn_clear.setFixedHeight(20)
        self._btn_clear.setStyleSheet("font-size: 10px;")
        self._btn_clear.clicked.connect(self._model.clear_selection)
        self._btn_clear.setEnabled(False)
        header_layout.addWidget(self._btn_clear)

        self._btn_scroll_to_selection = QPushButton("Go to Selection")
        self._btn_scroll_to_selection.setFixedHeight(20)
        self._btn_scroll_to_selection.setStyleSheet("font-size: 10px;")
        self._btn_scroll_to_selection.clicked.connect(self._scroll_to_selection)
        self._btn_scroll_to_selection.setEnabled(False)
        header_layout.addWidget(self._btn_scroll_to_selection)

        layout.addWidget(header)

        self._scroll_area = QScrollArea()
        self._scroll_area.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOn)
        self._scroll_area.setVerticalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        self._scroll_area.setWidgetResizable(False)
        self._scroll_area.setFixedHeight(ResidueCell.CELL_HEIGHT + 20)

        self._strip = _SequenceStrip(self._drag)
        self._strip.context_requested.connect(self._show_context_menu)
        self._strip.drag_updated.connect(self._refresh)
        self._strip_layout = QHBoxLayout(self._strip)
        self._strip_layout.setContentsMargins(5, 0, 5, 0)
        self._strip_layout.setSpacing(1)

        self._scroll_area.setWidget(self._strip)
        layout.addWidget(self._scroll_area)

        self.setFixedHeight(ResidueCell.CELL_HEIGHT + 45)

    def set_sequence_data(self, data: SequenceData | None) -> None:
        """Rebuild the strip for new sequence data."""
        self.clear()
        if data is None or not data.chains:
            return

        num_separators = 0
        for i, chain in enumerate(data.chains):
            if i > 0:
                self._strip_layout.addWidget(ChainSeparator(chain.id))
                num_separators += 1
            for residue in chain.residues:
                cell = ResidueCell(residue)
                self._residue_cells[residue.key] = cell
                self._strip_layout.addWidget(cell)

        stats = data.get_stats()
        self._label.setText(
            f"{data.name}: {stats['total_residues']} residues ({', '.join(data.chain_ids)})"
        )

        # Fixed cell sizes; sizeHint() is not usable before the first layout pass
        spacing = self._strip_layout.spacing()
        margins = self._strip_layout.contentsMargins()
        num_cells = len(self._residue_cells)
        total_widgets = num_cells + num_separators
        total_width = (
            margins.left() + margins.right()
            + num_cells * ResidueCell.CELL_WIDTH
            + num_separators * ChainSeparator.WIDTH
            + max(total_widgets - 1, 0) * spacing
        )
        self._strip.setFixedSize(total_width, ResidueCell.CELL_HEIGHT)
        self._refresh()

    def clear(self) -> None:
        while self._strip_layout.count():
            item = self._strip_layout.takeAt(0)
            if item.widget():
                item.widget().deleteLater()
        self._residue_cells.clear()
        self._highlighted.clear()
        self._label.setText("No sequence loaded")
        self._selection_label.setText("")

    def set_interactive(self, enabled: bool) -> None:
        """Enable or disable selection editing."""
        self._drag.set_read_only(not enabled)
        self._strip.setEnabled(enabled)

    def _on_selection_changed(self, selection: SequenceSelection) -> None:
        self._refresh()
        count = len(selection.regions)
        self._selection_label.setText(f"{count} region{'s' if count != 1 else ''}" if count else "")
        self._btn_clear.setEnabled(count > 0)
        self._btn_scroll_to_selection.setEnabled(count > 0)

    def _on_highlight_changed(self, residues: list[SequenceResidue]) -> None:
        self._highlighted = {r.key for r in residues}
        self._refresh()

    def _refresh(self) -> None:
        active = self._model.get_region(self._model.active_region) if self._model.active_region else None
        for (chain_id, position), cell in self._residue_cells.items():
            cell.set_state(
                selected=self._model.is_position_selected(chain_id, position),
                active=active is not None and active.contains(chain_id, position),
                candidate=self._drag.is_in_candidate(cell.residue),
                hovered=(chain_id, position) in self._highlighted,
            )

    def _context_region(self, residue: SequenceResidue) -> SelectionRegion:
        region = self._model.get_residue_region(residue)
        if region is not None:
            return region
        return make_region(residue.chain_id, residue.position, residue.position, residue.code)

    def _show_context_menu(self, residue: SequenceResidue, global_pos) -> None:
        region = self._context_region(residue)
        menu = QMenu(self)
        menu.addSection(region.label or region.id)
        for text, action in self.CONTEXT_ACTIONS:
            menu.addAction(text).setData(action)

        chosen = menu.exec(global_pos)
        self._refresh()
        if chosen is not None:
            logger.debug(f"Context action {chosen.data()} on {region.id}")
            self.residue_action_requested.emit(chosen.data(), region)

    def _scroll_to_selection(self) -> None:
        regions = self._model.regions
        if not regions:
            return
        first = regions[0]
        cell = self._residue_cells.get((first.chain_id, first.start))
        if cell:
            self._scroll_area.ensureWidgetVisible(cell, 50, 0)
