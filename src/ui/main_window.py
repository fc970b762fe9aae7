"""Main application window for SeqLink."""

import asyncio
import logging
from typing import Any, Callable, Coroutine

from PyQt6.QtCore import Qt, QThread, pyqtSignal
from PyQt6.QtGui import QAction, QKeySequence
from PyQt6.QtWidgets import (
    QApplication,
    QComboBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QStatusBar,
    QVBoxLayout,
    QWidget,
)

from src.config.settings import APP_NAME, APP_VERSION, DEFAULT_WINDOW_HEIGHT, DEFAULT_WINDOW_WIDTH
from src.config.user_config import UserConfig, load_config, load_selection, save_config, save_selection
from src.models.addressing import AddressingMode
from src.models.drag_selection import DragSelectionController
from src.models.selection import SelectionConstraints, SelectionModel, SelectionRegion, SequenceSelection
from src.models.sequence_provider import default_sequence_provider
from src.models.structure_adapter import AtomArrayAdapter
from src.models.sync_bridge import SelectionSyncBridge
from src.models.visibility import ChainVisibilityEngine, VisibilityResult
from src.ui.clipboard import SystemClipboard
from src.ui.sequence_viewer import SequenceViewer

logger = logging.getLogger(__name__)


class OperationWorker(QThread):
    """Worker thread running one engine or bridge coroutine without blocking UI."""

    finished = pyqtSignal(object)  # operation result
    error = pyqtSignal(str)

    def __init__(self, coro: Coroutine[Any, Any, Any]):
        super().__init__()
        self._coro = coro

    def run(self):
        try:
            result = asyncio.run(self._coro)
            self.finished.emit(result)
        except Exception as e:
            self.error.emit(str(e))


class MainWindow(QMainWindow):
    """Structure id entry, sequence viewer and chain visibility controls."""

    # Operation results may be reported from the worker thread
    _result_received = pyqtSignal(object)  # VisibilityResult

    def __init__(self, user_config: UserConfig | None = None):
        super().__init__()
        self._user_config = user_config or load_config()
        self._busy = False
        self._worker: OperationWorker | None = None
        self._on_worker_done: Callable[[Any], None] | None = None
        self._init_models()
        self._init_ui()
        self._init_menu()
        self._init_statusbar()
        self._connect_signals()
        self._restore_settings()

    def _init_models(self):
        sc = self._user_config.selection
        vc = self._user_config.viewer
        mode = AddressingMode.from_value(vc.addressing_mode)

        self._model = SelectionModel(
            mode=sc.selection_mode,
            constraints=SelectionConstraints(
                max_selections=sc.max_selections,
                max_range_size=sc.max_range_size,
                allowed_chains=sc.allowed_chains,
            ),
        )
        self._drag = DragSelectionController(self._model)
        self._adapter = AtomArrayAdapter()
        self._engine = ChainVisibilityEngine(self._adapter, mode=mode)
        self._bridge = SelectionSyncBridge(
            self._model,
            self._adapter,
            self._engine,
            drag=self._drag,
            clipboard=SystemClipboard(),
            sequence_provider=default_sequence_provider(mode),
            promote_picks=vc.promote_picks,
        )
        self._bridge.attach()

    def _init_ui(self):
        self.setWindowTitle(f"{APP_NAME} v{APP_VERSION}")
        self.resize(DEFAULT_WINDOW_WIDTH, DEFAULT_WINDOW_HEIGHT)

        central_widget = QWidget()
        self.setCentralWidget(central_widget)
        layout = QVBoxLayout(central_widget)
        layout.setContentsMargins(8, 8, 8, 8)

        # Structure source row
        source_row = QHBoxLayout()
        source_row.addWidget(QLabel("Structure:"))
        self._source_edit = QLineEdit()
        self._source_edit.setPlaceholderText("PDB id (e.g. 1UBQ) or path to .pdb/.cif")
        source_row.addWidget(self._source_edit, 1)
        self._btn_load = QPushButton("Load")
        source_row.addWidget(self._btn_load)
        layout.addLayout(source_row)

        self._sequence_viewer = SequenceViewer(self._model, self._drag)
        layout.addWidget(self._sequence_viewer)

        # Visibility row
        vis_row = QHBoxLayout()
        vis_row.addWidget(QLabel("Chain:"))
        self._chain_combo = QComboBox()
        self._chain_combo.setMinimumWidth(80)
        vis_row.addWidget(self._chain_combo)
        self._btn_hide = QPushButton("Hide")
        self._btn_isolate = QPushButton("Isolate")
        self._btn_hide_water = QPushButton("Hide Water")
        self._btn_hide_ligands = QPushButton("Hide Ligands")
        self._btn_hide_ions = QPushButton("Hide Ions")
        self._btn_clean_up = QPushButton("Clean Up")
        self._btn_clean_up.setToolTip("Hide water, common ligands and ions")
        self._btn_show_all = QPushButton("Show All")
        for btn in self._visibility_widgets()[1:]:
            vis_row.addWidget(btn)
        vis_row.addStretch()
        self._isolation_label = QLabel("")
        vis_row.addWidget(self._isolation_label)
        layout.addLayout(vis_row)

        layout.addStretch()

    def _visibility_widgets(self) -> list[QWidget]:
        return [self._chain_combo, self._btn_hide, self._btn_isolate, self._btn_hide_water,
                self._btn_hide_ligands, self._btn_hide_ions, self._btn_clean_up,
                self._btn_show_all]

    def _init_menu(self):
        menubar = self.menuBar()
        file_menu = menubar.addMenu("&File")

        load_action = QAction("&Load Structure", self)
        load_action.setShortcut(QKeySequence("Ctrl+L"))
        load_action.triggered.connect(self._on_load)
        file_menu.addAction(load_action)

        file_menu.addSeparator()

        exit_action = QAction("E&xit", self)
        exit_action.setShortcut(QKeySequence("Ctrl+Q"))
        exit_action.triggered.connect(self.close)
        file_menu.addAction(exit_action)

        edit_menu = menubar.addMenu("&Edit")

        merge_action = QAction("&Merge Overlapping Regions", self)
        merge_action.triggered.connect(self._model.merge_overlapping)
        edit_menu.addAction(merge_action)

        clear_action = QAction("&Clear Selection", self)
        clear_action.setShortcut(QKeySequence("Escape"))
        clear_action.triggered.connect(self._model.clear_selection)
        edit_menu.addAction(clear_action)

        # Selection edits are blocked while an operation runs
        self._edit_actions = [merge_action, clear_action]
        self._set_busy(False)

    def _init_statusbar(self):
        self._statusbar = QStatusBar()
        self.setStatusBar(self._statusbar)
        self._statusbar.showMessage("Ready")

    def _connect_signals(self):
        self._btn_load.clicked.connect(self._on_load)
        self._source_edit.returnPressed.connect(self._on_load)
        self._btn_hide.clicked.connect(self._on_hide_chain)
        self._btn_isolate.clicked.connect(self._on_isolate_chain)
        self._btn_hide_water.clicked.connect(lambda: self._run(self._engine.hide_water()))
        self._btn_hide_ligands.clicked.connect(lambda: self._run(self._engine.hide_ligands()))
        self._btn_hide_ions.clicked.connect(lambda: self._run(self._engine.hide_ions()))
        self._btn_clean_up.clicked.connect(lambda: self._run(self._engine.hide_common_unwanted()))
        self._btn_show_all.clicked.connect(lambda: self._run(self._engine.show_all()))
        self._sequence_viewer.residue_action_requested.connect(self._on_residue_action)
        self._result_received.connect(self._on_operation_result)
        self._bridge.add_result_listener(self._result_received.emit)

    # Async operations

    def _run(
        self,
        coro: Coroutine[Any, Any, Any],
        on_done: Callable[[Any], None] | None = None,
    ) -> bool:
        """Start an operation on a worker thread with the controls disabled.

        Args:
            coro: Engine or bridge coroutine to run.
            on_done: Called on the GUI thread with the operation's result.

        Returns:
            False if another operation is still running.
        """
        if self._busy:
            coro.close()
            self._statusbar.showMessage("Another operation is in progress")
            return False
        if self._worker is not None:
            # The previous worker has reported but may still be returning from run()
            self._worker.wait()
        self._set_busy(True)
        self._on_worker_done = on_done
        self._worker = OperationWorker(coro)
        self._worker.finished.connect(self._on_worker_finished)
        self._worker.error.connect(self._on_worker_error)
        self._worker.start()
        return True

    def _on_worker_finished(self, result: Any):
        callback = self._on_worker_done
        self._end_operation()
        if callback is not None:
            callback(result)

    def _on_worker_error(self, error_msg: str):
        logger.error(f"Operation failed: {error_msg}")
        self._end_operation()
        self._statusbar.showMessage(f"Operation failed: {error_msg}")

    def _end_operation(self):
        self._on_worker_done = None
        self._set_busy(False)
        self._update_visibility_controls()

    def _set_busy(self, busy: bool) -> None:
        self._busy = busy
        loaded = self._adapter.is_loaded
        self._btn_load.setEnabled(not busy)
        self._source_edit.setEnabled(not busy)
        for widget in self._visibility_widgets():
            widget.setEnabled(loaded and not busy)
        for action in self._edit_actions:
            action.setEnabled(not busy)
        self._sequence_viewer.set_interactive(not busy)
        if busy:
            QApplication.setOverrideCursor(Qt.CursorShape.WaitCursor)
        elif QApplication.overrideCursor() is not None:
            QApplication.restoreOverrideCursor()

    # Handlers

    def load_structure(self, source_id: str) -> None:
        """Load a structure by PDB id or file path."""
        self._source_edit.setText(source_id)
        self._on_load()

    def _on_load(self):
        source_id = self._source_edit.text().strip()
        if not source_id:
            return
        self._statusbar.showMessage(f"Loading: {source_id}")
        self._run(
            self._bridge.request_structure(source_id),
            on_done=lambda result: self._on_structure_loaded(source_id, result),
        )

    def _on_structure_loaded(self, source_id: str, result: VisibilityResult):
        if not result.success:
            QMessageBox.warning(self, "Load Failed", f"Could not load {source_id} ({result.reason})")
            return

        self._user_config.last_structure_id = source_id
        self._sequence_viewer.set_sequence_data(self._model.sequence_data)
        self._restore_last_selection(source_id)

    def _on_hide_chain(self):
        chain_id = self._chain_combo.currentText()
        if chain_id:
            self._run(self._engine.hide_chain(chain_id))

    def _on_isolate_chain(self):
        chain_id = self._chain_combo.currentText()
        if chain_id:
            self._run(self._engine.isolate(chain_id))

    def _on_residue_action(self, action: str, region: SelectionRegion):
        self._run(self._bridge.perform_residue_action(action, region))

    def _on_operation_result(self, result: VisibilityResult):
        if result.success:
            detail = f" ({result.reason})" if result.reason else ""
            self._statusbar.showMessage(f"{result.action} {result.target}: done{detail}")
        else:
            self._statusbar.showMessage(f"{result.action} {result.target} failed: {result.reason}")

    def _update_visibility_controls(self):
        current = self._chain_combo.currentText()
        chains = self._engine.get_available_chains()
        self._chain_combo.blockSignals(True)
        self._chain_combo.clear()
        self._chain_combo.addItems(chains)
        if current in chains:
            self._chain_combo.setCurrentText(current)
        self._chain_combo.blockSignals(False)

        status = self._engine.get_isolation_status()
        if status.has_isolation:
            self._isolation_label.setText(
                f"{status.visible_components}/{status.total_components} components visible"
            )
        else:
            self._isolation_label.setText("")

    # Settings

    def _restore_settings(self):
        if self._user_config.last_structure_id:
            self._source_edit.setText(self._user_config.last_structure_id)

    def _restore_last_selection(self, source_id: str):
        saved = load_selection()
        if not saved or saved.get("structure_id") != source_id:
            return
        try:
            selection = SequenceSelection.from_dict(saved)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Ignoring saved selection: {e}")
            return
        if self._model.restore(selection):
            logger.debug(f"Restored {len(selection.regions)} regions for {source_id}")

    def closeEvent(self, event) -> None:
        if self._worker is not None and self._worker.isRunning():
            self._worker.wait()

        source_id = self._user_config.last_structure_id
        if source_id and self._model.sequence_data is not None:
            saved = self._model.get_selection().to_dict()
            saved["structure_id"] = source_id
            save_selection(saved)

        save_config(self._user_config)
        self._bridge.detach()
        event.accept()
