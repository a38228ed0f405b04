from __future__ import annotations

import datetime as dt
import logging
import os
import queue
import sys
from pathlib import Path

import psutil
from PySide6.QtCore import QObject, QSettings, Qt, QTimer, Signal
from PySide6.QtGui import QAction, QColor, QDragEnterEvent, QDropEvent
from PySide6.QtWidgets import (
    QAbstractItemView,
    QApplication,
    QComboBox,
    QFileDialog,
    QFrame,
    QHBoxLayout,
    QHeaderView,
    QLabel,
    QMainWindow,
    QMessageBox,
    QPlainTextEdit,
    QPushButton,
    QSpinBox,
    QSplitter,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from .app_logging import configure_logging, extract_log_level
from .claims import ClaimSet
from .config import (
    ACCEPTED_EXTENSIONS,
    APP_NAME,
    DEFAULT_OCR_LANGUAGE,
    DEFAULT_OCR_TIMEOUT_SECONDS,
    LOG_ROOT,
    MAX_CONCURRENT,
    ORG_NAME,
    SETTINGS_APP,
    TEMP_ROOT,
)
from .intake import SOURCE_DIALOG, SOURCE_DROP, DropIntake
from .models import ItemStatus, QueueItem, RecognitionRecord
from .notifications import (
    LEVEL_ERROR,
    LEVEL_WARNING,
    rejected_message,
    summary_message,
    supported_formats_label,
)
from .processor import BatchProcessor
from .recognizer import TesseractRecognizer
from .tracker import ItemTracker, ResultStore

logger = logging.getLogger("intake_app.ui")

QUEUE_COL_NAME = 0
QUEUE_COL_STATUS = 1
QUEUE_COL_ERROR = 2

RESULT_COL_NAME = 0
RESULT_COL_ENGINE = 1
RESULT_COL_CHARS = 2
RESULT_COL_SECONDS = 3

OCR_LANGUAGE_OPTIONS = [
    ("eng", "English"),
    ("chi_sim", "Chinese (Simplified)"),
    ("chi_sim+eng", "Chinese + English"),
    ("deu", "German"),
    ("fra", "French"),
]

STATUS_COLORS = {
    ItemStatus.PENDING: None,
    ItemStatus.RUNNING: "#2f6fd6",
    ItemStatus.SUCCEEDED: "#1f8b4c",
    ItemStatus.FAILED: "#b4232f",
}

MAX_LOG_ENTRIES = 20000


def _format_bytes(size: int) -> str:
    if size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    value = float(size)
    for unit in units:
        if value < 1024 or unit == units[-1]:
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


def _dialog_filter() -> str:
    patterns = " ".join(
        f"*.{ext} *.{ext.upper()}" for ext in sorted(ACCEPTED_EXTENSIONS)
    )
    return f"Invoice files ({patterns})"


class DropZone(QFrame):
    paths_dropped = Signal(list)

    def __init__(self) -> None:
        super().__init__()
        self.setObjectName("DropZone")
        self.setProperty("hover", False)
        self.setMinimumHeight(120)
        layout = QVBoxLayout(self)
        label = QLabel("Drop invoice images or PDFs here")
        sub = QLabel(f"Supported: {supported_formats_label()}")
        label.setAlignment(Qt.AlignCenter)
        sub.setAlignment(Qt.AlignCenter)
        sub.setObjectName("DropZoneSub")
        layout.addStretch()
        layout.addWidget(label)
        layout.addWidget(sub)
        layout.addStretch()

    def dragEnterEvent(self, event: QDragEnterEvent) -> None:  # noqa: N802
        if event.mimeData().hasUrls():
            self._set_hover(True)
            event.acceptProposedAction()
            return
        self._set_hover(False)

    def dragLeaveEvent(self, event) -> None:  # noqa: N802
        self._set_hover(False)
        super().dragLeaveEvent(event)

    def dropEvent(self, event: QDropEvent) -> None:  # noqa: N802
        paths: list[str] = []
        for url in event.mimeData().urls():
            if url.isLocalFile():
                paths.append(url.toLocalFile())
        if paths:
            self.paths_dropped.emit(paths)
        self._set_hover(False)
        event.acceptProposedAction()

    def _set_hover(self, is_hover: bool) -> None:
        if self.property("hover") == is_hover:
            return
        self.setProperty("hover", is_hover)
        self.style().unpolish(self)
        self.style().polish(self)
        self.update()


class QueueBridge(QObject):
    """Moves processor callbacks from worker threads onto the GUI thread."""

    item_changed = Signal(object)
    batch_refresh = Signal()
    batch_summary = Signal(int, int)
    rejected = Signal(int)


class MainWindow(QMainWindow):
    def __init__(self, app: QApplication, log_queue: queue.Queue) -> None:
        super().__init__()
        self.app = app
        self.log_queue = log_queue
        self.settings = QSettings(ORG_NAME, SETTINGS_APP)
        self.last_dir = self.settings.value("last_dir", str(Path.home()), type=str)
        self.ocr_language = self.settings.value("ocr_language", DEFAULT_OCR_LANGUAGE, type=str)
        self.ocr_timeout = self.settings.value("ocr_timeout", DEFAULT_OCR_TIMEOUT_SECONDS, type=int)
        self.log_entries: list[tuple[str, str]] = []

        self.result_store = ResultStore()
        self.recognizer = TesseractRecognizer(self.ocr_language, self.ocr_timeout)

        self.bridge = QueueBridge()
        self.tracker = ItemTracker()
        self.tracker.add_listener(self.bridge.item_changed.emit)
        self.processor = BatchProcessor(
            self._recognize,
            self.tracker,
            on_record=self._store_record,
            on_refresh=self.bridge.batch_refresh.emit,
            on_summary=self.bridge.batch_summary.emit,
        )
        self.intake = DropIntake(
            self.processor,
            ClaimSet(),
            on_rejected=self.bridge.rejected.emit,
        )

        self.app_proc = psutil.Process(os.getpid())
        self.app_proc.cpu_percent(None)

        TEMP_ROOT.mkdir(parents=True, exist_ok=True)

        self.setWindowTitle(APP_NAME)
        self.resize(1180, 820)
        self._build_ui()
        self._build_menus()
        self._attach_drop_zone()

        self.bridge.item_changed.connect(self._on_item_changed)
        self.bridge.batch_refresh.connect(self._refresh_results)
        self.bridge.batch_summary.connect(self._show_summary)
        self.bridge.rejected.connect(self._show_rejected)

        self.poll_timer = QTimer(self)
        self.poll_timer.setInterval(200)
        self.poll_timer.timeout.connect(self._drain_log_queue)
        self.poll_timer.start()

        self.metrics_timer = QTimer(self)
        self.metrics_timer.setInterval(1000)
        self.metrics_timer.timeout.connect(self._update_metrics_labels)
        self.metrics_timer.start()
        self._update_metrics_labels()

    def _build_ui(self) -> None:
        root = QWidget()
        self.setCentralWidget(root)
        layout = QVBoxLayout(root)

        header = QHBoxLayout()
        title_wrap = QVBoxLayout()
        title = QLabel(APP_NAME)
        title.setObjectName("Title")
        title.setStyleSheet("font-size: 24px; font-weight: 700;")
        subtitle = QLabel(f"Recognizes up to {MAX_CONCURRENT} files at a time and reports once per batch")
        subtitle.setObjectName("Subtitle")
        title_wrap.addWidget(title)
        title_wrap.addWidget(subtitle)
        header.addLayout(title_wrap)
        header.addStretch()
        self.add_files_button = QPushButton("Add Files")
        self.exit_button = QPushButton("Exit")
        self.exit_button.setStyleSheet(
            "QPushButton { background: #b4232f; color: white; border-radius: 8px; padding: 8px 14px; }"
            "QPushButton:hover { background: #cf3442; }"
        )
        header.addWidget(self.add_files_button)
        header.addWidget(self.exit_button)
        layout.addLayout(header)

        self.drop_zone = DropZone()
        self.drop_zone.setStyleSheet(
            "QFrame#DropZone { border: 2px dashed #7a8699; border-radius: 12px; }"
            "QFrame#DropZone[hover=\"true\"] { border: 2px solid #2f6fd6; }"
        )
        layout.addWidget(self.drop_zone)

        controls = QHBoxLayout()
        self.remove_button = QPushButton("Remove Selected")
        self.clear_completed_button = QPushButton("Clear Completed")
        self.language_combo = QComboBox()
        for code, label in OCR_LANGUAGE_OPTIONS:
            self.language_combo.addItem(label, code)
        self._set_combo_data(self.language_combo, self.ocr_language)
        self.timeout_spin = QSpinBox()
        self.timeout_spin.setRange(10, 900)
        self.timeout_spin.setSuffix(" s")
        self.timeout_spin.setValue(self.ocr_timeout)
        controls.addWidget(self.remove_button)
        controls.addWidget(self.clear_completed_button)
        controls.addStretch()
        controls.addWidget(QLabel("OCR language"))
        controls.addWidget(self.language_combo)
        controls.addWidget(QLabel("Timeout"))
        controls.addWidget(self.timeout_spin)
        layout.addLayout(controls)

        self.queue_table = QTableWidget(0, 3)
        self.queue_table.setHorizontalHeaderLabels(["File", "Status", "Error"])
        queue_header = self.queue_table.horizontalHeader()
        queue_header.setSectionResizeMode(QUEUE_COL_NAME, QHeaderView.Interactive)
        queue_header.setSectionResizeMode(QUEUE_COL_STATUS, QHeaderView.Fixed)
        queue_header.setSectionResizeMode(QUEUE_COL_ERROR, QHeaderView.Stretch)
        self.queue_table.setColumnWidth(QUEUE_COL_NAME, 320)
        self.queue_table.setColumnWidth(QUEUE_COL_STATUS, 110)
        self.queue_table.verticalHeader().setVisible(False)
        self.queue_table.setAlternatingRowColors(True)
        self.queue_table.setSelectionBehavior(QAbstractItemView.SelectRows)
        self.queue_table.setEditTriggers(QAbstractItemView.NoEditTriggers)
        self.queue_table.setTextElideMode(Qt.ElideMiddle)

        self.results_table = QTableWidget(0, 4)
        self.results_table.setHorizontalHeaderLabels(["File", "Engine", "Characters", "Seconds"])
        results_header = self.results_table.horizontalHeader()
        results_header.setSectionResizeMode(RESULT_COL_NAME, QHeaderView.Stretch)
        self.results_table.verticalHeader().setVisible(False)
        self.results_table.setSelectionBehavior(QAbstractItemView.SelectRows)
        self.results_table.setSelectionMode(QAbstractItemView.SingleSelection)
        self.results_table.setEditTriggers(QAbstractItemView.NoEditTriggers)
        self.result_text = QPlainTextEdit()
        self.result_text.setReadOnly(True)
        self.result_text.setPlaceholderText("Select a recognized file to preview its text...")

        results_wrap = QWidget()
        results_layout = QVBoxLayout(results_wrap)
        results_layout.setContentsMargins(0, 0, 0, 0)
        results_layout.addWidget(QLabel("Recognized files"))
        results_layout.addWidget(self.results_table, 1)
        results_layout.addWidget(self.result_text, 1)

        splitter = QSplitter(Qt.Horizontal)
        splitter.addWidget(self.queue_table)
        splitter.addWidget(results_wrap)
        splitter.setStretchFactor(0, 3)
        splitter.setStretchFactor(1, 2)
        layout.addWidget(splitter, 2)

        metrics_row = QHBoxLayout()
        self.metrics_app_cpu = QLabel("App CPU: 0.0%")
        self.metrics_app_ram = QLabel("App RAM: 0 B")
        self.metrics_sys_ram = QLabel("System RAM: 0.0%")
        self.metrics_queue = QLabel("Active: 0 | Queued: 0")
        metrics_row.addWidget(self.metrics_app_cpu)
        metrics_row.addWidget(self.metrics_app_ram)
        metrics_row.addWidget(self.metrics_sys_ram)
        metrics_row.addStretch()
        metrics_row.addWidget(self.metrics_queue)
        layout.addLayout(metrics_row)

        log_controls = QHBoxLayout()
        self.log_level_combo = QComboBox()
        self.log_level_combo.addItem("Any level", "all")
        self.log_level_combo.addItem("Warnings only", "warning")
        self.log_level_combo.addItem("Errors only", "error")
        log_controls.addWidget(QLabel("Log level"))
        log_controls.addWidget(self.log_level_combo)
        log_controls.addStretch()
        layout.addLayout(log_controls)
        self.log_view = QPlainTextEdit()
        self.log_view.setReadOnly(True)
        self.log_view.setPlaceholderText("Recognition logs stream here...")
        layout.addWidget(self.log_view, 1)

        self.add_files_button.clicked.connect(self._pick_files)
        self.exit_button.clicked.connect(self.close)
        self.remove_button.clicked.connect(self.remove_selected)
        self.clear_completed_button.clicked.connect(self.clear_completed)
        self.language_combo.currentIndexChanged.connect(self._on_recognizer_settings_changed)
        self.timeout_spin.valueChanged.connect(self._on_recognizer_settings_changed)
        self.results_table.itemSelectionChanged.connect(self._show_selected_result)
        self.log_level_combo.currentIndexChanged.connect(self._refresh_log_view)

    def _build_menus(self) -> None:
        menu = self.menuBar()
        file_menu = menu.addMenu("File")
        help_menu = menu.addMenu("Help")

        add_files_action = QAction("Add Files", self)
        clear_action = QAction("Clear Completed", self)
        exit_action = QAction("Exit", self)
        add_files_action.triggered.connect(self._pick_files)
        clear_action.triggered.connect(self.clear_completed)
        exit_action.triggered.connect(self.close)
        file_menu.addAction(add_files_action)
        file_menu.addAction(clear_action)
        file_menu.addSeparator()
        file_menu.addAction(exit_action)

        about_action = QAction("About", self)
        about_action.triggered.connect(self.show_about)
        help_menu.addAction(about_action)

    def _attach_drop_zone(self) -> None:
        try:
            self.drop_zone.setAcceptDrops(True)
            self.drop_zone.paths_dropped.connect(self._on_paths_dropped)
        except RuntimeError as exc:
            logger.warning("Drag and drop is unavailable: %s. Use Add Files instead.", exc)
            self.drop_zone.setEnabled(False)

    def _set_combo_data(self, combo: QComboBox, value: str) -> None:
        for index in range(combo.count()):
            if combo.itemData(index) == value:
                combo.setCurrentIndex(index)
                return

    def _recognize(self, path: str) -> RecognitionRecord:
        return self.recognizer(path)

    def _store_record(self, item: QueueItem, record: RecognitionRecord) -> None:
        self.result_store.add(item.item_id, record)

    def _on_recognizer_settings_changed(self) -> None:
        self.ocr_language = self.language_combo.currentData()
        self.ocr_timeout = self.timeout_spin.value()
        self.settings.setValue("ocr_language", self.ocr_language)
        self.settings.setValue("ocr_timeout", self.ocr_timeout)
        self.recognizer = TesseractRecognizer(self.ocr_language, self.ocr_timeout)

    def _pick_files(self) -> None:
        files, _ = QFileDialog.getOpenFileNames(
            self,
            "Select invoice files",
            self.last_dir,
            _dialog_filter(),
        )
        if files:
            self.last_dir = str(Path(files[0]).parent)
            self.settings.setValue("last_dir", self.last_dir)
            self.intake.submit(files, source=SOURCE_DIALOG)

    def _on_paths_dropped(self, paths: list[str]) -> None:
        self.intake.submit(paths, source=SOURCE_DROP)

    def _on_item_changed(self, _item: QueueItem) -> None:
        self._refresh_queue_table()
        self._update_metrics_labels()

    def _refresh_queue_table(self) -> None:
        selected = set(self._selected_item_ids())
        items = self.tracker.items()
        self.queue_table.setRowCount(len(items))
        for row, item in enumerate(items):
            name_cell = QTableWidgetItem(item.display_name)
            name_cell.setToolTip(item.path)
            name_cell.setData(Qt.UserRole, item.item_id)
            status_cell = QTableWidgetItem(item.status.value)
            color = STATUS_COLORS.get(item.status)
            if color:
                status_cell.setForeground(QColor("white"))
                status_cell.setBackground(QColor(color))
            error_cell = QTableWidgetItem(item.last_error or "")
            error_cell.setToolTip(item.last_error or "")
            self.queue_table.setItem(row, QUEUE_COL_NAME, name_cell)
            self.queue_table.setItem(row, QUEUE_COL_STATUS, status_cell)
            self.queue_table.setItem(row, QUEUE_COL_ERROR, error_cell)
            if item.item_id in selected:
                self.queue_table.selectRow(row)

    def _selected_item_ids(self) -> list[str]:
        ids: list[str] = []
        seen_rows: set[int] = set()
        for cell in self.queue_table.selectedItems():
            row = cell.row()
            if row in seen_rows:
                continue
            seen_rows.add(row)
            name_cell = self.queue_table.item(row, QUEUE_COL_NAME)
            if name_cell is not None:
                ids.append(name_cell.data(Qt.UserRole))
        return ids

    def remove_selected(self) -> None:
        removed = sum(1 for item_id in self._selected_item_ids() if self.tracker.remove(item_id))
        if removed:
            logger.info("Removed %d finished item(s) from the queue.", removed)
        self._refresh_queue_table()
        self._drop_untracked_results()

    def clear_completed(self) -> None:
        removed = self.tracker.clear_completed()
        if removed:
            logger.info("Cleared %d finished item(s).", removed)
        self._refresh_queue_table()
        self._drop_untracked_results()

    def _drop_untracked_results(self) -> None:
        if self.result_store.retain({item.item_id for item in self.tracker.items()}):
            self._refresh_results()

    def _refresh_results(self) -> None:
        records = self.result_store.records()
        self.results_table.setRowCount(len(records))
        for row, record in enumerate(records):
            name_cell = QTableWidgetItem(Path(record.path).name)
            name_cell.setToolTip(record.path)
            self.results_table.setItem(row, RESULT_COL_NAME, name_cell)
            self.results_table.setItem(row, RESULT_COL_ENGINE, QTableWidgetItem(record.engine))
            self.results_table.setItem(row, RESULT_COL_CHARS, QTableWidgetItem(str(record.char_count)))
            self.results_table.setItem(
                row, RESULT_COL_SECONDS, QTableWidgetItem(f"{record.duration_seconds:.1f}")
            )
        self._show_selected_result()

    def _show_selected_result(self) -> None:
        row = self.results_table.currentRow()
        records = self.result_store.records()
        record = records[row] if 0 <= row < len(records) else None
        self.result_text.setPlainText(record.text if record is not None else "")

    def _show_summary(self, succeeded: int, failed: int) -> None:
        message = summary_message(succeeded, failed)
        if message is None:
            return
        level, text = message
        if level == LEVEL_ERROR:
            logger.error("%s", text)
        elif level == LEVEL_WARNING:
            logger.warning("%s", text)
        else:
            logger.info("%s", text)
        self.statusBar().showMessage(text, 8000)

    def _show_rejected(self, count: int) -> None:
        text = rejected_message(count)
        if text:
            self.statusBar().showMessage(text, 8000)

    def _update_metrics_labels(self) -> None:
        try:
            app_cpu = self.app_proc.cpu_percent(None)
            app_rss = self.app_proc.memory_info().rss
            sys_ram = psutil.virtual_memory().percent
        except psutil.Error:
            return
        self.metrics_app_cpu.setText(f"App CPU: {app_cpu:.1f}%")
        self.metrics_app_ram.setText(f"App RAM: {_format_bytes(app_rss)}")
        self.metrics_sys_ram.setText(f"System RAM: {sys_ram:.1f}%")
        self.metrics_queue.setText(
            f"Active: {self.processor.active_count} | Queued: {self.processor.pending_count}"
        )

    def _drain_log_queue(self) -> None:
        while True:
            try:
                message = self.log_queue.get_nowait()
            except queue.Empty:
                break
            self._append_log(message)

    def _append_log(self, message: str) -> None:
        if not message:
            return
        level = extract_log_level(message)
        self.log_entries.append((level, message))
        if len(self.log_entries) > MAX_LOG_ENTRIES:
            self.log_entries = self.log_entries[-MAX_LOG_ENTRIES:]
        if self._log_entry_visible(level):
            self.log_view.appendPlainText(message)
            scroll = self.log_view.verticalScrollBar()
            scroll.setValue(scroll.maximum())

    def _log_entry_visible(self, level: str) -> bool:
        level_mode = self.log_level_combo.currentData()
        if level_mode == "warning" and level not in {"WARNING", "ERROR", "CRITICAL"}:
            return False
        if level_mode == "error" and level not in {"ERROR", "CRITICAL"}:
            return False
        return True

    def _refresh_log_view(self) -> None:
        self.log_view.clear()
        for level, message in self.log_entries:
            if self._log_entry_visible(level):
                self.log_view.appendPlainText(message)
        scroll = self.log_view.verticalScrollBar()
        scroll.setValue(scroll.maximum())

    def show_about(self) -> None:
        QMessageBox.information(
            self,
            "About",
            f"{APP_NAME}\n\nPySide6 invoice intake with bounded parallel OCR, retries, "
            "and one summary per batch.",
        )

    def closeEvent(self, event) -> None:  # noqa: N802
        if self.processor.is_draining:
            answer = QMessageBox.question(
                self,
                "Exit",
                "Files are still being recognized. Abandon them and exit?",
                QMessageBox.Yes | QMessageBox.No,
                QMessageBox.No,
            )
            if answer != QMessageBox.Yes:
                event.ignore()
                return
        self.processor.shutdown()
        self.settings.setValue("last_dir", self.last_dir)
        self.settings.setValue("ocr_language", self.ocr_language)
        self.settings.setValue("ocr_timeout", self.ocr_timeout)
        super().closeEvent(event)


def run_app() -> int:
    log_queue: queue.Queue = queue.Queue(maxsize=10000)
    session = dt.datetime.now().strftime("%Y%m%d_%H%M%S")
    configure_logging(LOG_ROOT / f"session_{session}.log", log_queue)
    app = QApplication(sys.argv)
    app.setApplicationName(APP_NAME)
    app.setOrganizationName(ORG_NAME)
    window = MainWindow(app, log_queue)
    window.show()
    return app.exec()
