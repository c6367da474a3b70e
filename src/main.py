import os
import sys
import threading
from PyQt5.QtCore import QObject, pyqtSignal, pyqtSlot, Qt, QCoreApplication
from PyQt5.QtGui import QGuiApplication
from PyQt5.QtWidgets import QApplication, QSystemTrayIcon, QMenu, QAction, QStyle

from ui.results_window import ResultsWindow
from utils import ConfigManager
from llm_helper import stream_with_llm


class QuickAiApp(QObject):
    # Bridge signals so worker-thread results are handled on the Qt main thread.
    # Each carries the request generation so output of a superseded query is dropped.
    deltaReady = pyqtSignal(int, str)
    streamFinished = pyqtSignal(int, str)

    def __init__(self, initial_query: str = ''):
        """
        Initialize the application and, when given, submit the command-line query.
        """
        super().__init__()
        # Enable robust High-DPI scaling before creating the QApplication
        QCoreApplication.setAttribute(Qt.AA_EnableHighDpiScaling, True)
        QCoreApplication.setAttribute(Qt.AA_UseHighDpiPixmaps, True)
        os.environ.setdefault('QT_AUTO_SCREEN_SCALE_FACTOR', '1')
        self.app = QApplication(sys.argv)
        QGuiApplication.setHighDpiScaleFactorRoundingPolicy(
            Qt.HighDpiScaleFactorRoundingPolicy.PassThrough
        )
        # Keep running in tray when the window is hidden with Esc
        self.app.setQuitOnLastWindowClosed(False)

        ConfigManager.initialize()

        self._generation = 0
        self._cancel_event = None
        self._streaming = False

        self.results_window = ResultsWindow()
        self.results_window.submitted.connect(self.on_query_submitted)
        self.results_window.cancelled.connect(self.on_cancel_requested)

        self.deltaReady.connect(self._on_delta_on_ui)
        self.streamFinished.connect(self._on_stream_finished_on_ui)

        self.create_tray_icon()
        self.results_window.show()

        if initial_query:
            self.results_window.query_edit.setText(initial_query)
            self.on_query_submitted(initial_query)

    def create_tray_icon(self):
        """
        Create the system tray icon and its context menu.
        """
        icon = self.app.style().standardIcon(QStyle.SP_MessageBoxQuestion)
        self.tray_icon = QSystemTrayIcon(icon, self.app)

        tray_menu = QMenu()

        show_action = QAction('Show QuickAi', self.app)
        show_action.triggered.connect(self.results_window.show)
        tray_menu.addAction(show_action)

        theme_action = QAction('Toggle Light/Dark Theme', self.app)
        theme_action.triggered.connect(self.toggle_theme)
        tray_menu.addAction(theme_action)

        exit_action = QAction('Exit', self.app)
        exit_action.triggered.connect(self.exit_app)
        tray_menu.addAction(exit_action)

        self.tray_icon.setContextMenu(tray_menu)
        self.tray_icon.show()

    def toggle_theme(self):
        theme = 'light' if self.results_window.theme == 'dark' else 'dark'
        ConfigManager.console_print(f'Theme -> {theme}')
        self.results_window.apply_theme(theme)
        # Remember the choice for the next launch
        ConfigManager.set_config_value(theme, 'ui', 'theme')
        try:
            ConfigManager.save_config()
        except OSError as e:
            ConfigManager.console_print(f'Could not save theme to config: {e}')

    def exit_app(self):
        """
        Exit the application.
        """
        self.cancel_stream()
        QApplication.quit()

    def run(self):
        """
        Start the application.
        """
        sys.exit(self.app.exec_())

    # ---------------- Query streaming ---------------- #

    def on_query_submitted(self, query: str):
        """Start streaming an answer for the query on a background thread."""
        query = (query or '').strip()
        if not query:
            return
        # A new query replaces any answer still streaming
        self.cancel_stream()
        self._generation += 1
        generation = self._generation
        cancel_event = threading.Event()
        self._cancel_event = cancel_event
        self._streaming = True

        self.results_window.clear()
        self.results_window.set_loading(True)
        ConfigManager.console_print(f'Query submitted | len={len(query)} | generation={generation}')

        def _on_delta(piece: str):
            self.deltaReady.emit(generation, piece)

        def _worker():
            full_text = stream_with_llm(query, on_delta=_on_delta, cancel_event=cancel_event) or ''
            self.streamFinished.emit(generation, full_text)

        threading.Thread(target=_worker, daemon=True).start()

    def cancel_stream(self):
        """Stop the running stream, keeping what was rendered so far."""
        if not self._streaming:
            return
        if self._cancel_event is not None:
            self._cancel_event.set()
        self._streaming = False
        self.results_window.flush_renderer()
        self.results_window.set_loading(False)
        ConfigManager.console_print(f'Query cancelled | generation={self._generation}')

    def on_cancel_requested(self):
        """Esc: stop a running answer, otherwise hide the window."""
        if self._streaming:
            self.cancel_stream()
            return
        self.results_window.hide()

    @pyqtSlot(int, str)
    def _on_delta_on_ui(self, generation: int, piece: str):
        if generation != self._generation or not self._streaming:
            return
        self.results_window.append_text(piece)

    @pyqtSlot(int, str)
    def _on_stream_finished_on_ui(self, generation: int, full_text: str):
        if generation != self._generation or not self._streaming:
            return
        self._streaming = False
        self.results_window.flush_renderer()
        self.results_window.set_loading(False)
        if not full_text:
            self.results_window.show_message('No response. Check the provider and API key settings.')


if __name__ == '__main__':
    app = QuickAiApp(' '.join(sys.argv[1:]).strip())
    app.run()
