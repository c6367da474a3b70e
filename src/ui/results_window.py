from PyQt5.QtCore import Qt, pyqtSignal, QTimer, QEvent
from PyQt5.QtGui import QColor, QPainter, QPen, QBrush, QFont, QTextCharFormat, QTextCursor
from PyQt5.QtWidgets import QWidget, QVBoxLayout, QHBoxLayout, QApplication, QLabel, QLineEdit, QTextBrowser, QToolButton, QFrame
import pyperclip
from utils import ConfigManager, StreamSanitizer
from markdown_renderer import MarkdownRenderer, style_table_from_config, DEFAULT_MAX_DEPTH


THEMES = {
	'dark': {
		'background': QColor(32, 32, 32, 240),
		'border': QColor(58, 64, 72, 200),
		'text': '#E0E0E0',
		'muted': '#B5B9C0',
		'input_bg': 'rgba(255,255,255,0.06)',
		'input_border': '#3A4048',
		'scroll_handle': 'rgba(255,255,255,0.16)',
	},
	'light': {
		'background': QColor(255, 255, 255, 245),
		'border': QColor(200, 204, 210, 220),
		'text': '#202020',
		'muted': '#5F6368',
		'input_bg': 'rgba(0,0,0,0.04)',
		'input_border': '#C8CCD2',
		'scroll_handle': 'rgba(0,0,0,0.20)',
	},
}


class TypingIndicatorWidget(QWidget):
	"""
	Animated three-dot indicator shown while a response is streaming.
	"""

	def __init__(self, parent=None):
		super().__init__(parent)
		self._timer = QTimer(self)
		self._timer.timeout.connect(self._tick)
		self._phase = 0
		self._dot_color = QColor('#DDE2E7')
		self._diameter = 4
		self._spacing = 2
		w = self._diameter * 3 + self._spacing * 2
		h = self._diameter
		self.setFixedSize(w, h)
		self.setAttribute(Qt.WA_TranslucentBackground, True)

	def set_dot_color(self, color: str):
		self._dot_color = QColor(color)
		self.update()

	def start(self):
		if not self._timer.isActive():
			self._timer.start(150)

	def stop(self):
		if self._timer.isActive():
			self._timer.stop()

	def _tick(self):
		self._phase = (self._phase + 1) % 3
		self.update()

	def paintEvent(self, _):
		painter = QPainter(self)
		painter.setRenderHint(QPainter.Antialiasing)
		base_alpha = 90
		bright_alpha = 220
		for i in range(3):
			alpha = bright_alpha if i == self._phase else base_alpha
			color = QColor(self._dot_color)
			color.setAlpha(alpha)
			painter.setBrush(QBrush(color))
			painter.setPen(Qt.NoPen)
			x = i * (self._diameter + self._spacing)
			painter.drawEllipse(x, 0, self._diameter, self._diameter)


class DocumentSink:
	"""Appends rendered markdown segments to the end of a text widget's document."""

	def __init__(self, viewer: QTextBrowser):
		self._viewer = viewer

	def _end_cursor(self) -> QTextCursor:
		cursor = QTextCursor(self._viewer.document())
		cursor.movePosition(QTextCursor.End)
		return cursor

	def append_segment(self, text: str, style):
		fmt = QTextCharFormat()
		fmt.setForeground(QBrush(QColor(style.color)))
		fmt.setFontWeight(QFont.Bold if style.bold else QFont.Normal)
		fmt.setFontItalic(style.italic)
		fmt.setFontUnderline(style.underline)
		if style.font_family:
			fmt.setFontFamily(style.font_family)
			fmt.setFontFixedPitch(True)
			fmt.setFontStyleHint(QFont.Monospace)
		self._end_cursor().insertText(text, fmt)

	def append_line_break(self):
		self._end_cursor().insertBlock()


class ResultsWindow(QWidget):
	"""
	Frameless launcher window: a query line on top, the streamed answer below.
	- Enter sends the query
	- Esc cancels a running answer (or hides the window)
	- Ctrl+Shift+C copies the answer
	"""

	submitted = pyqtSignal(str)
	cancelled = pyqtSignal()

	def __init__(self, parent=None):
		super().__init__(parent)
		self.setWindowFlags(Qt.FramelessWindowHint | Qt.WindowStaysOnTopHint | Qt.Dialog)
		self.setAttribute(Qt.WA_TranslucentBackground, True)
		# Closing the window never quits the app; it lives in the tray
		self.setAttribute(Qt.WA_QuitOnClose, False)
		self.setFocusPolicy(Qt.StrongFocus)
		width = ConfigManager.get_config_value('ui', 'width') or 640
		height = ConfigManager.get_config_value('ui', 'height') or 520
		self.setMinimumSize(420, 260)
		self.resize(max(int(width), 420), max(int(height), 260))

		self._is_dragging = False
		self._drag_offset = None
		self._is_loading = False
		self._raw_text = ''
		self._sanitizer = StreamSanitizer()
		theme = (ConfigManager.get_config_value('ui', 'theme') or 'dark').strip().lower()
		self._theme = theme if theme in THEMES else 'dark'

		layout = QVBoxLayout(self)
		layout.setContentsMargins(14, 14, 14, 14)
		layout.setSpacing(8)

		header_row = QHBoxLayout()
		header_row.setContentsMargins(0, 0, 0, 0)
		header_row.setSpacing(6)
		self.hint_label = QLabel(self)
		self.hint_label.installEventFilter(self)
		self.loader = TypingIndicatorWidget(self)
		self.loader.hide()
		self.copy_btn = QToolButton(self)
		self.copy_btn.setText("Copy")
		self.copy_btn.setToolTip("Copy answer (Ctrl+Shift+C)")
		self.copy_btn.clicked.connect(self.copy_result)
		header_row.addWidget(self.hint_label)
		header_row.addWidget(self.loader)
		header_row.addStretch(1)
		header_row.addWidget(self.copy_btn)
		layout.addLayout(header_row)

		self.query_edit = QLineEdit(self)
		self.query_edit.setPlaceholderText("Ask anything…")
		self.query_edit.returnPressed.connect(self._on_return_pressed)
		layout.addWidget(self.query_edit)

		self.output_view = QTextBrowser(self)
		self.output_view.setOpenExternalLinks(False)
		self.output_view.setOpenLinks(False)
		self.output_view.setReadOnly(True)
		self.output_view.setFrameShape(QFrame.NoFrame)
		self.output_view.setHorizontalScrollBarPolicy(Qt.ScrollBarAlwaysOff)
		layout.addWidget(self.output_view, 1)

		self._sink = DocumentSink(self.output_view)
		self._renderer = None
		self._init_renderer()
		self._apply_theme_styles()
		self._set_idle_hint()

	# ------------------------- renderer ------------------------- #

	def _init_renderer(self):
		styles = style_table_from_config(ConfigManager.get_config_section('markdown', 'colors'))
		max_depth = ConfigManager.get_config_value('markdown', 'max_depth') or DEFAULT_MAX_DEPTH
		self._renderer = MarkdownRenderer(self._sink, dark_theme=self._theme == 'dark', styles=styles, max_depth=max_depth)

	def append_text(self, text: str):
		"""Render one streamed chunk and keep the end of the answer in view."""
		if not text:
			return
		self._render(self._sanitizer.feed(text))

	def _render(self, text: str):
		if not text:
			return
		self._raw_text += text
		self._renderer.append(text)
		self._scroll_to_bottom()

	def set_full_text(self, text: str):
		"""Replace the answer with a complete text, rendered in one pass."""
		self.output_view.clear()
		self._raw_text = ''
		self._sanitizer = StreamSanitizer()
		self._init_renderer()
		self.append_text(text or '')
		self.flush_renderer()

	def flush_renderer(self):
		"""Emit any partially formatted tail (e.g. the stream ended mid-emphasis)."""
		if self._renderer is not None:
			self._render(self._sanitizer.flush())
			self._renderer.flush()
			self._scroll_to_bottom()

	def clear(self):
		"""Clear the answer and start a fresh renderer."""
		self.output_view.clear()
		self._raw_text = ''
		self._sanitizer = StreamSanitizer()
		self._init_renderer()

	def copy_result(self) -> bool:
		"""Copy the raw markdown answer to the clipboard."""
		text = self._raw_text
		if not text:
			return False
		copied = False
		try:
			pyperclip.copy(text)
			copied = True
		except pyperclip.PyperclipException as e:
			ConfigManager.console_print(f'Copy via pyperclip failed: {e}')
		# Qt clipboard as well, some desktops only see the owner-backed copy
		cb = QApplication.clipboard()
		if cb is not None:
			cb.setText(text)
			copied = True
		if copied:
			self.hint_label.setText("Copied to clipboard")
			QTimer.singleShot(1500, self._restore_hint)
		return copied

	def show_message(self, text: str):
		self.hint_label.setText(text)

	# ------------------------- theme ------------------------- #

	@property
	def theme(self) -> str:
		return self._theme

	def apply_theme(self, theme: str):
		"""Switch to 'dark' or 'light'. Already rendered text keeps its colors."""
		if theme not in THEMES:
			return
		self._theme = theme
		self._apply_theme_styles()
		self._renderer.reset(dark_theme=theme == 'dark')
		self.update()

	def _apply_theme_styles(self):
		palette = THEMES[self._theme]
		self.hint_label.setStyleSheet(f"color: {palette['muted']}; font-size: 12px;")
		self.copy_btn.setStyleSheet(
			f"QToolButton {{ color: {palette['muted']}; background: {palette['input_bg']}; border: 1px solid {palette['input_border']}; border-radius: 6px; padding: 2px 8px; font-size: 11px; }}"
		)
		self.query_edit.setStyleSheet(
			f"QLineEdit {{ color: {palette['text']}; background: {palette['input_bg']}; border: 1px solid {palette['input_border']}; border-radius: 8px; padding: 6px 8px; font-size: 14px; }}"
		)
		self.output_view.setStyleSheet(
			f"QTextBrowser {{ color: {palette['text']}; background: transparent; border: none; font-size: 13px; }}"
			+ self._scrollbar_qss(palette['scroll_handle'])
		)
		self.loader.set_dot_color(palette['muted'])

	def _scrollbar_qss(self, handle: str) -> str:
		return (
			"QScrollBar:vertical { background: transparent; width: 10px; margin: 2px; }"
			f"QScrollBar::handle:vertical {{ background: {handle}; min-height: 24px; border-radius: 5px; }}"
			"QScrollBar::add-line:vertical, QScrollBar::sub-line:vertical { height: 0px; }"
			"QScrollBar::add-page:vertical, QScrollBar::sub-page:vertical { background: transparent; }"
		)

	# ------------------------- state ------------------------- #

	def set_loading(self, is_loading: bool):
		"""Show/hide the indicator while an answer streams in."""
		self._is_loading = is_loading
		if is_loading:
			self.loader.show()
			self.loader.start()
			self.hint_label.setText("Answering… (Esc to stop)")
		else:
			self.loader.stop()
			self.loader.hide()
			self._set_idle_hint()

	def _set_idle_hint(self):
		self.hint_label.setText("Enter: ask • Esc: close • Ctrl+Shift+C: copy")

	def _restore_hint(self):
		if self._is_loading:
			self.hint_label.setText("Answering… (Esc to stop)")
		else:
			self._set_idle_hint()

	def _on_return_pressed(self):
		query = self.query_edit.text().strip()
		if query:
			self.submitted.emit(query)

	def _scroll_to_bottom(self):
		bar = self.output_view.verticalScrollBar()
		bar.setValue(bar.maximum())

	# ------------------------- window chrome ------------------------- #

	def show(self):
		# Center on screen
		screen = QApplication.primaryScreen()
		g = screen.geometry()
		x = (g.width() - self.width()) // 2
		y = (g.height() - self.height()) // 3
		self.move(x, y)
		super().show()
		self.raise_()
		self.activateWindow()
		self.query_edit.setFocus(Qt.ActiveWindowFocusReason)
		# Some platforms need a brief delay to reliably focus after show
		QTimer.singleShot(60, self.force_focus)

	def force_focus(self):
		self.raise_()
		wh = self.windowHandle()
		if wh is not None:
			wh.requestActivate()
		self.activateWindow()
		self.query_edit.setFocus(Qt.ActiveWindowFocusReason)

	def paintEvent(self, _):
		painter = QPainter(self)
		painter.setRenderHint(QPainter.Antialiasing)
		palette = THEMES[self._theme]
		rect = self.rect().adjusted(0, 0, -1, -1)
		radius = 14
		painter.setPen(QPen(palette['border'], 1))
		painter.setBrush(QBrush(palette['background']))
		painter.drawRoundedRect(rect, radius, radius)

	def keyPressEvent(self, event):
		if event.key() == Qt.Key_Escape:
			self.cancelled.emit()
			return
		if event.key() == Qt.Key_C and (event.modifiers() & Qt.ControlModifier) and (event.modifiers() & Qt.ShiftModifier):
			self.copy_result()
			return
		super().keyPressEvent(event)

	def eventFilter(self, obj, event):
		# Drag-to-move from the hint label
		if obj is self.hint_label:
			if event.type() == QEvent.MouseButtonPress and event.button() == Qt.LeftButton:
				self._begin_drag(event.globalPos())
				return True
			elif event.type() == QEvent.MouseMove and self._is_dragging and (event.buttons() & Qt.LeftButton):
				self._perform_drag(event.globalPos())
				return True
			elif event.type() == QEvent.MouseButtonRelease and self._is_dragging:
				self._end_drag()
				return True
		return super().eventFilter(obj, event)

	def mousePressEvent(self, event):
		if event.button() == Qt.LeftButton and self.childAt(event.pos()) is None:
			self._begin_drag(event.globalPos())
			return
		super().mousePressEvent(event)

	def mouseMoveEvent(self, event):
		if self._is_dragging and (event.buttons() & Qt.LeftButton):
			self._perform_drag(event.globalPos())
			return
		super().mouseMoveEvent(event)

	def mouseReleaseEvent(self, event):
		if self._is_dragging:
			self._end_drag()
			return
		super().mouseReleaseEvent(event)

	def _begin_drag(self, global_pos):
		self._is_dragging = True
		self._drag_offset = global_pos - self.frameGeometry().topLeft()

	def _perform_drag(self, global_pos):
		if not self._is_dragging:
			return
		if self._drag_offset is None:
			self.move(global_pos)
			return
		self.move(global_pos - self._drag_offset)

	def _end_drag(self):
		self._is_dragging = False
		self._drag_offset = None
