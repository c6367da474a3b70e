from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Optional

# Streaming markdown renderer.
# Consumes response text one character at a time and appends styled segments
# to a display sink. Supports: Title (#), Bold (**), Italic (* / _),
# Inline code (`), Code block (```), List (-), Quote (>).
#
# A sink is any object with:
#   append_segment(text: str, style: TextStyle)
#   append_line_break()

BULLET = '•'
QUOTE_PREFIX = '> '
LINE_START = ''
# Stands in for a marker character that flush() consumed
CONSUMED = '\0'
DEFAULT_MAX_DEPTH = 32


class MarkdownFormat(Enum):
    TITLE = 'title'
    BOLD = 'bold'
    ITALIC = 'italic'
    CODE = 'code'
    LIST = 'list'
    QUOTE = 'quote'
    PLAIN = 'plain'


class Marker(Enum):
    """Which delimiter opened a construct, and how far it has progressed."""
    TITLE_HASHES = 'title_hashes'
    TITLE_TEXT = 'title_text'
    BACKTICKS = 'backticks'
    FENCE_LANGUAGE = 'fence_language'
    FENCE_BODY = 'fence_body'
    INLINE_CODE = 'inline_code'
    DOUBLE_STAR = '**'
    STAR = '*'
    UNDERSCORE = '_'
    DASH = '-'
    ANGLE = '>'


@dataclass
class OpenConstruct:
    format: MarkdownFormat
    marker: Marker
    # '#' level for titles, backtick run length for line-start code
    count: int = 1


@dataclass(frozen=True)
class TextStyle:
    color: str
    bold: bool = False
    italic: bool = False
    underline: bool = False
    font_family: Optional[str] = None

    @property
    def monospace(self) -> bool:
        return self.font_family is not None


@dataclass(frozen=True)
class StyleTable:
    """Fixed colors per format plus the two theme base colors."""
    title_color: str = '#FF69B4'
    code_color: str = '#FFD700'
    list_color: str = '#00C853'
    quote_color: str = '#64B5F6'
    dark_text_color: str = '#E0E0E0'
    light_text_color: str = '#202020'
    code_font_family: str = 'Consolas'

    def base_color(self, dark_theme: bool) -> str:
        return self.dark_text_color if dark_theme else self.light_text_color


DEFAULT_STYLES = StyleTable()


def style_table_from_config(section) -> StyleTable:
    """Build a StyleTable from a config mapping, ignoring unknown or empty keys."""
    if not isinstance(section, dict):
        return DEFAULT_STYLES
    overrides = {}
    for key in StyleTable.__dataclass_fields__:
        value = section.get(key)
        if isinstance(value, str) and value.strip():
            overrides[key] = value.strip()
    return replace(DEFAULT_STYLES, **overrides)


def resolve_style(formats: List[MarkdownFormat], dark_theme: bool, styles: StyleTable = DEFAULT_STYLES) -> TextStyle:
    """Fold the open formats (outermost first) into one style; inner formats win."""
    color = styles.base_color(dark_theme)
    bold = italic = underline = False
    font_family = None
    for fmt in formats:
        if fmt is MarkdownFormat.TITLE:
            bold = True
            color = styles.title_color
        elif fmt is MarkdownFormat.BOLD:
            bold = True
        elif fmt is MarkdownFormat.ITALIC:
            italic = True
        elif fmt is MarkdownFormat.CODE:
            color = styles.code_color
            font_family = styles.code_font_family
        elif fmt is MarkdownFormat.LIST:
            color = styles.list_color
        elif fmt is MarkdownFormat.QUOTE:
            italic = True
            underline = True
            color = styles.quote_color
    return TextStyle(color=color, bold=bold, italic=italic, underline=underline, font_family=font_family)


class MarkdownRenderer:
    """
    Incremental markdown renderer.

    Text is processed strictly in order with no lookahead, so feeding
    "**bo" then "ld**" produces the same segments as feeding "**bold**".
    Anything that cannot be decided yet (e.g. a lone '*') stays in the
    pending buffer until the next character arrives or flush() is called.
    Not thread-safe: call it only from the thread that owns the sink.
    """

    def __init__(self, sink, dark_theme: bool = True, styles: StyleTable = DEFAULT_STYLES, max_depth: int = DEFAULT_MAX_DEPTH):
        self._sink = sink
        self._dark_theme = dark_theme
        self._styles = styles
        self._max_depth = max(1, int(max_depth))
        self._stack: List[OpenConstruct] = []
        self._pending: List[str] = []
        self._prev = LINE_START

    @property
    def dark_theme(self) -> bool:
        return self._dark_theme

    @property
    def formats(self) -> List[MarkdownFormat]:
        return [construct.format for construct in self._stack]

    @property
    def pending_text(self) -> str:
        return ''.join(self._pending)

    def append(self, fragment: str):
        """Feed one chunk of streamed text."""
        if not fragment:
            return
        for char in fragment:
            self._process(char)
            self._prev = char

    def flush(self):
        """Emit whatever is buffered in the currently active style."""
        top = self._top()
        if (
            top is not None
            and top.marker is Marker.STAR
            and self._prev == '*'
            and self._pending
            and self._pending[-1] == '*'
        ):
            # End of stream: the provisional '*' can only be a closer now
            self._pending.pop()
            self._emit()
            self._pop()
            self._prev = CONSUMED
            return
        self._emit()

    def reset(self, dark_theme: Optional[bool] = None, styles: Optional[StyleTable] = None):
        """Drop all parsing state. Already emitted segments are left alone."""
        if dark_theme is not None:
            self._dark_theme = dark_theme
        if styles is not None:
            self._styles = styles
        self._stack = []
        self._pending = []
        self._prev = LINE_START

    # ------------------------- stack / buffer helpers ------------------------- #

    def _top(self) -> Optional[OpenConstruct]:
        return self._stack[-1] if self._stack else None

    def _push(self, fmt: MarkdownFormat, marker: Marker, count: int = 1) -> bool:
        if len(self._stack) >= self._max_depth:
            return False
        self._stack.append(OpenConstruct(fmt, marker, count))
        return True

    def _pop(self):
        if self._stack:
            self._stack.pop()

    def _emit(self):
        if not self._pending:
            return
        text = ''.join(self._pending)
        self._pending = []
        self._sink.append_segment(text, resolve_style(self.formats, self._dark_theme, self._styles))

    def _line_break(self):
        self._sink.append_line_break()

    def _at_line_start(self) -> bool:
        return self._prev == '\n' or self._prev == LINE_START

    def _in_fenced_body(self) -> bool:
        return any(c.format is MarkdownFormat.CODE and c.marker is Marker.FENCE_BODY for c in self._stack)

    def _retract_star(self):
        if self._pending and self._pending[-1] == '*':
            self._pending.pop()

    # ------------------------------ dispatch ------------------------------ #

    def _process(self, char: str):
        if self._in_fenced_body():
            self._fenced_body_char(char)
            return

        if self._at_line_start():
            self._line_start_char(char)
            return

        top = self._top()

        if top is not None and top.marker is Marker.TITLE_HASHES:
            if char == '#':
                top.count += 1
                return
            top.marker = Marker.TITLE_TEXT
            if char == ' ':
                return

        if top is not None and top.marker is Marker.BACKTICKS:
            self._backtick_run_char(top, char)
            return

        if top is not None and top.marker is Marker.FENCE_LANGUAGE:
            # Language tag is not rendered
            if char == '\n':
                top.marker = Marker.FENCE_BODY
            return

        if top is not None and top.marker is Marker.INLINE_CODE:
            self._inline_code_char(char)
            return

        if char == '`':
            self._emit()
            if not self._push(MarkdownFormat.CODE, Marker.INLINE_CODE):
                self._pending.append(char)
            return

        if char == '*':
            self._star(top)
            return

        if self._prev == '*' and self._pending and self._pending[-1] == '*':
            self._single_star_toggle(top, char)
            return

        if char == '_' and self._prev != '_':
            self._underscore(top)
            return

        if char == '\n':
            self._newline()
            return

        self._pending.append(char)

    def _fenced_body_char(self, char: str):
        if char == '\n':
            self._emit()
            self._line_break()
            return
        self._pending.append(char)
        if char == '`' and self._pending[-3:] == ['`', '`', '`']:
            del self._pending[-3:]
            self._emit()
            self._pop()

    def _line_start_char(self, char: str):
        if char == '#':
            if not self._push(MarkdownFormat.TITLE, Marker.TITLE_HASHES):
                self._pending.append(char)
        elif char == '-':
            if self._push(MarkdownFormat.LIST, Marker.DASH):
                self._pending.append(BULLET)
            else:
                self._pending.append(char)
        elif char == '>':
            if self._push(MarkdownFormat.QUOTE, Marker.ANGLE):
                self._pending.extend(QUOTE_PREFIX)
            else:
                self._pending.append(char)
        elif char == '`':
            if not self._push(MarkdownFormat.CODE, Marker.BACKTICKS):
                self._pending.append(char)
        elif char in ('\n', '\r'):
            # Blank line terminates every open construct
            self._emit()
            self._stack = []
            self._line_break()
        else:
            self._pending.append(char)

    def _backtick_run_char(self, top: OpenConstruct, char: str):
        if char == '`':
            if self._pending:
                self._emit()
                self._pop()
                return
            top.count += 1
            if top.count >= 3:
                top.marker = Marker.FENCE_LANGUAGE
            return
        if top.count == 2:
            # '``' followed by something else is plain text
            self._pop()
            self._pending.extend('``')
            if char == '\n':
                self._newline()
            else:
                self._pending.append(char)
            return
        self._inline_code_char(char)

    def _inline_code_char(self, char: str):
        if char == '`':
            self._emit()
            self._pop()
        elif char == '\n':
            self._emit()
            self._pop()
            self._line_break()
        else:
            self._pending.append(char)

    def _star(self, top: Optional[OpenConstruct]):
        if self._prev != '*':
            self._pending.append('*')
            return
        self._retract_star()
        self._emit()
        if top is not None and top.format is MarkdownFormat.BOLD:
            self._pop()
        elif not self._push(MarkdownFormat.BOLD, Marker.DOUBLE_STAR):
            self._pending.extend('**')

    def _single_star_toggle(self, top: Optional[OpenConstruct], char: str):
        self._pending.pop()
        self._emit()
        if top is not None and top.format is MarkdownFormat.ITALIC and top.marker is Marker.STAR:
            self._pop()
        elif not self._push(MarkdownFormat.ITALIC, Marker.STAR):
            self._pending.append('*')
        if char == '\n':
            self._newline()
        else:
            self._pending.append(char)

    def _underscore(self, top: Optional[OpenConstruct]):
        self._emit()
        if top is not None and top.format is MarkdownFormat.ITALIC and top.marker is Marker.UNDERSCORE:
            self._pop()
        elif not self._push(MarkdownFormat.ITALIC, Marker.UNDERSCORE):
            self._pending.append('_')

    def _newline(self):
        self._emit()
        line_formats = (MarkdownFormat.TITLE, MarkdownFormat.LIST, MarkdownFormat.QUOTE)
        while self._stack and self._stack[-1].format in line_formats:
            self._stack.pop()
        self._line_break()
