"""Minimal markdown parser for tutor answers and lesson text.

``parse_markdown`` turns a text blob into a flat list of display blocks. It is
total: anything it does not recognise becomes a paragraph.

Inline formatting is recognised in a fixed order: code spans, then ``$math$``,
then ``**bold**``, then ``*italic*``. Each pass only looks inside the plain
text left over by the previous passes, so spans never nest. ``**a *b* c**``
does not give bold-with-italic; overlapping delimiters give partial results.
"""
import re
from dataclasses import dataclass, field
from typing import NamedTuple, Union

TEXT = "text"
CODE = "code"
MATH = "math"
BOLD = "bold"
ITALIC = "italic"

FENCE = "```"
NUMBERED_RE = re.compile(r"^\d+\.\s")

INLINE_RULES = (
    (re.compile(r"`([^`]+)`"), CODE),
    (re.compile(r"\$([^$]+)\$"), MATH),
    (re.compile(r"\*\*([^*]+)\*\*"), BOLD),
    (re.compile(r"\*([^*]+)\*"), ITALIC),
)


class Span(NamedTuple):
    kind: str
    text: str


@dataclass
class LineBreak:
    pass


@dataclass
class Heading:
    level: int
    spans: list[Span] = field(default_factory=list)


@dataclass
class Paragraph:
    spans: list[Span] = field(default_factory=list)


@dataclass
class Blockquote:
    spans: list[Span] = field(default_factory=list)


@dataclass
class CodeBlock:
    language: str
    code: str


@dataclass
class BulletList:
    items: list[list[Span]] = field(default_factory=list)


@dataclass
class NumberedList:
    items: list[list[Span]] = field(default_factory=list)


Block = Union[LineBreak, Heading, Paragraph, Blockquote, CodeBlock, BulletList, NumberedList]


def _split_text_spans(spans: list[Span], pattern: re.Pattern, kind: str) -> list[Span]:
    result = []
    for span in spans:
        if span.kind != TEXT:
            result.append(span)
            continue
        last = 0
        for match in pattern.finditer(span.text):
            if match.start() > last:
                result.append(Span(TEXT, span.text[last:match.start()]))
            result.append(Span(kind, match.group(1)))
            last = match.end()
        if last < len(span.text):
            result.append(Span(TEXT, span.text[last:]))
    return result


def format_inline(text: str) -> list[Span]:
    """Tokenize a line into ordered (kind, text) spans."""
    spans = [Span(TEXT, text)] if text else []
    for pattern, kind in INLINE_RULES:
        spans = _split_text_spans(spans, pattern, kind)
    return spans


def _is_bullet(line: str) -> bool:
    return line.startswith("- ") or line.startswith("* ")


def _is_numbered(line: str) -> bool:
    return NUMBERED_RE.match(line) is not None


def parse_markdown(text: str) -> list[Block]:
    lines = text.replace("\r\n", "\n").split("\n")
    blocks: list[Block] = []
    i = 0
    while i < len(lines):
        line = lines[i]

        if not line.strip():
            blocks.append(LineBreak())
        elif line.startswith("### "):
            blocks.append(Heading(3, format_inline(line[4:])))
        elif line.startswith("## "):
            blocks.append(Heading(2, format_inline(line[3:])))
        elif line.startswith("# "):
            blocks.append(Heading(1, format_inline(line[2:])))
        elif line.startswith(FENCE):
            tokens = line[len(FENCE):].split()
            language = tokens[0] if tokens else ""
            code_lines = []
            i += 1
            while i < len(lines) and not lines[i].startswith(FENCE):
                code_lines.append(lines[i])
                i += 1
            # i is on the closing fence (or past the end); the increment below consumes it
            blocks.append(CodeBlock(language, "\n".join(code_lines)))
        elif line.startswith("> "):
            blocks.append(Blockquote(format_inline(line[2:])))
        elif _is_bullet(line):
            items = []
            while i < len(lines) and _is_bullet(lines[i]):
                items.append(format_inline(lines[i][2:]))
                i += 1
            blocks.append(BulletList(items))
            continue
        elif _is_numbered(line):
            items = []
            while i < len(lines) and _is_numbered(lines[i]):
                items.append(format_inline(NUMBERED_RE.sub("", lines[i], count=1)))
                i += 1
            blocks.append(NumberedList(items))
            continue
        else:
            blocks.append(Paragraph(format_inline(line)))
        i += 1
    return blocks


def spans_text(spans: list[Span]) -> str:
    return "".join(span.text for span in spans)


def plain_text(blocks: list[Block]) -> str:
    """Flatten parsed blocks to unformatted text, e.g. for reading aloud."""
    lines = []
    for block in blocks:
        if isinstance(block, LineBreak):
            lines.append("")
        elif isinstance(block, CodeBlock):
            lines.append(block.code)
        elif isinstance(block, (BulletList, NumberedList)):
            lines.extend(spans_text(item) for item in block.items)
        else:
            lines.append(spans_text(block.spans))
    return "\n".join(lines).strip()
