"""
Plain-text and Markdown-lite documents.

A small stand-in for a real book parser, enough to feed the engine from a
text file:

    # Title            starts a chapter (and is its level-1 heading)
    ## Section         heading, levels 2 to 6
    - item             list item, two spaces of indent per level
    ```lang            fenced code block
    ![alt](path.png)   image on a line of its own; inline elsewhere
    **strong** *emphasis* `code`

Everything else is paragraphs separated by blank lines. Text before the
first chapter heading becomes an untitled chapter.
"""

import logging
import os
import re

from PIL import Image

from termleaf.document import (
    Chapter,
    CodeBlock,
    Document,
    Heading,
    ImageBlock,
    ListItem,
    Paragraph,
    Run,
)

logger = logging.getLogger(__name__)


# Size assumed for images whose file cannot be read
FALLBACK_IMAGE_SIZE = (320, 240)

_HEADING = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$")
_LIST = re.compile(r"^(\s*)[-*+]\s+(.*)$")
_FENCE = re.compile(r"^\s*```\s*([\w+#.-]*)\s*$")
_IMAGE_LINE = re.compile(r"^\s*!\[([^\]]*)\]\(([^)\s]+)\)\s*$")
_INLINE = re.compile(
    r"\*\*(?P<strong>.+?)\*\*"
    r"|(?<![\w*])\*(?P<em>[^*\s][^*]*?)\*(?![\w*])"
    r"|(?<!\w)_(?P<em2>[^_\s][^_]*?)_(?!\w)"
    r"|`(?P<code>[^`]+)`"
    r"|!\[(?P<alt>[^\]]*)\]\((?P<src>[^)\s]+)\)"
)
_FRONTMATTER = re.compile(r"^---\s*\n(.*?)\n---\s*\n", re.DOTALL)


def _extract_frontmatter(content):
    """Extract --- delimited frontmatter if present. Returns (meta, body)."""
    m = _FRONTMATTER.match(content)
    if not m:
        return {}, content
    meta = {}
    for line in m.group(1).split("\n"):
        if ":" in line:
            key, _, value = line.partition(":")
            meta[key.strip().lower()] = value.strip().strip("\"'")
    return meta, content[m.end():]


def parse_inline(text):
    """Split a line of Markdown-lite into runs."""
    runs = []
    position = 0
    for match in _INLINE.finditer(text):
        if match.start() > position:
            runs.append(Run(text[position:match.start()]))
        if match.group("strong") is not None:
            runs.append(Run(match.group("strong"), strong=True))
        elif match.group("em") is not None:
            runs.append(Run(match.group("em"), emphasis=True))
        elif match.group("em2") is not None:
            runs.append(Run(match.group("em2"), emphasis=True))
        elif match.group("code") is not None:
            runs.append(Run(match.group("code"), code=True))
        else:
            runs.append(Run.image_ref(match.group("src"), match.group("alt")))
        position = match.end()
    if position < len(text):
        runs.append(Run(text[position:]))
    return runs


def image_size(path):
    """Natural (width, height) of an image file, or a fallback size."""
    try:
        with Image.open(path) as image:
            return image.size
    except (OSError, ValueError) as exc:
        logger.warning("Cannot read image %s (%s); assuming %dx%d", path, exc, *FALLBACK_IMAGE_SIZE)
        return FALLBACK_IMAGE_SIZE


class _Builder:
    def __init__(self, base_dir):
        self.base_dir = base_dir
        self.chapters = []
        self.title = None
        self.blocks = []
        self.paragraph = []

    def flush_paragraph(self):
        if self.paragraph:
            text = " ".join(line.strip() for line in self.paragraph)
            self.blocks.append(Paragraph(parse_inline(text)))
            self.paragraph = []

    def flush_chapter(self):
        self.flush_paragraph()
        if self.blocks or self.title is not None:
            self.chapters.append(Chapter(len(self.chapters), self.blocks, title=self.title))
        self.blocks = []
        self.title = None

    def image(self, alt, src):
        width, height = image_size(os.path.join(self.base_dir, src))
        self.blocks.append(ImageBlock(src, width, height, alt))


def loads(content, base_dir=".", title=None):
    """Parse Markdown-lite text into a Document."""
    meta, body = _extract_frontmatter(content.replace("\r\n", "\n"))
    builder = _Builder(base_dir)
    lines = body.split("\n")
    number = 0
    while number < len(lines):
        line = lines[number]
        number += 1

        fence = _FENCE.match(line)
        if fence:
            builder.flush_paragraph()
            code = []
            while number < len(lines) and not _FENCE.match(lines[number]):
                code.append(lines[number])
                number += 1
            number += 1  # closing fence
            builder.blocks.append(CodeBlock("\n".join(code), fence.group(1) or None))
            continue

        if not line.strip():
            builder.flush_paragraph()
            continue

        heading = _HEADING.match(line)
        if heading:
            level = len(heading.group(1))
            if level == 1:
                builder.flush_chapter()
                builder.title = heading.group(2)
            else:
                builder.flush_paragraph()
            builder.blocks.append(Heading(level, parse_inline(heading.group(2))))
            continue

        image = _IMAGE_LINE.match(line)
        if image:
            builder.flush_paragraph()
            builder.image(image.group(1), image.group(2))
            continue

        item = _LIST.match(line)
        if item:
            builder.flush_paragraph()
            depth = len(item.group(1).expandtabs(4)) // 2
            builder.blocks.append(ListItem(parse_inline(item.group(2)), depth=depth))
            continue

        builder.paragraph.append(line)

    builder.flush_chapter()
    if not builder.chapters:
        builder.chapters.append(Chapter(0, []))
    return Document(builder.chapters, title=meta.get("title", title))


def load(path):
    """Load a text or Markdown file as a Document."""
    with open(path, "r", encoding="utf-8") as f:
        content = f.read()
    stem = os.path.splitext(os.path.basename(path))[0]
    title = stem.replace("_", " ").replace("-", " ").title()
    return loads(content, base_dir=os.path.dirname(os.path.abspath(path)), title=title)


class FileImages:
    """Image resources read from files relative to the document."""

    def __init__(self, base_dir):
        self.base_dir = base_dir

    def fetch(self, resource_id):
        with open(os.path.join(self.base_dir, resource_id), "rb") as f:
            return f.read()
