"""Syntax colouring of code blocks with pygments."""

import logging
from functools import lru_cache

from pygments.lexers import get_lexer_by_name, guess_lexer
from pygments.lexers.special import TextLexer
from pygments.util import ClassNotFound

logger = logging.getLogger(__name__)


# Format: token type -> (dark_theme_color, light_theme_color)
# Light theme colours are darker and more saturated for contrast on light backgrounds.
TOKEN_COLORS = {
    'Keyword': ((0, 150, 255), (0, 50, 200)),
    'Keyword.Type': ((100, 200, 255), (0, 100, 180)),

    'Name.Class': ((255, 255, 0), (180, 140, 0)),
    'Name.Function': ((255, 255, 0), (180, 140, 0)),
    'Name.Builtin.Pseudo': ((255, 100, 255), (150, 0, 150)),  # this, self, super
    'Name.Builtin': ((255, 100, 255), (150, 0, 150)),
    'Name.Exception': ((255, 100, 0), (200, 50, 0)),
    'Name.Decorator': ((255, 100, 255), (150, 0, 150)),
    'Name.Tag': ((0, 150, 255), (0, 50, 200)),
    'Name.Attribute': ((255, 255, 0), (180, 140, 0)),
    'Name.Property': ((255, 255, 0), (180, 140, 0)),
    'Name.Constant': ((255, 165, 0), (180, 90, 0)),
    'Name.Variable': ((0, 255, 255), (0, 150, 150)),
    'Name.Other': ((0, 255, 255), (0, 150, 150)),

    'Literal.String.Interpol': ((255, 255, 0), (180, 140, 0)),
    'Literal.String': ((0, 255, 0), (0, 140, 0)),
    'Literal.Number': ((255, 165, 0), (180, 90, 0)),

    'Comment.Preproc': ((255, 255, 255), (50, 50, 50)),
    'Comment': ((128, 128, 128), (100, 100, 100)),

    'Operator': ((255, 100, 255), (150, 0, 150)),
    'Punctuation': ((255, 255, 0), (180, 140, 0)),

    'Error': ((255, 0, 0), (200, 0, 0)),
}

DEFAULT_COLOR = ((255, 255, 255), (50, 50, 50))


def get_token_color(token_type):
    """Map a pygments token type to a (dark, light) colour pair."""
    token_str = str(token_type)
    if token_str.startswith("Token."):
        token_str = token_str[6:]

    if token_str in TOKEN_COLORS:
        return TOKEN_COLORS[token_str]

    # Longest prefix wins, so "Name.Builtin.Pseudo" beats "Name.Builtin"
    best = None
    for pattern in TOKEN_COLORS:
        if token_str.startswith(pattern + ".") and (best is None or len(pattern) > len(best)):
            best = pattern
    if best is not None:
        return TOKEN_COLORS[best]
    return DEFAULT_COLOR


def _lexer_for(code, language):
    if language:
        try:
            return get_lexer_by_name(language)
        except ClassNotFound:
            logger.debug("No lexer named %r, guessing from content", language)
    try:
        return guess_lexer(code)
    except ClassNotFound:
        return TextLexer()


@lru_cache(maxsize=256)
def highlight_spans(code, language=None):
    """
    Return colour spans for a block of code.

    Each span is (start, end, (dark, light)) in offsets of ``code``. Plain
    text and whitespace get no span, and adjacent spans of one colour are
    merged.
    """
    if not code.strip():
        return ()

    lexer = _lexer_for(code, language)
    if isinstance(lexer, TextLexer):
        return ()

    spans = []
    for index, token_type, value in lexer.get_tokens_unprocessed(code):
        if not value or value.isspace():
            continue
        color = get_token_color(token_type)
        if color == DEFAULT_COLOR:
            continue
        end = index + len(value)
        if spans and spans[-1][1] == index and spans[-1][2] == color:
            spans[-1] = (spans[-1][0], end, color)
        else:
            spans.append((index, end, color))
    return tuple(spans)
