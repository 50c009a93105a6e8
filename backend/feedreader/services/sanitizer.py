"""
Content sanitizer for feed-supplied article bodies.

Reduces untrusted markup to a small allow-listed HTML subset and normalizes
its structure so that the stored description is safe to render and stable:
sanitizing an already sanitized body returns it unchanged.
"""

import html
import logging
import re
from typing import List, Optional

from bs4 import BeautifulSoup
from bs4.element import (
    CData,
    Comment,
    Declaration,
    Doctype,
    NavigableString,
    ProcessingInstruction,
    Tag,
)

logger = logging.getLogger(__name__)

ALLOWED_TAGS = {
    "p", "br", "strong", "em", "b", "i", "u",
    "h1", "h2", "h3", "h4", "h5", "h6",
    "ul", "ol", "li", "blockquote", "pre", "code",
    "a", "img",
}

ALLOWED_ATTRIBUTES = {
    "a": ("href", "title"),
    "img": ("src", "alt", "title", "width", "height"),
}

# Elements whose content is never readable text; removed together with it
DROP_WITH_CONTENT = {
    "script", "style", "iframe", "object", "embed", "applet", "noscript",
    "template", "head", "title", "meta", "link", "base", "svg", "math",
    "form", "input", "textarea", "select", "button", "canvas",
}

BLOCK_TAGS = {"p", "h1", "h2", "h3", "h4", "h5", "h6", "ul", "ol", "li", "blockquote", "pre"}

LEGACY_TAGS = {"b": "strong", "i": "em"}

SAFE_URL_SCHEMES = {
    "href": {"http", "https", "mailto"},
    "src": {"http", "https"},
}

NON_CONTENT_STRINGS = (Comment, CData, Declaration, Doctype, ProcessingInstruction)

_SCHEME_RE = re.compile(r"^([a-z][a-z0-9+.\-]*):")
_URL_NOISE_RE = re.compile(r"[\x00-\x20\x7f]+")
_DIMENSION_RE = re.compile(r"^\d{1,5}%?$")
_WHITESPACE_RE = re.compile(r"\s+")


class ContentSanitizer:
    """
    Allow-list HTML sanitizer.

    Pure and deterministic: no state is kept between calls and the same input
    always produces the same output. Never raises; input the parser cannot
    handle is reduced to escaped text.
    """

    def sanitize(self, raw: Optional[str]) -> str:
        if not raw:
            return ""

        try:
            soup = BeautifulSoup(raw, "html.parser")
            self._clean(soup)
            soup.smooth()
            self._collapse_whitespace(soup)
            self._normalize_container(soup, soup)
            for paragraph in soup.find_all("p"):
                self._split_paragraph(paragraph, soup)
            return soup.decode(formatter="minimal").strip()
        except Exception as e:
            logger.warning(f"Falling back to plain text while sanitizing content: {e}")
            text = _WHITESPACE_RE.sub(" ", raw).strip()
            return f"<p>{html.escape(text, quote=False)}</p>" if text else ""

    def _clean(self, node: Tag) -> None:
        """Drop, unwrap or strip every node below node according to the allow-list"""
        for child in list(node.children):
            if isinstance(child, NON_CONTENT_STRINGS):
                child.extract()
                continue
            if not isinstance(child, Tag):
                continue

            name = child.name.lower()
            if name in DROP_WITH_CONTENT:
                child.decompose()
                continue

            self._clean(child)

            if name not in ALLOWED_TAGS:
                child.unwrap()
                continue

            child.name = LEGACY_TAGS.get(name, name)
            child.attrs = self._allowed_attrs(name, child.attrs)

    @staticmethod
    def _allowed_attrs(name: str, attrs: dict) -> dict:
        allowed = ALLOWED_ATTRIBUTES.get(name, ())
        kept = {}
        for key, value in attrs.items():
            if key not in allowed:
                continue
            if isinstance(value, list):
                value = " ".join(value)
            value = value.strip()
            if key in SAFE_URL_SCHEMES and not _is_safe_url(value, SAFE_URL_SCHEMES[key]):
                continue
            if key in ("width", "height") and not _DIMENSION_RE.match(value):
                continue
            kept[key] = value
        return kept

    @staticmethod
    def _collapse_whitespace(soup: BeautifulSoup) -> None:
        for text in list(soup.find_all(string=True)):
            collapsed = _WHITESPACE_RE.sub(" ", str(text))
            if collapsed != str(text):
                text.replace_with(NavigableString(collapsed))

    def _normalize_container(self, container: Tag, soup: BeautifulSoup) -> None:
        """
        Wrap loose inline content of container into paragraphs.

        Runs of inline nodes between block elements become paragraphs, split
        wherever two or more consecutive line breaks occur. Block quotes get
        the same treatment for their own content.
        """
        children = [child.extract() for child in list(container.contents)]
        rebuilt: List = []
        run: List = []

        def flush():
            for chunk in _split_on_breaks(run):
                chunk = _strip_edges(chunk)
                if _is_blank(chunk):
                    continue
                paragraph = soup.new_tag("p")
                for node in chunk:
                    paragraph.append(node)
                rebuilt.append(paragraph)
            run.clear()

        for child in children:
            if isinstance(child, Tag) and child.name in BLOCK_TAGS:
                flush()
                rebuilt.append(child)
            else:
                run.append(child)
        flush()

        for child in rebuilt:
            container.append(child)
            if child.name == "blockquote":
                self._normalize_container(child, soup)

    @staticmethod
    def _split_paragraph(paragraph: Tag, soup: BeautifulSoup) -> None:
        """Turn line-break pairs inside a paragraph into paragraph boundaries"""
        if paragraph.parent is None:
            return
        chunks = _split_on_breaks(list(paragraph.contents))
        if len(chunks) < 2:
            return

        for chunk in chunks:
            chunk = _strip_edges(chunk)
            if _is_blank(chunk):
                continue
            new_paragraph = soup.new_tag("p")
            for node in chunk:
                new_paragraph.append(node)
            paragraph.insert_before(new_paragraph)
        paragraph.decompose()


def _is_safe_url(value: str, schemes: set) -> bool:
    normalized = _URL_NOISE_RE.sub("", html.unescape(value)).lower()
    match = _SCHEME_RE.match(normalized)
    if match is None:
        # Relative URL
        return True
    return match.group(1) in schemes


def _is_break(node) -> bool:
    return isinstance(node, Tag) and node.name == "br"


def _is_blank_string(node) -> bool:
    return isinstance(node, NavigableString) and not isinstance(node, Tag) and not node.strip()


def _is_blank(nodes: List) -> bool:
    return all(_is_blank_string(node) for node in nodes)


def _split_on_breaks(nodes: List) -> List[List]:
    """Split nodes wherever two or more <br> occur with only whitespace between"""
    chunks: List[List] = [[]]
    i = 0
    while i < len(nodes):
        node = nodes[i]
        if _is_break(node):
            j = i + 1
            breaks = 1
            while j < len(nodes) and (_is_break(nodes[j]) or _is_blank_string(nodes[j])):
                if _is_break(nodes[j]):
                    breaks += 1
                j += 1
            if breaks >= 2:
                chunks.append([])
                i = j
                continue
        chunks[-1].append(node)
        i += 1
    return chunks


def _strip_edges(nodes: List) -> List:
    """Trim whitespace at the start and end of a run of nodes"""
    nodes = list(nodes)
    if nodes and _is_plain_string(nodes[0]):
        nodes[0] = NavigableString(str(nodes[0]).lstrip())
    if nodes and _is_plain_string(nodes[-1]):
        nodes[-1] = NavigableString(str(nodes[-1]).rstrip())
    return [node for node in nodes if not (_is_plain_string(node) and not str(node))]


def _is_plain_string(node) -> bool:
    return isinstance(node, NavigableString) and not isinstance(node, Tag)


sanitizer = ContentSanitizer()


def sanitize_html(raw: Optional[str]) -> str:
    """Sanitize with the shared stateless instance"""
    return sanitizer.sanitize(raw)
