"""Deterministic, rule-based text cleansing.

Rules run in a fixed order; each is toggled by a
:class:`~ragline.models.catalog.CleansingConfig` flag:

1. fix encoding       mojibake repair, control characters stripped
2. remove headers     header-pattern lines among the first five lines
3. remove footers     footer-pattern block among the last ten lines
4. remove page numbers  "12", "Page 12", "3/10", "- 4 -" on their own line
5. remove URLs        (off by default)
6. remove emails      (off by default)
7. custom rules       user regexes, in order
8. normalize whitespace

Encoding is repaired before whitespace is normalized so characters
recovered from mojibake are normalized too.  With every toggle off the
input is returned unchanged.
"""

from __future__ import annotations

import re

from ragline.models.catalog import CleansingConfig, CleansingRule

# UTF-8 text decoded as cp1252/latin-1.  Longest sequences first.
_MOJIBAKE: tuple[tuple[str, str], ...] = (
    ("â€™", "'"),
    ("â€˜", "'"),
    ("â€œ", '"'),
    ("â€\x9d", '"'),
    ("â€”", "—"),
    ("â€“", "–"),
    ("â€¦", "…"),
    ("Ã©", "é"),
    ("Ã¨", "è"),
    ("Ã ", "à"),
    ("Ã¢", "â"),
    ("Ã§", "ç"),
    ("Ã¶", "ö"),
    ("Ã¼", "ü"),
    ("Ã¤", "ä"),
    ("Â ", " "),
)

# C0/C1 control characters except tab, newline and carriage return.
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")

_HEADER_PATTERNS = (
    re.compile(r"^(page|document|chapter|section)\s*\d+", re.IGNORECASE),
    re.compile(r"^(confidential|proprietary|draft)", re.IGNORECASE),
    re.compile(r"^\d{1,2}/\d{1,2}/\d{2,4}"),
)
_ALL_CAPS_LINE = re.compile(r"^[A-Z\s]+$")

_FOOTER_PATTERNS = (
    re.compile(r"^(copyright|©|\(c\))", re.IGNORECASE),
    re.compile(r"^(page|p\.)\s*\d+", re.IGNORECASE),
    re.compile(r"confidential|proprietary", re.IGNORECASE),
    re.compile(r"all rights reserved", re.IGNORECASE),
)

_PAGE_NUMBER_LINES = (
    re.compile(r"^[ \t]*\d+[ \t]*$", re.MULTILINE),
    re.compile(r"^[ \t]*page[ \t]+\d+[ \t]*$", re.MULTILINE | re.IGNORECASE),
    re.compile(r"^[ \t]*\d+[ \t]*/[ \t]*\d+[ \t]*$", re.MULTILINE),
    re.compile(r"^[ \t]*-[ \t]*\d+[ \t]*-[ \t]*$", re.MULTILINE),
)

_URL = re.compile(r"https?://\S+")
_EMAIL = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

_SHORT_LINE = 50
_HEADER_SCAN_LINES = 5
_FOOTER_SCAN_LINES = 10

_RULE_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL, "x": re.VERBOSE}


class TextCleanser:
    """Apply the deterministic cleansing rules selected by a config."""

    def cleanse(self, text: str, config: CleansingConfig) -> str:
        if config.fix_encoding:
            text = self.fix_encoding(text)
        if config.remove_headers:
            text = self.remove_headers(text)
        if config.remove_footers:
            text = self.remove_footers(text)
        if config.remove_page_numbers:
            text = self.remove_page_numbers(text)
        if config.remove_urls:
            text = _URL.sub("", text)
        if config.remove_emails:
            text = _EMAIL.sub("", text)
        if config.custom_rules:
            text = self.apply_custom_rules(text, config.custom_rules)
        if config.normalize_whitespace:
            text = self.normalize_whitespace(text)
        return text

    @staticmethod
    def fix_encoding(text: str) -> str:
        for broken, fixed in _MOJIBAKE:
            text = text.replace(broken, fixed)
        return _CONTROL_CHARS.sub("", text)

    @staticmethod
    def remove_headers(text: str) -> str:
        lines = text.split("\n")
        kept = [
            line
            for i, line in enumerate(lines)
            if not (i < _HEADER_SCAN_LINES and _is_header_line(line.strip()))
        ]
        return "\n".join(kept)

    @staticmethod
    def remove_footers(text: str) -> str:
        lines = text.split("\n")
        footer_start = len(lines)
        # Walk up from the bottom; a long non-footer line ends the footer block.
        for i in range(len(lines) - 1, max(0, len(lines) - _FOOTER_SCAN_LINES) - 1, -1):
            line = lines[i].strip()
            if _is_footer_line(line):
                footer_start = i
            elif len(line) > _SHORT_LINE:
                break
        return "\n".join(lines[:footer_start])

    @staticmethod
    def remove_page_numbers(text: str) -> str:
        for pattern in _PAGE_NUMBER_LINES:
            text = pattern.sub("", text)
        return text

    @staticmethod
    def apply_custom_rules(text: str, rules: list[CleansingRule]) -> str:
        """Apply each rule with ``re.sub``; the replacement uses Python syntax (``\\1``)."""
        for rule in rules:
            flags = 0
            for flag in rule.flags:
                flags |= _RULE_FLAGS.get(flag, 0)
            text = re.sub(rule.pattern, rule.replacement, text, flags=flags)
        return text

    @staticmethod
    def normalize_whitespace(text: str) -> str:
        text = text.replace("\r\n", "\n").replace("\r", "\n")
        text = text.replace("\t", "    ")
        text = re.sub(r" +", " ", text)
        text = re.sub(r"\n{3,}", "\n\n", text)
        return text.strip()


def _is_header_line(line: str) -> bool:
    if any(p.search(line) for p in _HEADER_PATTERNS):
        return True
    return len(line) < _SHORT_LINE and bool(_ALL_CAPS_LINE.match(line))


def _is_footer_line(line: str) -> bool:
    return any(p.search(line) for p in _FOOTER_PATTERNS)
