"""
Centralized constants for patterns, key names and other magic values.

Import from here to keep the scanner, the session and the command line in
agreement about what a label looks like and which keys drive the loop.
"""

import re

# =============================================================================
# LaTeX Patterns
# =============================================================================

# Label declaration up to and including the opening brace of its argument.
# The argument itself is read with brace balancing by the scanner.
LABEL_PATTERN = re.compile(r"\\label[ \t]*\{")

# Reference command whose bracketed argument is still open at the cursor,
# e.g. "\ref{sec:" or "\eqref{". Matched against the text before the cursor.
OPEN_REFERENCE_PATTERN = re.compile(
    r"\\(?:ref|eqref|pageref|autoref|cref|Cref|nameref|vref)\*?\{[^{}\n]*\Z"
)

# Comment character; everything after an unescaped one is a comment
COMMENT_CHAR = "%"
ESCAPE_CHAR = "\\"

DEFAULT_REFERENCE_MACRO = "\\ref"


# =============================================================================
# Keys
# =============================================================================

DEFAULT_PREVIOUS_KEY = "C-r"
DEFAULT_NEXT_KEY = "C-s"
DEFAULT_GOTO_KEY = "C-o"

# Named keys that stand for a printable character
NAMED_PRINTABLE_KEYS = {
    "SPC": " ",
}


# =============================================================================
# Session Text
# =============================================================================

# Inserted while no candidate has been chosen in identifier-only mode
PLACEHOLDER = " "

# Separates the step message from the candidate context
CONTEXT_SEPARATOR = "\n\n"

STEP_MESSAGE = "Step %d (%s: previous, %s: next, %s: go to label)"
NO_PREVIOUS_MESSAGE = "No previous label. "
NO_NEXT_MESSAGE = "No next label. "
DIRECTION_PROMPT = "Search direction (%s: previous, %s: next)"


# =============================================================================
# Overlay Styles
# =============================================================================

AT_POINT_STYLE = "refcycle-at-point"
TARGET_STYLE = "refcycle-target"
