from __future__ import annotations

import enum


class Policy(str, enum.Enum):
    """How the sale workflow reacts to a failing inventory call.

    STRICT blocks (pricing) or fails (stock) the sale; LENIENT falls back
    and records a warning in the sale notes.
    """

    STRICT = "strict"
    LENIENT = "lenient"
