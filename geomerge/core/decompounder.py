"""German street name decompounder.

A German street name can be written joined ("Goethestraße") or separated
("Goethe Straße"). Both forms are searched, so the one that is not the
primary name is stored as an alternate name.
"""
import re
from typing import Optional

# Street type words, longest first
STREET_TYPE_WORDS = sorted(
    [
        "straße", "strasse", "str.", "weg", "platz", "gasse", "allee", "ring",
        "damm", "ufer", "chaussee", "pfad", "steig", "markt",
    ],
    key=len,
    reverse=True,
)

SEPARATED_PATTERN = re.compile(
    r"^(?P<head>.*\S)[\s-]+(?P<word>" + "|".join(re.escape(w) for w in STREET_TYPE_WORDS) + r")$",
    re.IGNORECASE,
)
JOINED_PATTERN = re.compile(
    r"^(?P<head>.*\S)(?P<word>" + "|".join(re.escape(w) for w in STREET_TYPE_WORDS) + r")$",
    re.IGNORECASE,
)


class Decompounder:

    def is_decompound_name(self, name: Optional[str]) -> bool:
        return self.get_other_format(name) is not None

    def get_other_format(self, name: Optional[str]) -> Optional[str]:
        """
        Return the joined form of a separated name, or the separated form of
        a joined one. None when the name does not end with a street type word.
        """
        if not name or not name.strip():
            return None
        name = name.strip()
        separated = SEPARATED_PATTERN.match(name)
        if separated:
            head = separated.group("head").rstrip(" -")
            return head + separated.group("word").lower()
        joined = JOINED_PATTERN.match(name)
        if joined:
            head = joined.group("head")
            # "Bring" is not "B" + "ring"
            if len(head) < 3 or not head[-1].isalpha():
                return None
            return head + " " + joined.group("word").capitalize()
        return None
