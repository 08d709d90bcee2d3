"""
Archive Collection Schema

Table layout and boilerplate JSON of the collection database inside an
.apkg file (schema version 11). Shared by the importer (table checks) and
the exporter (creating a fresh collection).
"""

import hashlib
from typing import Any

COLLECTION_NAMES = ("collection.anki21", "collection.anki2")
EXPORT_COLLECTION_NAME = "collection.anki2"
MEDIA_NAME = "media"
REQUIRED_TABLES = frozenset({"col", "notes", "cards"})

SCHEMA_VERSION = 11
DEFAULT_DECK_ID = 1
DEFAULT_DECK_NAME = "Default"
DEFAULT_CONF_ID = 1
BASIC_MODEL_ID = 1700000000001
DEFAULT_FACTOR = 2500

SCHEMA_SQL = """
CREATE TABLE col (
    id              integer primary key,
    crt             integer not null, /* creation time (seconds) */
    mod             integer not null, /* modification time (ms) */
    scm             integer not null, /* schema modification time (ms) */
    ver             integer not null,
    dty             integer not null,
    usn             integer not null,
    ls              integer not null, /* last sync time (ms) */
    conf            text not null,
    models          text not null,
    decks           text not null,
    dconf           text not null,
    tags            text not null
);
CREATE TABLE notes (
    id              integer primary key,
    guid            text not null,
    mid             integer not null,
    mod             integer not null,
    usn             integer not null,
    tags            text not null,
    flds            text not null, /* fields separated by 0x1f */
    sfld            integer not null,
    csum            integer not null, /* first 8 hex digits of sha1(first field) */
    flags           integer not null,
    data            text not null
);
CREATE TABLE cards (
    id              integer primary key,
    nid             integer not null,
    did             integer not null,
    ord             integer not null,
    mod             integer not null,
    usn             integer not null,
    type            integer not null, /* 0=new, 1=lrn, 2=rev, 3=relrn */
    queue           integer not null,
    due             integer not null, /* new: position, lrn: epoch seconds, rev: day offset */
    ivl             integer not null,
    factor          integer not null,
    reps            integer not null,
    lapses          integer not null,
    left            integer not null,
    odue            integer not null,
    odid            integer not null,
    flags           integer not null,
    data            text not null
);
CREATE TABLE revlog (
    id              integer primary key,
    cid             integer not null,
    usn             integer not null,
    ease            integer not null,
    ivl             integer not null,
    lastIvl         integer not null,
    factor          integer not null,
    time            integer not null,
    type            integer not null
);
CREATE TABLE graves (
    usn             integer not null,
    oid             integer not null,
    type            integer not null
);
CREATE INDEX ix_notes_usn ON notes (usn);
CREATE INDEX ix_cards_usn ON cards (usn);
CREATE INDEX ix_revlog_usn ON revlog (usn);
CREATE INDEX ix_cards_nid ON cards (nid);
CREATE INDEX ix_cards_sched ON cards (did, queue, due);
CREATE INDEX ix_revlog_cid ON revlog (cid);
CREATE INDEX ix_notes_csum ON notes (csum);
"""


def checksum(text: str) -> int:
    """Note checksum: first 8 hex digits of the SHA-1 of the sort field."""
    return int(hashlib.sha1(text.encode("utf-8")).hexdigest()[:8], 16)


def collection_conf() -> dict[str, Any]:
    return {
        "nextPos": 1,
        "estTimes": True,
        "activeDecks": [DEFAULT_DECK_ID],
        "sortType": "noteFld",
        "timeLim": 0,
        "sortBackwards": False,
        "addToCur": True,
        "curDeck": DEFAULT_DECK_ID,
        "newBury": True,
        "newSpread": 0,
        "dueCounts": True,
        "curModel": str(BASIC_MODEL_ID),
        "collapseTime": 1200,
    }


def basic_model(mod: int) -> dict[str, Any]:
    """Note type with two fields (Front, Back) and one card template."""
    return {
        str(BASIC_MODEL_ID): {
            "id": BASIC_MODEL_ID,
            "name": "Basic",
            "type": 0,
            "mod": mod,
            "usn": -1,
            "sortf": 0,
            "did": DEFAULT_DECK_ID,
            "tmpls": [
                {
                    "name": "Card 1",
                    "ord": 0,
                    "qfmt": "{{Front}}",
                    "afmt": "{{FrontSide}}\n\n<hr id=answer>\n\n{{Back}}",
                    "bqfmt": "",
                    "bafmt": "",
                    "did": None,
                    "bfont": "Arial",
                    "bsize": 12,
                }
            ],
            "flds": [
                {"name": "Front", "ord": 0, "sticky": False, "rtl": False, "font": "Arial", "size": 20},
                {"name": "Back", "ord": 1, "sticky": False, "rtl": False, "font": "Arial", "size": 20},
            ],
            "css": ".card {\n font-family: arial;\n font-size: 20px;\n text-align: center;\n color: black;\n background-color: white;\n}\n",
            "latexPre": "\\documentclass[12pt]{article}\n\\special{papersize=3in,5in}\n\\usepackage[utf8]{inputenc}\n\\usepackage{amssymb,amsmath}\n\\pagestyle{empty}\n\\setlength{\\parindent}{0in}\n\\begin{document}",
            "latexPost": "\\end{document}",
            "latexsvg": False,
            "req": [[0, "any", [0]]],
            "tags": [],
            "vers": [],
        }
    }


def deck_entry(deck_id: int, name: str, mod: int, desc: str = "") -> dict[str, Any]:
    """One entry of the ``col.decks`` registry."""
    return {
        "id": deck_id,
        "name": name,
        "mod": mod,
        "usn": -1,
        "lrnToday": [0, 0],
        "revToday": [0, 0],
        "newToday": [0, 0],
        "timeToday": [0, 0],
        "conf": DEFAULT_CONF_ID,
        "desc": desc,
        "dyn": 0,
        "collapsed": False,
        "extendNew": 10,
        "extendRev": 50,
    }


def deck_options(mod: int) -> dict[str, Any]:
    """Default deck options (``col.dconf``)."""
    return {
        str(DEFAULT_CONF_ID): {
            "id": DEFAULT_CONF_ID,
            "name": "Default",
            "mod": mod,
            "usn": -1,
            "maxTaken": 60,
            "timer": 0,
            "autoplay": True,
            "replayq": True,
            "new": {
                "bury": True,
                "delays": [1, 10],
                "initialFactor": DEFAULT_FACTOR,
                "ints": [1, 4, 0],
                "order": 1,
                "perDay": 20,
                "separate": True,
            },
            "rev": {
                "bury": True,
                "ease4": 1.3,
                "fuzz": 0.05,
                "ivlFct": 1,
                "maxIvl": 36500,
                "perDay": 200,
                "hardFactor": 1.2,
            },
            "lapse": {
                "delays": [10],
                "leechAction": 1,
                "leechFails": 8,
                "minInt": 1,
                "mult": 0,
            },
        }
    }
