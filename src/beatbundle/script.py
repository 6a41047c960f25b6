"""
The beat script handed to the rendering engine (mulmo_script.json).
"""

import json
from pathlib import Path

from .models import Beat

SCRIPT_NAME = "mulmo_script.json"
SCRIPT_VERSION = "1.1"


def build_mulmo_script(beats: list[Beat], lang: str) -> dict:
    return {
        "$mulmocast": {"version": SCRIPT_VERSION, "credit": "closing"},
        "lang": lang,
        "beats": [
            {
                "text": beat.text,
                "image": {
                    "type": "movie",
                    "source": {"kind": "path", "path": f"./{beat.video_source}"},
                },
            }
            for beat in beats
        ],
    }


def write_mulmo_script(path: str | Path, beats: list[Beat], lang: str) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(build_mulmo_script(beats, lang), ensure_ascii=False, indent=2), encoding="utf-8"
    )
    return path
