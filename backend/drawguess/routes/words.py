from __future__ import annotations

from flask import Blueprint, jsonify

from ..game.words import WORD_BANK, categories

bp = Blueprint("words", __name__)


@bp.get("/categories")
def get_categories():
    return jsonify(
        {
            "categories": [
                {"name": name, "wordCount": len(WORD_BANK[name])}
                for name in categories()
            ]
        }
    )
