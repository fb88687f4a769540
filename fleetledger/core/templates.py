# fleetledger/core/templates.py
from __future__ import annotations

from pathlib import Path

from fastapi.templating import Jinja2Templates

from fleetledger.core.formatting import format_money, humanize_currency

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

# Single shared templates environment
templates = Jinja2Templates(directory=str(TEMPLATE_DIR))

templates.env.filters["humanize_currency"] = humanize_currency
templates.env.filters["money"] = format_money

templates.env.globals["humanize_currency"] = humanize_currency
