import os
import pathlib
import sys

import pandas as pd
import pytest
import reportlab
from reportlab.lib.pagesizes import A4, landscape
from reportlab.pdfgen import canvas

PROJECT_ROOT = pathlib.Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from certificates import AssetPaths

VERA_TTF = os.path.join(os.path.dirname(reportlab.__file__), "fonts", "Vera.ttf")

ROSTER = [
    {"name": "Jane Doe", "rollno": 42, "email": "jane@example.com"},
    {"name": "  Ahmed Ali ", "rollno": "CS-007", "email": "ahmed@example.com"},
    {"name": "Ghost Entry", "rollno": None, "email": "ghost@example.com"},
    {"name": "Mary Smith", "rollno": "21CS002", "email": "mary@example.com"},
    {"name": "mary smith", "rollno": "21cs002", "email": "mary.two@example.com"},
]


def write_template(path, pages=1, font="Helvetica-Bold"):
    width, height = landscape(A4)
    c = canvas.Canvas(str(path), pagesize=(width, height), invariant=1)
    for _ in range(pages):
        c.setFont(font, 36)
        c.drawCentredString(width / 2, height * 0.7, "Certificate of Participation")
        c.showPage()
    c.save()
    return path


@pytest.fixture
def font_path():
    if not os.path.exists(VERA_TTF):
        pytest.skip("reportlab bundled Vera.ttf not available")
    return VERA_TTF


@pytest.fixture
def template_path(tmp_path):
    return str(write_template(tmp_path / "certificate-template.pdf"))


@pytest.fixture
def roster_path(tmp_path):
    path = tmp_path / "students.xlsx"
    pd.DataFrame(ROSTER).to_excel(path, index=False)
    return str(path)


@pytest.fixture
def assets(tmp_path, monkeypatch, roster_path, template_path, font_path):
    monkeypatch.setenv("ROSTER_PATH", roster_path)
    monkeypatch.setenv("TEMPLATE_PATH", template_path)
    monkeypatch.setenv("FONT_PATH", font_path)
    monkeypatch.setenv("FIELDS_CONFIG", str(tmp_path / "fields_config.json"))
    monkeypatch.delenv("MATCH_EMAIL", raising=False)
    return AssetPaths(roster=roster_path, template=template_path, font=font_path)


@pytest.fixture
def client(assets):
    from fastapi.testclient import TestClient

    from main import app

    return TestClient(app)
