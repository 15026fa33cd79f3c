from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Union
from io import BytesIO
import base64, hashlib, json, logging, os

import arabic_reshaper
import pandas as pd
from bidi.algorithm import get_display
from pydantic import BaseModel, EmailStr, ValidationError, ValidationInfo, field_validator, model_validator
from pypdf import PdfReader, PdfWriter
from reportlab.lib.colors import toColor
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfbase.ttfonts import TTFont
from reportlab.pdfgen import canvas

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Participant details not found in registered participants list"
SUCCESS_MESSAGE = "Certificate generated successfully"


# ----------- Errors -----------

class CertificateError(Exception):
    """Base class for failures the service turns into a failed result."""


class RosterError(CertificateError):
    pass


class CertificateRenderError(CertificateError):
    pass


# ----------- Data models -----------

_REQUIRED_MESSAGES = {
    "name": "Full name is required",
    "rollno": "Roll number is required",
}


class Submission(BaseModel):
    name: str
    rollno: str
    email: EmailStr

    @field_validator("name", "rollno", "email", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("name", "rollno")
    @classmethod
    def _not_blank(cls, value: str, info: ValidationInfo) -> str:
        if not value:
            raise ValueError(_REQUIRED_MESSAGES[info.field_name])
        return value


class CertificateResult(BaseModel):
    success: bool
    message: Optional[str] = None
    data: Optional[str] = None  # base64 encoded PDF

    @model_validator(mode="after")
    def _data_only_on_success(self) -> "CertificateResult":
        if self.success != (self.data is not None):
            raise ValueError("data must be set if and only if success is true")
        return self

    @classmethod
    def failure(cls, message: str) -> "CertificateResult":
        return cls(success=False, message=message)


class RosterRow(NamedTuple):
    name: str
    rollno: str
    email: Optional[str] = None


class NameFieldLayout(NamedTuple):
    font_size: float = 50
    y_ratio: float = 0.45  # fraction of page height, from the bottom edge
    fill: str = "#000000"


def describe_validation_errors(errors: List[Dict[str, Any]]) -> str:
    """
    Turn pydantic error dicts into the single message shown to the participant.
    """
    if not errors:
        return "Invalid request"
    err = errors[0]
    field = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
    if err.get("type") == "missing":
        return f"{field} is required" if field else "Request body is required"
    msg = err.get("msg", "Invalid request")
    if msg.startswith("Value error, "):
        msg = msg[len("Value error, "):]
    return msg


# ----------- Config -----------

DEFAULT_ROSTER_PATH = os.path.join("data", "students.xlsx")
DEFAULT_TEMPLATE_PATH = os.path.join("public", "certificate-template.pdf")
DEFAULT_FONT_PATH = os.path.join("public", "fonts", "certificate-font.ttf")
DEFAULT_FIELDS_CONFIG = "fields_config.json"


class AssetPaths(NamedTuple):
    roster: str
    template: str
    font: str


def get_asset_paths() -> AssetPaths:
    """
    Resolve asset locations from the environment on every request.
    """
    return AssetPaths(
        roster=os.path.abspath(os.getenv("ROSTER_PATH", DEFAULT_ROSTER_PATH)),
        template=os.path.abspath(os.getenv("TEMPLATE_PATH", DEFAULT_TEMPLATE_PATH)),
        font=os.path.abspath(os.getenv("FONT_PATH", DEFAULT_FONT_PATH)),
    )


def match_email_enabled() -> bool:
    return os.getenv("MATCH_EMAIL", "").strip().lower() in ("1", "true", "yes", "on")


def load_name_layout(path: Optional[str] = None) -> NameFieldLayout:
    """
    Load the name field layout from a JSON file such as
    {"name": {"font_size": 50, "y_ratio": 0.45, "fill": "#000000"}}.
    Keys left out keep their defaults; a missing file means all defaults.
    """
    path = path or os.getenv("FIELDS_CONFIG", DEFAULT_FIELDS_CONFIG)
    if not os.path.exists(path):
        return NameFieldLayout()

    try:
        with open(path, "r", encoding="utf-8") as f:
            config = json.load(f)
        field = config.get("name", {})
        defaults = NameFieldLayout()
        return NameFieldLayout(
            font_size=float(field.get("font_size", defaults.font_size)),
            y_ratio=float(field.get("y_ratio", defaults.y_ratio)),
            fill=str(field.get("fill", defaults.fill)),
        )
    except (OSError, ValueError, TypeError, AttributeError) as e:
        raise CertificateRenderError(f"Invalid fields config {path}: {e}") from e


def check_assets(paths: AssetPaths) -> Optional[str]:
    """
    Return an error message for the first missing or unreadable asset, or None.
    """
    for path in (paths.template, paths.font, paths.roster):
        if not os.path.isfile(path) or not os.access(path, os.R_OK):
            return f"File not found: {path}"
    return None


# ----------- Roster -----------

def _cell_text(value: Any) -> str:
    if value is None or (not isinstance(value, str) and pd.isna(value)):
        return ""
    return str(value).strip()


def load_roster(path: str) -> List[RosterRow]:
    """
    Read the first sheet of the roster into RosterRows, in file order.
    Rows without a name or roll number are skipped.
    """
    try:
        if path.lower().endswith(".csv"):
            df = pd.read_csv(path, dtype=str)
        else:
            df = pd.read_excel(path, sheet_name=0, dtype=str)
    except Exception as e:
        raise RosterError(f"Error reading roster file: {e}") from e

    # --- Normalize column names ---
    normalized_cols = {str(c).strip().lower(): c for c in df.columns}
    logger.debug("Roster columns: %s", list(normalized_cols))
    if "name" not in normalized_cols or "rollno" not in normalized_cols:
        raise RosterError("Roster must include 'name' and 'rollno' columns")

    name_col = normalized_cols["name"]
    rollno_col = normalized_cols["rollno"]
    email_col = normalized_cols.get("email")

    rows: List[RosterRow] = []
    skipped = 0
    for _, record in df.iterrows():
        name = _cell_text(record[name_col])
        rollno = _cell_text(record[rollno_col])
        if not name or not rollno:
            skipped += 1
            continue
        email = _cell_text(record[email_col]) if email_col is not None else ""
        rows.append(RosterRow(name=name, rollno=rollno, email=email or None))

    if skipped:
        logger.warning("Skipped %d roster rows missing name or rollno", skipped)
    return rows


def _normalize(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def find_participant(
    rows: List[RosterRow],
    name: str,
    rollno: str,
    email: Optional[str] = None,
    match_email: bool = False,
) -> Optional[RosterRow]:
    """
    Return the first row whose name and roll number match, ignoring case and
    surrounding whitespace. Email only counts when match_email is set.
    """
    wanted_name, wanted_rollno, wanted_email = _normalize(name), _normalize(rollno), _normalize(email)
    for row in rows:
        if _normalize(row.name) != wanted_name or _normalize(row.rollno) != wanted_rollno:
            continue
        if match_email and _normalize(row.email) != wanted_email:
            continue
        return row
    return None


# ----------- Renderer -----------

def _register_font(font_path: str) -> str:
    # reportlab's font registry is process wide; key it on the full path
    path_digest = hashlib.sha1(os.path.abspath(font_path).encode("utf-8")).hexdigest()[:12]
    font_name = "Certificate-%s-%s" % (os.path.splitext(os.path.basename(font_path))[0], path_digest)
    try:
        pdfmetrics.registerFont(TTFont(font_name, font_path))
    except Exception as e:
        raise CertificateRenderError(f"Unable to embed font {font_path}: {e}") from e
    return font_name


def _display_text(text: str) -> str:
    # RTL names need shaping and visual reordering before reportlab draws them
    return get_display(arabic_reshaper.reshape(text))


def render_certificate(
    template_path: str,
    font_path: str,
    name: str,
    layout: Optional[NameFieldLayout] = None,
) -> bytes:
    """
    Draw the name centred on the first page of the template and return the PDF bytes.
    """
    layout = layout or NameFieldLayout()
    try:
        reader = PdfReader(template_path)
        base_page = reader.pages[0]
    except Exception as e:
        raise CertificateRenderError(f"Unable to read certificate template: {e}") from e

    width = float(base_page.mediabox.width)
    height = float(base_page.mediabox.height)

    font_name = _register_font(font_path)
    text = _display_text(name)
    text_width = stringWidth(text, font_name, layout.font_size)
    x = (width - text_width) / 2
    y = height * layout.y_ratio

    try:
        buffer = BytesIO()
        c = canvas.Canvas(buffer, pagesize=(width, height), invariant=1)
        c.setFont(font_name, layout.font_size)
        c.setFillColor(toColor(layout.fill))
        c.drawString(x, y, text)
        c.save()
        buffer.seek(0)

        overlay_page = PdfReader(buffer).pages[0]
        base_page.merge_page(overlay_page)

        writer = PdfWriter()
        for page in reader.pages:
            writer.add_page(page)
        out = BytesIO()
        writer.write(out)
    except Exception as e:
        raise CertificateRenderError(f"Failed to generate certificate: {e}") from e
    return out.getvalue()


def certificate_filename(name: str) -> str:
    return f"Certificate_{name}.pdf"


# ----------- Service -----------

def verify_and_generate_certificate(
    submission: Union[Submission, Mapping[str, Any]],
) -> CertificateResult:
    """
    Verify a participant against the roster and render their certificate.

    Every failure (bad input, missing asset, unknown participant, unreadable
    roster/template/font) comes back as a failed CertificateResult.
    """
    if not isinstance(submission, Submission):
        try:
            submission = Submission.model_validate(submission)
        except ValidationError as e:
            return CertificateResult.failure(describe_validation_errors(e.errors()))

    logger.info(
        "Verifying participant with details: name=%r rollno=%r email=%r",
        submission.name, submission.rollno, submission.email,
    )

    try:
        paths = get_asset_paths()
        logger.debug("Checking paths: %s", paths._asdict())
        missing = check_assets(paths)
        if missing:
            logger.error("File access error: %s", missing)
            return CertificateResult.failure(missing)

        rows = load_roster(paths.roster)
        row = find_participant(
            rows,
            submission.name,
            submission.rollno,
            email=submission.email,
            match_email=match_email_enabled(),
        )
        logger.info("Participant found: %s", row is not None)
        if row is None:
            return CertificateResult.failure(NOT_FOUND_MESSAGE)

        pdf_bytes = render_certificate(paths.template, paths.font, row.name, load_name_layout())
    except CertificateError as e:
        logger.error("Certificate generation error: %s", e)
        return CertificateResult.failure(str(e))
    except Exception as e:
        logger.exception("Certificate generation error")
        return CertificateResult.failure(str(e) or "Failed to generate certificate")

    return CertificateResult(
        success=True,
        message=SUCCESS_MESSAGE,
        data=base64.b64encode(pdf_bytes).decode("ascii"),
    )
