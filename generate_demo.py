import os

import pandas as pd
from reportlab.lib.pagesizes import A4, landscape
from reportlab.pdfgen import canvas

from certificates import DEFAULT_ROSTER_PATH, DEFAULT_TEMPLATE_PATH

data = [
    {"name": "John Doe", "rollno": "21CS001", "email": "john.doe@example.com"},
    {"name": "Mary Smith", "rollno": "21CS002", "email": "mary.smith@example.com"},
    {"name": "Ahmed Ali", "rollno": "21EC014", "email": "ahmed.ali@example.com"},
]

os.makedirs(os.path.dirname(DEFAULT_ROSTER_PATH), exist_ok=True)
pd.DataFrame(data).to_excel(DEFAULT_ROSTER_PATH, index=False)
print(f"{DEFAULT_ROSTER_PATH} created")

# Plain template; the participant name lands at 45% of the page height
os.makedirs(os.path.dirname(DEFAULT_TEMPLATE_PATH), exist_ok=True)
width, height = landscape(A4)
c = canvas.Canvas(DEFAULT_TEMPLATE_PATH, pagesize=(width, height))
c.setLineWidth(4)
c.rect(24, 24, width - 48, height - 48)
c.setFont("Helvetica-Bold", 40)
c.drawCentredString(width / 2, height * 0.72, "Certificate of Participation")
c.setFont("Helvetica", 18)
c.drawCentredString(width / 2, height * 0.60, "This certificate is presented to")
c.save()
print(f"{DEFAULT_TEMPLATE_PATH} created")
print("Copy a TrueType font to public/fonts/certificate-font.ttf (or set FONT_PATH)")
