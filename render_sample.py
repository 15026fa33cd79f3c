import sys

from certificates import certificate_filename, get_asset_paths, load_name_layout, render_certificate

name = sys.argv[1] if len(sys.argv) > 1 else "John Doe"
paths = get_asset_paths()

# Render certificate
pdf_bytes = render_certificate(paths.template, paths.font, name, load_name_layout())

# Save as PDF for inspection
filename = certificate_filename(name)
with open(filename, "wb") as f:
    f.write(pdf_bytes)

print(f"PDF saved -> {filename}")
