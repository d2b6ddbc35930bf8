from pdfextractx.cli import run

run()
